"""Events accepted by the application wizard and navigation signals it emits"""

from dataclasses import dataclass
from enum import Enum

from lending_core.domain.models import CollateralDocument


class NavigationSignal(str, Enum):
    TO_LOAN_HISTORY = "to_loan_history"
    TO_PAYMENT_DASHBOARD = "to_payment_dashboard"
    BACK = "back"


@dataclass(frozen=True)
class UpdateField:
    field: str
    value: str


@dataclass(frozen=True)
class UpdateGuarantor:
    field: str  # address parts as address.<field>
    value: str


@dataclass(frozen=True)
class SelectCategory:
    category_id: str


@dataclass(frozen=True)
class SelectProduct:
    product_id: str


@dataclass(frozen=True)
class AddCollateralDocument:
    document: CollateralDocument


@dataclass(frozen=True)
class RemoveCollateralDocument:
    document_id: str


@dataclass(frozen=True)
class NextStep:
    pass


@dataclass(frozen=True)
class PreviousStep:
    pass


@dataclass(frozen=True)
class NavigateToStep:
    step_number: int


@dataclass(frozen=True)
class CalculateTerms:
    pass


@dataclass(frozen=True)
class AcceptTerms:
    accepted: bool = True


@dataclass(frozen=True)
class SubmitApplication:
    pass


@dataclass(frozen=True)
class SaveDraft:
    pass


@dataclass(frozen=True)
class CancelApplication:
    pass


@dataclass(frozen=True)
class ClearValidationErrors:
    pass


@dataclass(frozen=True)
class DismissError:
    pass


@dataclass(frozen=True)
class ViewLoanHistory:
    pass


@dataclass(frozen=True)
class ViewPaymentDashboard:
    pass


@dataclass(frozen=True)
class NavigateBack:
    pass


WizardEvent = (
    UpdateField
    | UpdateGuarantor
    | SelectCategory
    | SelectProduct
    | AddCollateralDocument
    | RemoveCollateralDocument
    | NextStep
    | PreviousStep
    | NavigateToStep
    | CalculateTerms
    | AcceptTerms
    | SubmitApplication
    | SaveDraft
    | CancelApplication
    | ClearValidationErrors
    | DismissError
    | ViewLoanHistory
    | ViewPaymentDashboard
    | NavigateBack
)
