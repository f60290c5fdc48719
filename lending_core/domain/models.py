"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional


class LoanType(str, Enum):
    CASH = "cash"
    PAYGO = "paygo"


class ApplicationStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()


class LoanStatus(str, Enum):
    PENDING_DISBURSEMENT = "pending_disbursement"
    ACTIVE = "active"
    COMPLETED = "completed"
    DEFAULTED = "defaulted"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESSFUL = "successful"
    FAILED = "failed"
    CANCELLED = "cancelled"
    OVERDUE = "overdue"
    CURRENT = "current"
    COMPLETED = "completed"

    @property
    def is_settled(self) -> bool:
        return self in (PaymentStatus.SUCCESSFUL, PaymentStatus.COMPLETED)


@dataclass(frozen=True)
class CollateralDocument:
    """Supporting document uploaded for cash loan collateral"""

    id: str
    file_name: str
    file_url: str = ""
    file_size: int = 0
    file_type: str = ""
    uploaded_at: Optional[datetime] = None
    is_verified: bool = False


@dataclass(frozen=True)
class Address:
    """Residential address of a guarantor"""

    street: str = ""
    suburb: str = ""
    city: str = ""
    province: str = ""
    postal_code: str = ""
    residence_type: str = ""


@dataclass(frozen=True)
class Guarantor:
    """Person guaranteeing a PayGo loan"""

    name: str
    mobile_number: str
    national_id: str
    occupation_class: str
    monthly_income: Decimal
    relationship_to_client: str
    address: Address


@dataclass(frozen=True)
class PayGoCategory:
    """Group of financeable devices (e.g. Solar)"""

    id: str
    name: str
    description: str = ""


@dataclass(frozen=True)
class PayGoProduct:
    """Device that can be financed on a PayGo loan"""

    id: str
    name: str
    category: str
    price: Decimal
    description: str = ""
    specifications: str = ""
    image_url: str = ""
    installation_fee: Decimal = Decimal("0")
    is_available: bool = True


@dataclass
class CalculatedTerms:
    """Repayment terms derived from a loan request"""

    loan_amount: Decimal
    interest_rate: Decimal  # annual, as a fraction
    admin_fee: Decimal
    weekly_payment: Decimal
    monthly_payment: Decimal
    number_of_weeks: int
    term_months: int
    total_interest: Decimal
    total_cost: Decimal
    first_payment_date: Optional[date] = None
    final_payment_date: Optional[date] = None

    @property
    def total_fees(self) -> Decimal:
        return self.admin_fee


@dataclass
class CashLoanTerms(CalculatedTerms):
    pass


@dataclass
class PayGoLoanTerms(CalculatedTerms):
    installation_fee: Decimal = Decimal("0")

    @property
    def total_fees(self) -> Decimal:
        return self.admin_fee + self.installation_fee


@dataclass
class CashLoanApplication:
    """In-progress or submitted cash loan application"""

    user_id: str
    id: str = ""
    loan_amount: Optional[Decimal] = None
    loan_purpose: str = ""
    repayment_period: str = ""
    monthly_income: Optional[Decimal] = None
    employer_industry: str = ""
    collateral_type: str = ""
    collateral_value: Optional[Decimal] = None
    collateral_details: str = ""
    collateral_documents: List[CollateralDocument] = field(default_factory=list)
    status: ApplicationStatus = ApplicationStatus.DRAFT
    current_step: int = 1
    calculated_terms: Optional[CashLoanTerms] = None
    accepted_terms: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None

    @property
    def loan_type(self) -> LoanType:
        return LoanType.CASH

    def is_editable(self) -> bool:
        return self.status == ApplicationStatus.DRAFT

    def can_be_withdrawn(self) -> bool:
        return self.status in (ApplicationStatus.SUBMITTED, ApplicationStatus.UNDER_REVIEW)


@dataclass
class PayGoLoanApplication:
    """In-progress or submitted PayGo device loan application"""

    user_id: str
    id: str = ""
    category: str = ""
    product: Optional[PayGoProduct] = None
    usage_per_day: str = ""
    repayment_period: str = ""
    salary_band: str = ""
    guarantor: Optional[Guarantor] = None
    status: ApplicationStatus = ApplicationStatus.DRAFT
    current_step: int = 1
    calculated_terms: Optional[PayGoLoanTerms] = None
    accepted_terms: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None

    @property
    def loan_type(self) -> LoanType:
        return LoanType.PAYGO

    def is_editable(self) -> bool:
        return self.status == ApplicationStatus.DRAFT

    def can_be_withdrawn(self) -> bool:
        return self.status in (ApplicationStatus.SUBMITTED, ApplicationStatus.UNDER_REVIEW)


LoanApplication = CashLoanApplication | PayGoLoanApplication


@dataclass
class CashLoanFormData:
    """Form metadata served by the loan API for the cash wizard"""

    repayment_periods: List[str]
    loan_purposes: List[str]
    employer_industries: List[str]
    min_loan_amount: Decimal = Decimal("100")
    max_loan_amount: Decimal = Decimal("50000")
    min_collateral_value: Decimal = Decimal("0")


@dataclass
class CashTermsRequest:
    principal: Decimal
    repayment_period: str
    employer_industry: str = ""
    monthly_income: Decimal = Decimal("0")


@dataclass
class PayGoTermsRequest:
    product: PayGoProduct
    repayment_period: str
    salary_band: str = ""
    usage_per_day: str = ""


TermsRequest = CashTermsRequest | PayGoTermsRequest


@dataclass
class SubmissionReceipt:
    """Loan API acknowledgement of a submitted application"""

    application_id: str
    status: ApplicationStatus = ApplicationStatus.SUBMITTED
    message: str = ""


@dataclass
class Installment:
    """Single payment in a repayment schedule"""

    number: int
    due_date: date
    amount: Decimal
    principal: Decimal
    interest: Decimal
    balance: Decimal


@dataclass
class EarlyPayoffCalculation:
    """Snapshot of what it costs to settle a loan today"""

    loan_id: str
    current_balance: Decimal
    early_payoff_amount: Decimal
    savings_amount: Decimal
    calculated_at: datetime


@dataclass
class Loan:
    """Disbursed loan as reported by the loan API"""

    id: str
    loan_type: LoanType
    original_amount: Decimal
    total_amount: Decimal
    remaining_balance: Decimal
    status: LoanStatus
    product_name: str = ""
    payments_completed: int = 0
    penalties: Decimal = Decimal("0")
    disbursement_date: Optional[date] = None
    maturity_date: Optional[date] = None


@dataclass
class ScheduledPayment:
    """One installment of a loan's payment schedule"""

    loan_id: str
    payment_number: int
    due_date: date
    amount: Decimal
    status: PaymentStatus = PaymentStatus.PENDING
    paid_date: Optional[date] = None


class SummaryStatus(str, Enum):
    CURRENT = "current"
    OVERDUE = "overdue"
    PAID = "paid"


@dataclass
class PaymentSummary:
    """Per-loan projection of what is due next"""

    loan_id: str
    loan_type: LoanType
    product_name: str
    due_date: Optional[date]
    amount_due: Decimal
    status: SummaryStatus
    days_until_due: int = 0
    days_overdue: int = 0
    penalties: Decimal = Decimal("0")

    @property
    def status_text(self) -> str:
        if self.status == SummaryStatus.OVERDUE:
            return "Overdue"
        if self.status == SummaryStatus.PAID:
            return "Paid"
        if self.days_until_due <= 7:
            return "Due Soon"
        return "Current"


@dataclass
class DashboardSummary:
    total_due: Decimal
    overdue_count: int
    current_count: int
    next_payment_date: Optional[date]
    next_payment_amount: Decimal
    summaries: List[PaymentSummary]


@dataclass
class ValidationResult:
    """Outcome of a validation rule"""

    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def valid(cls, warnings: List[str] | None = None) -> "ValidationResult":
        return cls(is_valid=True, warnings=warnings or [])

    @classmethod
    def invalid(cls, *errors: str) -> "ValidationResult":
        return cls(is_valid=False, errors=list(errors))

    @property
    def message(self) -> str | None:
        return self.errors[0] if self.errors else None


@dataclass
class EligibilityResult:
    is_eligible: bool
    reasons: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    estimated_savings: Decimal = Decimal("0")
