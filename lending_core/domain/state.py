"""Immutable wizard state snapshot and the queries derived from it"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import List, Mapping, Optional, Tuple

from lending_core.domain.flows import WizardFlow, flow_for, review_errors
from lending_core.domain.forms import CashLoanForm, LoanForm, PayGoLoanForm
from lending_core.domain.models import (
    ApplicationStatus,
    CalculatedTerms,
    CashLoanFormData,
    LoanType,
    PayGoCategory,
    PayGoProduct,
)
from lending_core.domain.result import ErrorCategory
from lending_core.domain.validation import FieldErrors, collateral_warnings


@dataclass(frozen=True)
class WizardState:
    """Everything one wizard session knows; replaced, never mutated"""

    loan_type: LoanType
    user_id: str
    form: LoanForm
    current_step: int = 1
    draft_id: str = ""
    created_at: Optional[datetime] = None

    # Metadata loaded from the loan API
    form_data: Optional[CashLoanFormData] = None
    categories: Tuple[PayGoCategory, ...] = ()
    products: Tuple[PayGoProduct, ...] = ()

    calculated_terms: Optional[CalculatedTerms] = None
    terms_accepted: bool = False
    validation_errors: Mapping[str, str] = field(default_factory=dict)

    is_loading: bool = False
    is_saving: bool = False
    is_calculating: bool = False
    is_submitting: bool = False
    error_message: Optional[str] = None
    error_category: Optional[ErrorCategory] = None

    last_saved_at: Optional[datetime] = None
    version: int = 0  # bumped on every input change
    status: ApplicationStatus = ApplicationStatus.DRAFT
    application_id: Optional[str] = None

    @classmethod
    def initial(cls, loan_type: LoanType, user_id: str) -> "WizardState":
        form = CashLoanForm() if loan_type == LoanType.CASH else PayGoLoanForm()
        return cls(loan_type=loan_type, user_id=user_id, form=form)

    @property
    def flow(self) -> WizardFlow:
        return flow_for(self.loan_type)

    @property
    def step(self):
        return self.flow.step_from_number(self.current_step)


def step_errors(state: WizardState, step) -> FieldErrors:
    if state.flow.is_review_step(step):
        return review_errors(state.calculated_terms, state.terms_accepted)
    return state.flow.field_errors(step, state.form, state.form_data)


def is_step_valid(state: WizardState, step) -> bool:
    return not step_errors(state, step)


def is_current_step_valid(state: WizardState) -> bool:
    return is_step_valid(state, state.step)


def all_data_steps_valid(state: WizardState) -> bool:
    return all(is_step_valid(state, step) for step in state.flow.data_steps)


def can_enter(state: WizardState, step) -> bool:
    """A step is reachable when every step before it is valid; review steps also need terms"""
    flow = state.flow
    index = flow.steps.index(step)
    if any(not is_step_valid(state, earlier) for earlier in flow.steps[:index]):
        return False
    if flow.is_review_step(step) and state.calculated_terms is None:
        return False
    return True


def highest_reachable_step(state: WizardState):
    reachable = state.flow.first_step
    for step in state.flow.steps[1:]:
        if not can_enter(state, step):
            break
        reachable = step
    return reachable


def clamp_to_reachable(state: WizardState) -> WizardState:
    """Pull the step pointer back when earlier steps stopped being valid"""
    highest = highest_reachable_step(state)
    if state.current_step > highest.number:
        return replace(state, current_step=highest.number)
    return state


def is_any_operation_in_progress(state: WizardState) -> bool:
    return state.is_loading or state.is_saving or state.is_calculating or state.is_submitting


def can_go_back(state: WizardState) -> bool:
    return state.step != state.flow.first_step


def can_proceed_to_next_step(state: WizardState) -> bool:
    following = state.step.next()
    if following is None or is_any_operation_in_progress(state):
        return False
    return is_current_step_valid(state) and can_enter(state, following)


def can_calculate_terms(state: WizardState) -> bool:
    return not state.is_calculating and not state.is_submitting and all_data_steps_valid(state)


def can_submit_application(state: WizardState) -> bool:
    return (
        state.status == ApplicationStatus.DRAFT
        and not is_any_operation_in_progress(state)
        and state.flow.is_review_step(state.step)
        and all_data_steps_valid(state)
        and state.calculated_terms is not None
        and state.terms_accepted
    )


def has_errors(state: WizardState) -> bool:
    return bool(state.validation_errors) or state.error_message is not None


def progress(state: WizardState) -> float:
    """Fraction of the wizard completed, counting the current step"""
    return state.current_step / len(state.flow.steps)


def warnings(state: WizardState) -> List[str]:
    if isinstance(state.form, CashLoanForm):
        return collateral_warnings(state.form.loan_amount, state.form.collateral_value)
    return []


def auto_save_message(state: WizardState, now: datetime) -> Optional[str]:
    """Recency of the last draft save, for display only"""
    if state.last_saved_at is None:
        return None
    seconds = int((now - state.last_saved_at).total_seconds())
    if seconds < 10:
        return "Saved just now"
    if seconds < 60:
        return f"Saved {seconds} seconds ago"
    minutes = seconds // 60
    if minutes < 60:
        return "Saved 1 minute ago" if minutes == 1 else f"Saved {minutes} minutes ago"
    hours = minutes // 60
    return "Saved 1 hour ago" if hours == 1 else f"Saved {hours} hours ago"
