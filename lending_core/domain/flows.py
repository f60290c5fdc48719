"""Step sequences and per-step validation for the cash and PayGo wizards"""

from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Tuple

from lending_core.domain.forms import CashLoanForm, PayGoLoanForm
from lending_core.domain.models import CalculatedTerms, CashLoanFormData, LoanType
from lending_core.domain.options import (
    CASH_REPAYMENT_PERIODS,
    EMPLOYER_INDUSTRIES,
    PAYGO_REPAYMENT_PERIODS,
    SALARY_BANDS,
    USAGE_OPTIONS,
)
from lending_core.domain.steps import CashLoanStep, PayGoStep
from lending_core.domain.validation import (
    FieldErrors,
    MAX_LOAN_AMOUNT,
    MIN_LOAN_AMOUNT,
    validate_choice,
    validate_collateral_value,
    validate_guarantor,
    validate_loan_amount,
    validate_monthly_income,
    validate_repayment_period,
    validate_required,
)

TERMS_REQUIRED = "Loan terms must be calculated"
TERMS_NOT_ACCEPTED = "You must accept the loan terms to proceed"


def _collect(**results) -> FieldErrors:
    return {name: result.message for name, result in results.items() if not result.is_valid}


def _cash_loan_details(form: CashLoanForm, form_data: Optional[CashLoanFormData]) -> FieldErrors:
    minimum = form_data.min_loan_amount if form_data else MIN_LOAN_AMOUNT
    maximum = form_data.max_loan_amount if form_data else MAX_LOAN_AMOUNT
    periods = form_data.repayment_periods if form_data else CASH_REPAYMENT_PERIODS
    return _collect(
        loan_amount=validate_loan_amount(form.loan_amount, minimum, maximum),
        loan_purpose=validate_required(form.loan_purpose, "Loan purpose"),
        repayment_period=validate_repayment_period(form.repayment_period, periods),
    )


def _cash_income_employment(form: CashLoanForm, form_data: Optional[CashLoanFormData]) -> FieldErrors:
    industries = form_data.employer_industries if form_data and form_data.employer_industries else EMPLOYER_INDUSTRIES
    return _collect(
        monthly_income=validate_monthly_income(form.monthly_income, LoanType.CASH),
        employer_industry=validate_choice(form.employer_industry, industries, "Employer industry"),
    )


def _cash_collateral(form: CashLoanForm, form_data: Optional[CashLoanFormData]) -> FieldErrors:
    errors = _collect(
        collateral_type=validate_required(form.collateral_type, "Collateral type"),
        collateral_value=validate_collateral_value(form.collateral_value),
        collateral_details=validate_required(form.collateral_details, "Collateral details"),
    )
    if not form.collateral_documents:
        errors["collateral_documents"] = "At least one collateral document is required"
    return errors


def _paygo_category(form: PayGoLoanForm, form_data=None) -> FieldErrors:
    if not form.category:
        return {"category": "Please select a product category"}
    return {}


def _paygo_product(form: PayGoLoanForm, form_data=None) -> FieldErrors:
    if form.product is None:
        return {"product": "Please select a product"}
    if form.product.category != form.category:
        return {"product": "Selected product is not in the chosen category"}
    if not form.product.is_available:
        return {"product": "This product is currently unavailable"}
    return {}


def _paygo_details(form: PayGoLoanForm, form_data=None) -> FieldErrors:
    return _collect(
        usage_per_day=validate_choice(form.usage_per_day, USAGE_OPTIONS, "Usage per day"),
        repayment_period=validate_repayment_period(form.repayment_period, PAYGO_REPAYMENT_PERIODS),
        salary_band=validate_choice(form.salary_band, SALARY_BANDS, "Salary band"),
    )


def _paygo_guarantor(form: PayGoLoanForm, form_data=None) -> FieldErrors:
    return {f"guarantor.{name}": message for name, message in validate_guarantor(form.guarantor).items()}


def review_errors(terms: Optional[CalculatedTerms], accepted: bool) -> FieldErrors:
    """Errors for a step that shows calculated terms"""
    if terms is None:
        return {"terms": TERMS_REQUIRED}
    if not accepted:
        return {"terms_accepted": TERMS_NOT_ACCEPTED}
    return {}


@dataclass(frozen=True)
class WizardFlow:
    """
    Linear step sequence of one loan type.

    Data steps are validated from form fields; review steps are valid only once
    terms are calculated and accepted, and cannot be entered without terms.
    """

    loan_type: LoanType
    steps: Tuple
    validators: Mapping
    step_fields: Mapping
    review_steps: Tuple

    @property
    def first_step(self):
        return self.steps[0]

    @property
    def data_steps(self) -> Tuple:
        return tuple(step for step in self.steps if step not in self.review_steps)

    def step_from_number(self, number: int):
        for step in self.steps:
            if step.number == number:
                return step
        return self.first_step

    def is_review_step(self, step) -> bool:
        return step in self.review_steps

    def field_errors(self, step, form, form_data=None) -> FieldErrors:
        validator = self.validators.get(step)
        return validator(form, form_data) if validator else {}

    def owns_error(self, step, key: str) -> bool:
        """Whether a validation-error key belongs to one of the step's fields"""
        return any(key == name or key.startswith(f"{name}.") for name in self.step_fields.get(step, ()))


CASH_FLOW = WizardFlow(
    loan_type=LoanType.CASH,
    steps=tuple(CashLoanStep),
    validators={
        CashLoanStep.LOAN_DETAILS: _cash_loan_details,
        CashLoanStep.INCOME_EMPLOYMENT: _cash_income_employment,
        CashLoanStep.COLLATERAL_INFO: _cash_collateral,
    },
    step_fields={
        CashLoanStep.LOAN_DETAILS: ("loan_amount", "loan_purpose", "repayment_period"),
        CashLoanStep.INCOME_EMPLOYMENT: ("monthly_income", "employer_industry"),
        CashLoanStep.COLLATERAL_INFO: ("collateral_type", "collateral_value", "collateral_details", "collateral_documents"),
        CashLoanStep.TERMS_REVIEW: ("terms", "terms_accepted"),
        CashLoanStep.CONFIRMATION: ("terms", "terms_accepted"),
    },
    review_steps=(CashLoanStep.TERMS_REVIEW, CashLoanStep.CONFIRMATION),
)

PAYGO_FLOW = WizardFlow(
    loan_type=LoanType.PAYGO,
    steps=tuple(PayGoStep),
    validators={
        PayGoStep.CATEGORY_SELECTION: _paygo_category,
        PayGoStep.PRODUCT_SELECTION: _paygo_product,
        PayGoStep.APPLICATION_DETAILS: _paygo_details,
        PayGoStep.GUARANTOR_INFO: _paygo_guarantor,
    },
    step_fields={
        PayGoStep.CATEGORY_SELECTION: ("category",),
        PayGoStep.PRODUCT_SELECTION: ("product",),
        PayGoStep.APPLICATION_DETAILS: ("usage_per_day", "repayment_period", "salary_band"),
        PayGoStep.GUARANTOR_INFO: ("guarantor",),
        PayGoStep.TERMS_REVIEW: ("terms", "terms_accepted"),
    },
    review_steps=(PayGoStep.TERMS_REVIEW,),
)

FLOWS: Dict[LoanType, WizardFlow] = {LoanType.CASH: CASH_FLOW, LoanType.PAYGO: PAYGO_FLOW}


def flow_for(loan_type: LoanType) -> WizardFlow:
    return FLOWS[loan_type]
