"""Unit tests for the PayGo loan application wizard"""

import asyncio
import pytest
from decimal import Decimal
from lending_core.domain.events import (
    AcceptTerms,
    CalculateTerms,
    NavigateToStep,
    NavigationSignal,
    NextStep,
    SelectCategory,
    SelectProduct,
    SubmitApplication,
    UpdateField,
    UpdateGuarantor,
)
from lending_core.domain.flows import TERMS_REQUIRED
from lending_core.domain.models import ApplicationStatus, LoanType, PayGoLoanTerms
from lending_core.domain.result import ErrorCategory, Result
from lending_core.domain.state import can_proceed_to_next_step, is_step_valid
from lending_core.domain.steps import PayGoStep
from lending_core.domain.wizard import FIX_ERRORS, ApplicationWizard


DETAILS = {"usage_per_day": "Moderate Use (4-6 hours/day)", "repayment_period": "1 year", "salary_band": "$300 - $500"}
GUARANTOR = {
    "name": "Tendai Moyo",
    "mobile_number": "0771234567",
    "national_id": "63-123456A-12",
    "occupation_class": "Teacher",
    "monthly_income": "450",
    "relationship_to_client": "Sibling",
    "address.street": "12 Samora Machel Ave",
    "address.suburb": "Avondale",
    "address.city": "Harare",
    "address.province": "Harare",
    "address.residence_type": "Rented",
}


@pytest.fixture
async def wizard(remote, drafts, test_settings, clock):
    wizard = ApplicationWizard(LoanType.PAYGO, "user-2", remote=remote, drafts=drafts, config=test_settings, clock=clock)
    await wizard.initialize()
    yield wizard
    await wizard.close()


async def choose_product(wizard: ApplicationWizard, category: str = "solar", product: str = "P1") -> None:
    await wizard.dispatch(SelectCategory(category))
    await wizard.wait_for_pending()
    await wizard.dispatch(NextStep())
    await wizard.dispatch(SelectProduct(product))
    await wizard.dispatch(NextStep())


async def complete_data_steps(wizard: ApplicationWizard) -> None:
    """Fill steps 1-4 and leave the wizard on the guarantor step"""
    await choose_product(wizard)
    for name, value in DETAILS.items():
        await wizard.dispatch(UpdateField(name, value))
    await wizard.dispatch(NextStep())
    for name, value in GUARANTOR.items():
        await wizard.dispatch(UpdateGuarantor(name, value))


async def test_initialize_loads_categories(wizard: ApplicationWizard):
    assert [c.id for c in wizard.state.categories] == ["solar", "smartphones"]
    assert wizard.state.products == ()


async def test_select_category_loads_products(wizard: ApplicationWizard, remote):
    state = await wizard.dispatch(SelectCategory("solar"))
    assert state.is_loading
    assert state.form.category == "solar"

    state = await wizard.wait_for_pending()
    assert not state.is_loading
    assert [p.id for p in state.products] == ["P1", "P2"]
    assert remote.product_calls == ["solar"]


async def test_category_required(wizard: ApplicationWizard):
    state = await wizard.dispatch(NextStep())
    assert state.current_step == PayGoStep.CATEGORY_SELECTION.number
    assert state.validation_errors == {"category": "Please select a product category"}


async def test_changing_category_clears_product(wizard: ApplicationWizard):
    await choose_product(wizard)
    assert wizard.state.current_step == PayGoStep.APPLICATION_DETAILS.number

    state = await wizard.dispatch(SelectCategory("smartphones"))
    assert state.form.product is None
    assert state.current_step == PayGoStep.PRODUCT_SELECTION.number

    state = await wizard.wait_for_pending()
    assert [p.id for p in state.products] == ["P3"]


async def test_only_latest_category_products_are_kept(wizard: ApplicationWizard, remote):
    remote.gate = asyncio.Event()
    await wizard.dispatch(SelectCategory("solar"))
    await asyncio.sleep(0)
    await wizard.dispatch(SelectCategory("smartphones"))
    remote.gate.set()

    state = await wizard.wait_for_pending()
    assert [p.id for p in state.products] == ["P3"]
    assert state.form.category == "smartphones"


async def test_unknown_product_rejected(wizard: ApplicationWizard):
    await wizard.dispatch(SelectCategory("solar"))
    await wizard.wait_for_pending()

    state = await wizard.dispatch(SelectProduct("P3"))
    assert state.form.product is None
    assert state.validation_errors["product"] == "Selected product is not available"


async def test_product_load_failure(wizard: ApplicationWizard, remote):
    remote.products_failure = Result.fail("Internal Server Error", ErrorCategory.SERVER)

    await wizard.dispatch(SelectCategory("solar"))
    state = await wizard.wait_for_pending()

    assert state.products == ()
    assert not state.is_loading
    assert state.error_message == "Server error. Please try again later."


async def test_guarantor_errors_are_prefixed(wizard: ApplicationWizard):
    await choose_product(wizard)
    for name, value in DETAILS.items():
        await wizard.dispatch(UpdateField(name, value))
    await wizard.dispatch(NextStep())

    await wizard.dispatch(UpdateGuarantor("monthly_income", "200"))
    assert not can_proceed_to_next_step(wizard.state)
    state = await wizard.dispatch(NextStep())

    assert state.current_step == PayGoStep.GUARANTOR_INFO.number
    assert state.error_message == FIX_ERRORS
    assert state.validation_errors["guarantor.monthly_income"] == "Minimum monthly income is $300"
    assert "guarantor.name" in state.validation_errors
    assert "guarantor.address.street" in state.validation_errors

    state = await wizard.dispatch(UpdateGuarantor("address.street", "12 Samora Machel Ave"))
    assert "guarantor.address.street" not in state.validation_errors
    assert "guarantor.name" in state.validation_errors


async def test_unknown_guarantor_field(wizard: ApplicationWizard):
    with pytest.raises(ValueError):
        await wizard.dispatch(UpdateGuarantor("shoe_size", "9"))
    with pytest.raises(ValueError):
        await wizard.dispatch(UpdateGuarantor("address.planet", "Mars"))


async def test_cash_fields_rejected_for_paygo(wizard: ApplicationWizard):
    with pytest.raises(ValueError):
        await wizard.dispatch(UpdateField("loan_amount", "2500"))


async def test_paygo_happy_path(wizard: ApplicationWizard, remote):
    """Category, product, details, guarantor, terms and submission"""
    await complete_data_steps(wizard)
    assert wizard.state.current_step == PayGoStep.GUARANTOR_INFO.number

    state = await wizard.dispatch(NextStep())
    assert state.current_step == PayGoStep.GUARANTOR_INFO.number
    assert state.error_message == TERMS_REQUIRED

    await wizard.dispatch(CalculateTerms())
    state = await wizard.wait_for_pending()
    terms = state.calculated_terms
    assert isinstance(terms, PayGoLoanTerms)
    assert terms.loan_amount == Decimal("1850.00")
    assert terms.installation_fee == Decimal("150.00")
    assert terms.interest_rate == Decimal("0.24")

    await wizard.dispatch(NextStep())
    await wizard.dispatch(AcceptTerms())
    state = await wizard.dispatch(SubmitApplication())
    assert state.current_step == PayGoStep.TERMS_REVIEW.number
    assert state.is_submitting

    state = await wizard.wait_for_pending()
    assert state.status == ApplicationStatus.SUBMITTED
    assert wizard.navigation.get_nowait() == NavigationSignal.TO_LOAN_HISTORY

    application = remote.submitted[0]
    assert application.loan_type == LoanType.PAYGO
    assert application.product.id == "P1"
    assert application.guarantor.monthly_income == Decimal("450")
    assert application.guarantor.national_id == "63-123456A-12"
    assert application.guarantor.address.city == "Harare"
    assert application.calculated_terms == terms


async def test_mixed_events_never_leave_an_invalid_step_behind(wizard: ApplicationWizard):
    """Whatever the event order, every step before the current one stays valid"""
    sequence = [
        (NextStep(), 1),
        (SelectCategory("solar"), 1),
        (NextStep(), 2),
        (NavigateToStep(4), 2),
        (SelectProduct("P1"), 2),
        (NextStep(), 3),
        *[(UpdateField(name, value), 3) for name, value in DETAILS.items()],
        (NextStep(), 4),
        *[(UpdateGuarantor(name, value), 4) for name, value in GUARANTOR.items()],
        (NavigateToStep(5), 4),
        (CalculateTerms(), 4),
        (NextStep(), 5),
        (AcceptTerms(), 5),
        (AcceptTerms(False), 5),
        (UpdateField("salary_band", "Below $300"), 4),
        (CalculateTerms(), 4),
        (NavigateToStep(5), 5),
        (SelectCategory("smartphones"), 2),
        (NavigateToStep(3), 2),
        (SelectProduct("P3"), 2),
        (NavigateToStep(4), 4),
        (UpdateGuarantor("mobile_number", "123"), 4),
        (NextStep(), 4),
    ]

    for event, expected_step in sequence:
        state = await wizard.dispatch(event)
        assert all(is_step_valid(state, step) for step in state.flow.steps[: state.current_step - 1])
        state = await wizard.wait_for_pending()
        assert all(is_step_valid(state, step) for step in state.flow.steps[: state.current_step - 1])
        assert state.current_step == expected_step, event
