"""Unit tests for the cash loan application wizard"""

import pytest
from decimal import Decimal
from lending_core.domain.events import (
    AcceptTerms,
    AddCollateralDocument,
    CalculateTerms,
    CancelApplication,
    DismissError,
    NavigateBack,
    NavigateToStep,
    NavigationSignal,
    NextStep,
    PreviousStep,
    RemoveCollateralDocument,
    SaveDraft,
    SubmitApplication,
    UpdateField,
    ViewLoanHistory,
    ViewPaymentDashboard,
)
from lending_core.domain.flows import TERMS_REQUIRED
from lending_core.domain.models import ApplicationStatus, CollateralDocument, LoanType
from lending_core.domain.result import ErrorCategory, Result
from lending_core.domain.state import (
    can_go_back,
    can_proceed_to_next_step,
    can_submit_application,
    has_errors,
    is_step_valid,
    progress,
    warnings,
)
from lending_core.domain.steps import CashLoanStep
from lending_core.domain.wizard import FIX_ERRORS, ApplicationWizard


LOAN_DETAILS = {"loan_amount": "2500", "loan_purpose": "Business", "repayment_period": "6 months"}
INCOME = {"monthly_income": "1200", "employer_industry": "Education"}
COLLATERAL = {"collateral_type": "Vehicle", "collateral_value": "8000", "collateral_details": "2015 Toyota Corolla"}


@pytest.fixture
async def wizard(remote, drafts, test_settings, clock):
    wizard = ApplicationWizard(LoanType.CASH, "user-1", remote=remote, drafts=drafts, config=test_settings, clock=clock)
    await wizard.initialize()
    yield wizard
    await wizard.close()


async def fill(wizard: ApplicationWizard, fields: dict) -> None:
    for name, value in fields.items():
        await wizard.dispatch(UpdateField(name, value))


async def complete_data_steps(wizard: ApplicationWizard, document: CollateralDocument) -> None:
    """Fill steps 1-3 and leave the wizard on the collateral step"""
    await fill(wizard, LOAN_DETAILS)
    await wizard.dispatch(NextStep())
    await fill(wizard, INCOME)
    await wizard.dispatch(NextStep())
    await fill(wizard, COLLATERAL)
    await wizard.dispatch(AddCollateralDocument(document))


async def reach_confirmation(wizard: ApplicationWizard, document: CollateralDocument) -> None:
    await complete_data_steps(wizard, document)
    await wizard.dispatch(CalculateTerms())
    await wizard.wait_for_pending()
    await wizard.dispatch(NextStep())
    await wizard.dispatch(AcceptTerms())
    await wizard.dispatch(NextStep())


async def test_initialize_loads_form_data(wizard: ApplicationWizard):
    state = wizard.state
    assert state.form_data is not None
    assert "Retail & Wholesale" in state.form_data.employer_industries
    assert state.current_step == 1
    assert state.status == ApplicationStatus.DRAFT
    assert not state.is_loading


async def test_next_step_blocked_by_empty_form(wizard: ApplicationWizard):
    """Advancing from an empty first step shows the step's errors and stays put"""
    state = await wizard.dispatch(NextStep())

    assert state.current_step == 1
    assert state.error_message == FIX_ERRORS
    assert state.validation_errors["loan_amount"] == "Loan amount is required"
    assert "loan_purpose" in state.validation_errors
    assert "repayment_period" in state.validation_errors
    assert not can_proceed_to_next_step(state)
    assert has_errors(state)


async def test_amount_below_minimum_blocks_step(wizard: ApplicationWizard):
    await fill(wizard, {**LOAN_DETAILS, "loan_amount": "50"})
    state = await wizard.dispatch(NextStep())

    assert state.current_step == 1
    assert state.validation_errors == {"loan_amount": "Minimum loan amount is $100"}


async def test_editing_a_field_clears_its_error(wizard: ApplicationWizard):
    await wizard.dispatch(NextStep())
    state = await wizard.dispatch(UpdateField("loan_amount", "$2,500"))

    assert state.form.loan_amount == "2500"
    assert "loan_amount" not in state.validation_errors
    assert "loan_purpose" in state.validation_errors


async def test_happy_path_submission(wizard: ApplicationWizard, remote, drafts, collateral_document):
    """Complete the five steps, calculate, accept and submit"""
    await complete_data_steps(wizard, collateral_document)
    assert wizard.state.current_step == CashLoanStep.COLLATERAL_INFO.number
    assert warnings(wizard.state) == []

    state = await wizard.dispatch(CalculateTerms())
    assert state.is_calculating

    state = await wizard.wait_for_pending()
    assert not state.is_calculating
    terms = state.calculated_terms
    assert terms is not None
    assert terms.loan_amount == Decimal("2500.00")
    assert terms.number_of_weeks == 26

    state = await wizard.dispatch(NextStep())
    assert state.current_step == CashLoanStep.TERMS_REVIEW.number
    assert not can_submit_application(state)

    await wizard.dispatch(AcceptTerms())
    state = await wizard.dispatch(NextStep())
    assert state.current_step == CashLoanStep.CONFIRMATION.number
    assert can_submit_application(state)
    assert progress(state) == 1.0

    state = await wizard.dispatch(SubmitApplication())
    assert state.is_submitting

    state = await wizard.wait_for_pending()
    assert state.status == ApplicationStatus.SUBMITTED
    assert state.application_id == "app-001"
    assert state.current_step == 1
    assert not state.is_submitting
    assert wizard.navigation.get_nowait() == NavigationSignal.TO_LOAN_HISTORY

    submitted = remote.submitted[0]
    assert submitted.user_id == "user-1"
    assert submitted.loan_amount == Decimal("2500")
    assert submitted.status == ApplicationStatus.SUBMITTED
    assert submitted.accepted_terms
    assert submitted.calculated_terms == terms
    assert submitted.collateral_documents == [collateral_document]
    assert drafts.drafts == {}


async def test_submission_deletes_saved_draft(wizard: ApplicationWizard, drafts, collateral_document):
    await reach_confirmation(wizard, collateral_document)
    await wizard.dispatch(SaveDraft())
    assert len(drafts.drafts) == 1

    await wizard.dispatch(SubmitApplication())
    await wizard.wait_for_pending()

    assert drafts.drafts == {}


async def test_submission_server_error_keeps_wizard(wizard: ApplicationWizard, remote, collateral_document):
    """A failed submission stays on the confirmation step with a generic server message"""
    remote.submit_result = Result.fail("Internal Server Error", ErrorCategory.SERVER)
    await reach_confirmation(wizard, collateral_document)

    await wizard.dispatch(SubmitApplication())
    state = await wizard.wait_for_pending()

    assert state.status == ApplicationStatus.DRAFT
    assert state.current_step == CashLoanStep.CONFIRMATION.number
    assert state.error_message == "Server error. Please try again later."
    assert state.error_category == ErrorCategory.SERVER
    assert not state.is_submitting
    assert state.calculated_terms is not None
    assert wizard.navigation.empty()

    state = await wizard.dispatch(DismissError())
    assert state.error_message is None
    assert state.error_category is None


async def test_submission_conflict_shows_detail(wizard: ApplicationWizard, remote, drafts, collateral_document):
    """A conflict keeps the wizard on the review step and the draft in storage"""
    remote.submit_result = Result.fail("You already have a pending cash loan application", ErrorCategory.CONFLICT)
    await reach_confirmation(wizard, collateral_document)
    await wizard.dispatch(SaveDraft())

    await wizard.dispatch(SubmitApplication())
    state = await wizard.wait_for_pending()

    assert state.error_message == "You already have a pending cash loan application"
    assert state.error_category == ErrorCategory.CONFLICT
    assert state.current_step == CashLoanStep.TERMS_REVIEW.number
    assert state.status == ApplicationStatus.DRAFT
    assert drafts.drafts[("user-1", LoanType.CASH)].id == state.draft_id


async def test_submission_network_error(wizard: ApplicationWizard, remote, collateral_document):
    remote.submit_result = Result.fail("Loan API unreachable", ErrorCategory.NETWORK)
    await reach_confirmation(wizard, collateral_document)

    await wizard.dispatch(SubmitApplication())
    state = await wizard.wait_for_pending()

    assert state.error_message == "Network error. Please check your connection."


async def test_submit_requires_review_step(wizard: ApplicationWizard, remote, collateral_document):
    await complete_data_steps(wizard, collateral_document)
    state = await wizard.dispatch(SubmitApplication())

    assert not state.is_submitting
    assert state.validation_errors["terms"] == TERMS_REQUIRED
    assert state.error_message == FIX_ERRORS
    assert remote.submitted == []


async def test_review_step_needs_terms(wizard: ApplicationWizard, collateral_document):
    """The review step cannot be entered until terms are calculated"""
    await complete_data_steps(wizard, collateral_document)
    state = await wizard.dispatch(NextStep())

    assert state.current_step == CashLoanStep.COLLATERAL_INFO.number
    assert state.validation_errors["terms"] == TERMS_REQUIRED


async def test_confirmation_needs_accepted_terms(wizard: ApplicationWizard, collateral_document):
    await complete_data_steps(wizard, collateral_document)
    await wizard.dispatch(CalculateTerms())
    await wizard.wait_for_pending()
    await wizard.dispatch(NextStep())

    state = await wizard.dispatch(NextStep())
    assert state.current_step == CashLoanStep.TERMS_REVIEW.number
    assert state.validation_errors["terms_accepted"] == "You must accept the loan terms to proceed"


async def test_accept_terms_without_terms(wizard: ApplicationWizard):
    state = await wizard.dispatch(AcceptTerms())
    assert not state.terms_accepted
    assert state.error_message == TERMS_REQUIRED


async def test_minimum_income_application_gets_terms(wizard: ApplicationWizard, collateral_document):
    await fill(wizard, {"loan_amount": "2500", "loan_purpose": "Car", "repayment_period": "6 months"})
    await wizard.dispatch(NextStep())
    await fill(wizard, {"monthly_income": "150", "employer_industry": "Retail & Wholesale"})
    await wizard.dispatch(NextStep())
    await fill(wizard, {"collateral_type": "Vehicle", "collateral_value": "3000", "collateral_details": "2015 sedan"})
    await wizard.dispatch(AddCollateralDocument(collateral_document))

    await wizard.dispatch(CalculateTerms())
    state = await wizard.wait_for_pending()

    assert state.calculated_terms is not None
    assert state.calculated_terms.total_cost > Decimal("2500")


async def test_calculate_requires_valid_data_steps(wizard: ApplicationWizard, remote):
    await fill(wizard, LOAN_DETAILS)
    state = await wizard.dispatch(CalculateTerms())

    assert not state.is_calculating
    assert state.error_message == FIX_ERRORS
    assert "monthly_income" in state.validation_errors
    assert "collateral_documents" in state.validation_errors


async def test_editing_inputs_invalidates_terms(wizard: ApplicationWizard, collateral_document):
    """Changing any input drops calculated terms and pulls the wizard back from review"""
    await reach_confirmation(wizard, collateral_document)

    state = await wizard.dispatch(UpdateField("monthly_income", "1300"))

    assert state.calculated_terms is None
    assert not state.terms_accepted
    assert state.current_step == CashLoanStep.COLLATERAL_INFO.number


async def test_invalidating_early_step_clamps_position(wizard: ApplicationWizard, collateral_document):
    await complete_data_steps(wizard, collateral_document)

    state = await wizard.dispatch(UpdateField("loan_amount", "50"))
    assert state.current_step == CashLoanStep.LOAN_DETAILS.number


async def test_navigate_to_step(wizard: ApplicationWizard, collateral_document):
    state = await wizard.dispatch(NavigateToStep(3))
    assert state.current_step == 1
    assert state.error_message == FIX_ERRORS
    assert "loan_amount" in state.validation_errors

    await complete_data_steps(wizard, collateral_document)
    state = await wizard.dispatch(NavigateToStep(1))
    assert state.current_step == 1
    state = await wizard.dispatch(NavigateToStep(3))
    assert state.current_step == 3
    state = await wizard.dispatch(NavigateToStep(4))
    assert state.current_step == 3
    assert state.validation_errors["terms"] == TERMS_REQUIRED


async def test_previous_step(wizard: ApplicationWizard):
    await fill(wizard, LOAN_DETAILS)
    state = await wizard.dispatch(NextStep())
    assert can_go_back(state)

    state = await wizard.dispatch(PreviousStep())
    assert state.current_step == 1
    assert not can_go_back(state)
    state = await wizard.dispatch(PreviousStep())
    assert state.current_step == 1


async def test_collateral_documents(wizard: ApplicationWizard, collateral_document):
    state = await wizard.dispatch(AddCollateralDocument(collateral_document))
    assert state.form.collateral_documents == (collateral_document,)

    oversized = CollateralDocument(id="doc-2", file_name="scan.pdf", file_size=6 * 1024 * 1024)
    state = await wizard.dispatch(AddCollateralDocument(oversized))
    assert len(state.form.collateral_documents) == 1
    assert state.validation_errors["collateral_documents"] == "File size must not exceed 5MB"

    state = await wizard.dispatch(RemoveCollateralDocument("doc-1"))
    assert state.form.collateral_documents == ()


async def test_collateral_warning(wizard: ApplicationWizard):
    await fill(wizard, {"loan_amount": "5000", "collateral_value": "3000"})
    assert warnings(wizard.state) == ["Collateral value is less than loan amount"]


async def test_unknown_field_rejected(wizard: ApplicationWizard):
    with pytest.raises(ValueError):
        await wizard.dispatch(UpdateField("favourite_colour", "blue"))


async def test_save_draft_and_resume(wizard: ApplicationWizard, remote, drafts, test_settings, clock):
    """A saved draft restores inputs and position in a new session"""
    await fill(wizard, LOAN_DETAILS)
    await wizard.dispatch(NextStep())
    state = await wizard.dispatch(SaveDraft())

    assert state.draft_id == "draft-1"
    assert state.last_saved_at == clock()
    assert not state.is_saving

    resumed = ApplicationWizard(LoanType.CASH, "user-1", remote=remote, drafts=drafts, config=test_settings, clock=clock)
    state = await resumed.initialize()
    await resumed.close()

    assert state.draft_id == "draft-1"
    assert state.form.loan_amount == "2500"
    assert state.form.repayment_period == "6 months"
    assert state.current_step == 2


async def test_initialize_reports_load_failures(remote, drafts, test_settings, clock):
    remote.form_data_result = Result.fail("down", ErrorCategory.NETWORK)
    drafts.fail_loads = True

    wizard = ApplicationWizard(LoanType.CASH, "user-1", remote=remote, drafts=drafts, config=test_settings, clock=clock)
    state = await wizard.initialize()
    await wizard.close()

    assert state.form_data is None
    assert state.error_message == "Failed to load draft: storage unavailable"
    assert not state.is_loading


async def test_cancel_discards_draft(wizard: ApplicationWizard, drafts):
    await fill(wizard, LOAN_DETAILS)
    await wizard.dispatch(SaveDraft())

    state = await wizard.dispatch(CancelApplication())

    assert drafts.drafts == {}
    assert state.form.loan_amount == ""
    assert state.draft_id == ""
    assert state.form_data is not None
    assert wizard.navigation.get_nowait() == NavigationSignal.BACK


async def test_cancel_failure_keeps_application(wizard: ApplicationWizard, drafts):
    await fill(wizard, LOAN_DETAILS)
    await wizard.dispatch(SaveDraft())
    drafts.fail_deletes = True

    state = await wizard.dispatch(CancelApplication())

    assert state.error_message == "Failed to cancel application: storage unavailable"
    assert state.form.loan_amount == "2500"
    assert wizard.navigation.empty()


async def test_navigation_signals(wizard: ApplicationWizard):
    await wizard.dispatch(ViewLoanHistory())
    await wizard.dispatch(ViewPaymentDashboard())
    await wizard.dispatch(NavigateBack())

    assert wizard.navigation.get_nowait() == NavigationSignal.TO_LOAN_HISTORY
    assert wizard.navigation.get_nowait() == NavigationSignal.TO_PAYMENT_DASHBOARD
    assert wizard.navigation.get_nowait() == NavigationSignal.BACK


async def test_submitted_application_is_read_only(wizard: ApplicationWizard, collateral_document):
    await reach_confirmation(wizard, collateral_document)
    await wizard.dispatch(SubmitApplication())
    submitted = await wizard.wait_for_pending()

    state = await wizard.dispatch(UpdateField("loan_amount", "9000"))
    assert state is submitted
    assert state.form.loan_amount == ""
    assert state.status.display_name == "Submitted"


async def test_closed_wizard_rejects_events(remote, drafts, test_settings):
    wizard = ApplicationWizard(LoanType.CASH, "user-1", remote=remote, drafts=drafts, config=test_settings)
    await wizard.close()

    with pytest.raises(RuntimeError):
        await wizard.dispatch(NextStep())


def assert_earlier_steps_valid(state) -> None:
    steps = state.flow.steps
    invalid = [step for step in steps[: steps.index(state.step)] if not is_step_valid(state, step)]
    assert invalid == [], f"on step {state.current_step} with invalid earlier steps {invalid}"


async def test_mixed_events_never_leave_an_invalid_step_behind(wizard: ApplicationWizard, collateral_document):
    """Whatever the event order, every step before the current one stays valid"""
    sequence = [
        (UpdateField("loan_amount", "2500"), 1),
        (NextStep(), 1),
        (UpdateField("loan_purpose", "Business"), 1),
        (UpdateField("repayment_period", "6 months"), 1),
        (NextStep(), 2),
        (NavigateToStep(5), 2),
        (UpdateField("monthly_income", "1200"), 2),
        (UpdateField("employer_industry", "Education"), 2),
        (NextStep(), 3),
        (UpdateField("collateral_type", "Vehicle"), 3),
        (UpdateField("collateral_value", "8000"), 3),
        (UpdateField("collateral_details", "2015 Toyota Corolla"), 3),
        (AddCollateralDocument(collateral_document), 3),
        (CalculateTerms(), 3),
        (NextStep(), 4),
        (NavigateToStep(5), 4),
        (AcceptTerms(), 4),
        (NextStep(), 5),
        (AcceptTerms(False), 4),
        (AcceptTerms(), 4),
        (NavigateToStep(5), 5),
        (UpdateField("loan_amount", "60000"), 1),
        (UpdateField("loan_amount", "3000"), 1),
        (NavigateToStep(3), 3),
        (NavigateToStep(4), 3),
        (CalculateTerms(), 3),
        (NavigateToStep(4), 4),
        (UpdateField("collateral_value", "9000"), 3),
        (PreviousStep(), 2),
        (UpdateField("monthly_income", "100"), 2),
        (NextStep(), 2),
    ]

    for event, expected_step in sequence:
        assert_earlier_steps_valid(await wizard.dispatch(event))
        state = await wizard.wait_for_pending()
        assert_earlier_steps_valid(state)
        assert state.current_step == expected_step, event
