"""Application wizard state machine for cash and PayGo loans"""

import asyncio
import logging
import time
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from lending_core.config import Settings, settings as default_settings
from lending_core.domain.events import (
    AcceptTerms,
    AddCollateralDocument,
    CalculateTerms,
    CancelApplication,
    ClearValidationErrors,
    DismissError,
    NavigateBack,
    NavigateToStep,
    NavigationSignal,
    NextStep,
    PreviousStep,
    RemoveCollateralDocument,
    SaveDraft,
    SelectCategory,
    SelectProduct,
    SubmitApplication,
    UpdateField,
    UpdateGuarantor,
    ViewLoanHistory,
    ViewPaymentDashboard,
    WizardEvent,
)
from lending_core.domain.exceptions import CalculationError, PersistenceError
from lending_core.domain.flows import TERMS_REQUIRED, WizardFlow, flow_for
from lending_core.domain.forms import CashLoanForm, PayGoLoanForm
from lending_core.domain.models import (
    ApplicationStatus,
    CashTermsRequest,
    LoanApplication,
    LoanType,
    PayGoTermsRequest,
    TermsRequest,
)
from lending_core.domain.ports import DraftStore, RemoteLoanService
from lending_core.domain.result import ErrorCategory, Result, user_message
from lending_core.domain.state import (
    WizardState,
    all_data_steps_valid,
    can_enter,
    can_submit_application,
    clamp_to_reachable,
    step_errors,
)
from lending_core.domain.terms import TermsCalculator
from lending_core.domain.validation import DocumentPurpose, validate_file
from lending_core.infrastructure.observability.logging import log_submission, log_wizard_event
from lending_core.infrastructure.observability.metrics import (
    draft_save_failure_counter,
    record_submission,
    record_terms_calculation,
    step_transition_counter,
)
from lending_core.utils.money import parse_amount, sanitize_amount

FIX_ERRORS = "Please fix the errors before proceeding"
UNEXPECTED_ERROR = "An unexpected error occurred"

# Events that change the application; ignored once it has been submitted
_EDITING_EVENTS = (
    UpdateField,
    UpdateGuarantor,
    SelectCategory,
    SelectProduct,
    AddCollateralDocument,
    RemoveCollateralDocument,
    NextStep,
    PreviousStep,
    NavigateToStep,
    CalculateTerms,
    AcceptTerms,
    SubmitApplication,
    SaveDraft,
)


@dataclass(frozen=True)
class RequestToken:
    """Identifies the wizard session and input version an async request was issued for"""

    generation: int
    version: int


class ApplicationWizard:
    """
    Drives one borrower through the cash or PayGo application flow.

    Events are handled one at a time through `dispatch`. Terms calculation,
    submission and product loading run as asyncio tasks; each is tagged with
    a RequestToken and its result is dropped if the inputs changed or the
    session was cancelled before it completed. Field changes schedule a
    debounced auto-save whose failures are logged but never shown.

    Usage:
        wizard = ApplicationWizard(LoanType.CASH, user_id, remote=client, drafts=store)
        await wizard.initialize()
        await wizard.dispatch(UpdateField("loan_amount", "2500"))
        await wizard.dispatch(NextStep())
    """

    def __init__(
        self,
        loan_type: LoanType,
        user_id: str,
        remote: RemoteLoanService,
        drafts: DraftStore,
        calculator: TermsCalculator | None = None,
        config: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
        use_remote_terms: bool | None = None,
    ):
        self.loan_type = loan_type
        self.user_id = user_id
        self.remote = remote
        self.drafts = drafts
        self.calculator = calculator or TermsCalculator()
        self.config = config or default_settings
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.use_remote_terms = self.config.server_side_terms if use_remote_terms is None else use_remote_terms
        self.autosave_delay = self.config.autosave_debounce_seconds
        self.navigation: asyncio.Queue = asyncio.Queue()

        self._state = WizardState.initial(loan_type, user_id)
        self._generation = 0
        self._tasks: Dict[str, asyncio.Task] = {}
        self._autosave_task: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def state(self) -> WizardState:
        return self._state

    @property
    def flow(self) -> WizardFlow:
        return flow_for(self.loan_type)

    # Lifecycle

    async def initialize(self) -> WizardState:
        """Load form metadata and resume the stored draft, if any"""
        self._set(is_loading=True)

        if self.loan_type == LoanType.CASH:
            result = await self.remote.get_form_data()
            if result:
                self._set(form_data=result.value)
        else:
            result = await self.remote.get_paygo_categories()
            if result:
                self._set(categories=tuple(result.value))
        if not result:
            self._fail(result)

        try:
            draft = await self.drafts.get_draft(self.user_id, self.loan_type)
        except PersistenceError as e:
            logging.error("Failed to load draft", extra={"user_id": self.user_id, "loan_type": self.loan_type.value, "error": str(e)})
            self._set(error_message=f"Failed to load draft: {e}")
            draft = None

        if draft is not None:
            self._restore(draft)
            if isinstance(self._state.form, PayGoLoanForm) and self._state.form.category:
                products = await self.remote.get_category_products(self._state.form.category)
                if products:
                    self._set(products=tuple(products.value))
                else:
                    self._fail(products)

        self._set(is_loading=False)
        return self._state

    async def close(self) -> None:
        """Tear the session down: cancel in-flight requests and the pending auto-save"""
        pending = self._abandon_in_flight()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._closed = True

    async def wait_for_pending(self) -> WizardState:
        """Wait until calculate, submit and product requests in flight have completed"""
        while pending := [task for task in self._tasks.values() if not task.done()]:
            await asyncio.wait(pending)
        return self._state

    async def wait_for_autosave(self) -> WizardState:
        task = self._autosave_task
        if task is not None and not task.done():
            await asyncio.wait({task})
        return self._state

    # Event handling

    async def dispatch(self, event: WizardEvent) -> WizardState:
        """Apply one event and return the resulting state"""
        if self._closed:
            raise RuntimeError("Wizard session is closed")

        state = self._state
        if isinstance(event, _EDITING_EVENTS) and (state.status != ApplicationStatus.DRAFT or state.is_submitting):
            logging.warning(
                "Ignoring wizard event while application is not editable",
                extra={"user_id": self.user_id, "event": type(event).__name__, "status": state.status.value},
            )
            return state

        match event:
            case UpdateField(field=name, value=value):
                self._update_field(name, value)
            case UpdateGuarantor(field=name, value=value):
                self._update_guarantor(name, value)
            case SelectCategory(category_id=category_id):
                self._select_category(category_id)
            case SelectProduct(product_id=product_id):
                self._select_product(product_id)
            case AddCollateralDocument(document=document):
                self._add_document(document)
            case RemoveCollateralDocument(document_id=document_id):
                self._remove_document(document_id)
            case NextStep():
                self._next_step()
            case PreviousStep():
                self._previous_step()
            case NavigateToStep(step_number=number):
                self._navigate_to(number)
            case CalculateTerms():
                self._calculate_terms()
            case AcceptTerms(accepted=accepted):
                self._accept_terms(accepted)
            case SubmitApplication():
                self._submit()
            case SaveDraft():
                await self._save_draft()
            case CancelApplication():
                await self._cancel()
            case ClearValidationErrors():
                self._set(validation_errors={})
            case DismissError():
                self._set(error_message=None, error_category=None)
            case ViewLoanHistory():
                self.navigation.put_nowait(NavigationSignal.TO_LOAN_HISTORY)
            case ViewPaymentDashboard():
                self.navigation.put_nowait(NavigationSignal.TO_PAYMENT_DASHBOARD)
            case NavigateBack():
                self._abandon_in_flight()
                self.navigation.put_nowait(NavigationSignal.BACK)
            case _:
                raise TypeError(f"Unknown wizard event: {event!r}")

        return self._state

    # Field updates

    def _update_field(self, name: str, value: str) -> None:
        form = self._state.form
        if name not in form.TEXT_FIELDS:
            raise ValueError(f"Unknown {self.loan_type.value} field: {name}")
        if name in form.AMOUNT_FIELDS:
            value = sanitize_amount(value)
        self._apply_input(replace(form, **{name: value}), name)

    def _update_guarantor(self, name: str, value: str) -> None:
        form = self._paygo_form()
        self._apply_input(replace(form, guarantor=form.guarantor.with_value(name, value)), f"guarantor.{name}")

    def _select_category(self, category_id: str) -> None:
        form = self._paygo_form()
        if category_id == form.category and self._state.products:
            return
        self._apply_input(replace(form, category=category_id, product=None), "category", "product")
        self._set(products=(), is_loading=True)
        self._start("products", self._load_products(category_id, self._token()))

    def _select_product(self, product_id: str) -> None:
        form = self._paygo_form()
        product = next((p for p in self._state.products if p.id == product_id), None)
        if product is None:
            self._set(validation_errors={**self._state.validation_errors, "product": "Selected product is not available"})
            return
        self._apply_input(replace(form, product=product), "product")

    def _add_document(self, document) -> None:
        form = self._cash_form()
        check = validate_file(document.file_name, document.file_size, DocumentPurpose.DOCUMENT)
        if not check.is_valid:
            self._set(validation_errors={**self._state.validation_errors, "collateral_documents": check.message})
            return
        documents = tuple(d for d in form.collateral_documents if d.id != document.id) + (document,)
        self._apply_input(replace(form, collateral_documents=documents), "collateral_documents")

    def _remove_document(self, document_id: str) -> None:
        form = self._cash_form()
        documents = tuple(d for d in form.collateral_documents if d.id != document_id)
        if len(documents) != len(form.collateral_documents):
            self._apply_input(replace(form, collateral_documents=documents))

    def _apply_input(self, form, *cleared: str) -> None:
        """Store changed inputs: clear their errors, drop stale terms and schedule an auto-save"""
        state = self._state
        errors = {
            key: message
            for key, message in state.validation_errors.items()
            if not any(key == name or key.startswith(f"{name}.") for name in cleared)
        }
        self._set(
            form=form,
            validation_errors=errors,
            calculated_terms=None,
            terms_accepted=False,
            version=state.version + 1,
        )
        self._schedule_autosave()

    # Navigation

    def _next_step(self) -> None:
        state = self._state
        step = state.step
        errors = step_errors(state, step)
        if errors:
            self._set(validation_errors={**state.validation_errors, **errors}, error_message=FIX_ERRORS)
            return

        following = step.next()
        if following is None:
            return
        if not can_enter(state, following):
            self._set(validation_errors={**state.validation_errors, "terms": TERMS_REQUIRED}, error_message=TERMS_REQUIRED)
            return

        remaining = {key: message for key, message in state.validation_errors.items() if not self.flow.owns_error(step, key)}
        self._set(current_step=following.number, validation_errors=remaining, error_message=None, error_category=None)
        step_transition_counter.labels(loan_type=self.loan_type.value, direction="next").inc()
        log_wizard_event(self.user_id, self.loan_type.value, "next_step", step.number, to_step=following.number)
        self._schedule_autosave()

    def _previous_step(self) -> None:
        state = self._state
        previous = state.step.previous()
        if previous is None:
            return
        remaining = {key: message for key, message in state.validation_errors.items() if not self.flow.owns_error(state.step, key)}
        self._set(current_step=previous.number, validation_errors=remaining)
        step_transition_counter.labels(loan_type=self.loan_type.value, direction="previous").inc()
        self._schedule_autosave()

    def _navigate_to(self, number: int) -> None:
        state = self._state
        target = type(state.step).from_number(number)
        if target.number > state.current_step and not can_enter(state, target):
            blocking = next(
                (errors for earlier in self.flow.steps[: self.flow.steps.index(target)] if (errors := step_errors(state, earlier))),
                {"terms": TERMS_REQUIRED},
            )
            self._set(validation_errors={**state.validation_errors, **blocking}, error_message=FIX_ERRORS)
            return
        self._set(current_step=target.number)
        step_transition_counter.labels(loan_type=self.loan_type.value, direction="jump").inc()
        self._schedule_autosave()

    # Terms

    def _calculate_terms(self) -> None:
        state = self._state
        if not all_data_steps_valid(state):
            errors = {}
            for step in self.flow.data_steps:
                errors.update(step_errors(state, step))
            self._set(validation_errors={**state.validation_errors, **errors}, error_message=FIX_ERRORS)
            return

        request = self._terms_request()
        self._set(is_calculating=True, error_message=None, error_category=None)
        self._start("calculate", self._run_calculation(request, self._token()))

    async def _run_calculation(self, request: TermsRequest, token: RequestToken) -> None:
        remote = self.use_remote_terms
        if remote:
            result = await self.remote.calculate_terms(request)
        else:
            try:
                result = Result.ok(self.calculator.calculate(request, start_date=self.clock().date()))
            except CalculationError as e:
                result = Result.fail(str(e), ErrorCategory.VALIDATION)
        record_terms_calculation(self.loan_type.value, remote, bool(result))

        if not self._is_current(token):
            logging.info("Discarding stale terms", extra={"user_id": self.user_id, "token_version": token.version})
            if token.generation == self._generation:
                self._set(is_calculating=False)
            return

        if result:
            self._set(calculated_terms=result.value, terms_accepted=False, is_calculating=False)
            log_wizard_event(self.user_id, self.loan_type.value, "terms_calculated", self._state.current_step)
            self._schedule_autosave()
        else:
            self._set(is_calculating=False)
            self._fail(result)

    def _accept_terms(self, accepted: bool) -> None:
        state = self._state
        if state.calculated_terms is None:
            self._set(validation_errors={**state.validation_errors, "terms": TERMS_REQUIRED}, error_message=TERMS_REQUIRED)
            return
        errors = {key: message for key, message in state.validation_errors.items() if key != "terms_accepted"}
        self._set(terms_accepted=accepted, validation_errors=errors)
        self._schedule_autosave()

    def _terms_request(self) -> TermsRequest:
        form = self._state.form
        if isinstance(form, CashLoanForm):
            return CashTermsRequest(
                principal=parse_amount(form.loan_amount),
                repayment_period=form.repayment_period,
                employer_industry=form.employer_industry,
                monthly_income=parse_amount(form.monthly_income),
            )
        return PayGoTermsRequest(
            product=form.product,
            repayment_period=form.repayment_period,
            salary_band=form.salary_band,
            usage_per_day=form.usage_per_day,
        )

    # Submission

    def _submit(self) -> None:
        state = self._state
        if not can_submit_application(state):
            errors = {}
            for step in self.flow.steps[: self.flow.steps.index(state.step) + 1]:
                errors.update(step_errors(state, step))
            if not self.flow.is_review_step(state.step) and not errors:
                errors = {"terms": TERMS_REQUIRED}
            self._set(validation_errors={**state.validation_errors, **errors}, error_message=FIX_ERRORS)
            return

        self._cancel_autosave()
        self._set(is_submitting=True, error_message=None, error_category=None)
        self._start("submit", self._run_submission(self._token()))

    async def _run_submission(self, token: RequestToken) -> None:
        application = self._application(status=ApplicationStatus.SUBMITTED, submitted_at=self.clock())
        started = time.time()
        result = await self.remote.submit_application(application)
        duration_ms = (time.time() - started) * 1000

        if token.generation != self._generation:
            logging.info("Discarding submission result for a closed session", extra={"user_id": self.user_id})
            return

        record_submission(self.loan_type.value, bool(result))
        if not result:
            log_submission(self.user_id, self.loan_type.value, False, duration_ms, error_category=result.category.value)
            self._set(is_submitting=False)
            self._fail(result)
            return

        receipt = result.value
        log_submission(self.user_id, self.loan_type.value, True, duration_ms, application_id=receipt.application_id)
        try:
            await self._discard_draft()
        except PersistenceError as e:
            # Submission stands even when the draft cannot be removed
            logging.error("Failed to delete submitted draft", extra={"user_id": self.user_id, "error": str(e)})

        self._generation += 1
        self._state = replace(
            self._fresh_state(),
            status=ApplicationStatus.SUBMITTED,
            application_id=receipt.application_id,
        )
        self.navigation.put_nowait(NavigationSignal.TO_LOAN_HISTORY)

    # Drafts

    async def _save_draft(self) -> None:
        self._cancel_autosave()
        self._set(is_saving=True)
        try:
            saved = await self.drafts.save_draft(self._application())
        except PersistenceError as e:
            draft_save_failure_counter.labels(mode="explicit").inc()
            logging.error("Failed to save draft", extra={"user_id": self.user_id, "error": str(e)})
            self._set(is_saving=False, error_message=f"Failed to save draft: {e}")
            return
        self._set(is_saving=False, draft_id=saved.id, created_at=saved.created_at, last_saved_at=self.clock())

    def _schedule_autosave(self) -> None:
        self._cancel_autosave()
        self._autosave_task = asyncio.create_task(self._autosave(self._token()))

    def _cancel_autosave(self) -> None:
        if self._autosave_task is not None and not self._autosave_task.done():
            self._autosave_task.cancel()
        self._autosave_task = None

    async def _autosave(self, token: RequestToken) -> None:
        await asyncio.sleep(self.autosave_delay)
        if token.generation != self._generation or self._state.is_submitting:
            return
        try:
            saved = await self.drafts.save_draft(self._application())
        except PersistenceError as e:
            draft_save_failure_counter.labels(mode="autosave").inc()
            logging.warning("Auto-save failed", extra={"user_id": self.user_id, "loan_type": self.loan_type.value, "error": str(e)})
            return
        if token.generation == self._generation:
            self._state = replace(self._state, draft_id=saved.id, created_at=saved.created_at, last_saved_at=self.clock())

    async def _discard_draft(self) -> None:
        draft_id = self._state.draft_id
        if not draft_id:
            # An auto-save may have stored the draft before its id reached the state
            stored = await self.drafts.get_draft(self.user_id, self.loan_type)
            draft_id = stored.id if stored is not None else ""
        if draft_id:
            await self.drafts.delete_draft(draft_id)

    async def _cancel(self) -> None:
        self._abandon_in_flight()
        try:
            await self._discard_draft()
        except PersistenceError as e:
            logging.error("Failed to delete draft on cancel", extra={"user_id": self.user_id, "error": str(e)})
            self._set(error_message=f"Failed to cancel application: {e}")
            return
        self._state = self._fresh_state()
        log_wizard_event(self.user_id, self.loan_type.value, "cancelled", self._state.current_step)
        self.navigation.put_nowait(NavigationSignal.BACK)

    # Helpers

    def _set(self, **changes) -> None:
        updated = clamp_to_reachable(replace(self._state, **changes))
        if updated.current_step < self._state.current_step and "current_step" not in changes:
            step_transition_counter.labels(loan_type=self.loan_type.value, direction="clamped").inc()
        self._state = updated

    def _fail(self, result: Result) -> None:
        self._set(error_message=user_message(result.category, result.error), error_category=result.category)

    def _token(self) -> RequestToken:
        return RequestToken(generation=self._generation, version=self._state.version)

    def _is_current(self, token: RequestToken) -> bool:
        return token.generation == self._generation and token.version == self._state.version

    def _start(self, kind: str, coro) -> asyncio.Task:
        previous = self._tasks.pop(kind, None)
        if previous is not None and not previous.done():
            previous.cancel()
        task = asyncio.create_task(coro)
        self._tasks[kind] = task
        task.add_done_callback(lambda done: self._task_finished(kind, done))
        return task

    def _task_finished(self, kind: str, task: asyncio.Task) -> None:
        if self._tasks.get(kind) is task:
            del self._tasks[kind]
        if task.cancelled() or task.exception() is None:
            return
        logging.error(
            "Wizard request failed unexpectedly",
            exc_info=task.exception(),
            extra={"user_id": self.user_id, "request": kind},
        )
        self._set(
            is_loading=False,
            is_calculating=False,
            is_submitting=False,
            error_message=UNEXPECTED_ERROR,
            error_category=None,
        )

    def _abandon_in_flight(self) -> list:
        """Cancel requests and auto-save; late results are ignored through the bumped generation"""
        self._generation += 1
        pending = [task for task in self._tasks.values() if not task.done()]
        if self._autosave_task is not None and not self._autosave_task.done():
            pending.append(self._autosave_task)
        for task in pending:
            task.cancel()
        self._tasks.clear()
        self._autosave_task = None
        self._state = replace(self._state, is_loading=False, is_calculating=False, is_submitting=False, is_saving=False)
        return pending

    def _fresh_state(self) -> WizardState:
        initial = WizardState.initial(self.loan_type, self.user_id)
        return replace(initial, form_data=self._state.form_data, categories=self._state.categories)

    def _restore(self, draft: LoanApplication) -> None:
        form_type = CashLoanForm if self.loan_type == LoanType.CASH else PayGoLoanForm
        self._set(
            form=form_type.from_application(draft),
            draft_id=draft.id,
            created_at=draft.created_at,
            current_step=draft.current_step,
            calculated_terms=draft.calculated_terms,
            terms_accepted=draft.accepted_terms and draft.calculated_terms is not None,
            last_saved_at=draft.updated_at,
        )

    def _application(self, **overrides) -> LoanApplication:
        state = self._state
        values = dict(
            id=state.draft_id,
            status=ApplicationStatus.DRAFT,
            current_step=state.current_step,
            calculated_terms=state.calculated_terms,
            accepted_terms=state.terms_accepted,
            created_at=state.created_at,
            updated_at=self.clock(),
        )
        values.update(overrides)
        return state.form.to_application(self.user_id, **values)

    def _cash_form(self) -> CashLoanForm:
        if not isinstance(self._state.form, CashLoanForm):
            raise ValueError("Collateral documents only apply to cash loans")
        return self._state.form

    def _paygo_form(self) -> PayGoLoanForm:
        if not isinstance(self._state.form, PayGoLoanForm):
            raise ValueError("Products and guarantors only apply to PayGo loans")
        return self._state.form

    async def _load_products(self, category_id: str, token: RequestToken) -> None:
        result = await self.remote.get_category_products(category_id)
        if token.generation != self._generation or self._paygo_form().category != category_id:
            return
        if result:
            self._set(products=tuple(result.value), is_loading=False)
        else:
            self._set(is_loading=False)
            self._fail(result)
