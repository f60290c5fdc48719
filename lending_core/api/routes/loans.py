"""Loan endpoints: cash and PayGo form metadata, terms and applications"""

import logging
from decimal import Decimal
from typing import Any, Dict, List

from fastapi import APIRouter, Body, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from lending_core.api import catalog
from lending_core.api.dependencies import get_request_id, get_terms_calculator
from lending_core.api.routes.schemas import (
    ApplicationHistoryItem,
    ApplicationHistoryResponse,
    CashCalculateRequest,
    PayGoCalculateRequest,
    SubmissionResponse,
)
from lending_core.domain.flows import flow_for, review_errors
from lending_core.domain.forms import CashLoanForm, PayGoLoanForm
from lending_core.domain.models import (
    CashLoanFormData,
    CashTermsRequest,
    LoanApplication,
    LoanType,
    PayGoTermsRequest,
    ValidationResult,
)
from lending_core.domain.options import (
    CASH_REPAYMENT_PERIODS,
    EMPLOYER_INDUSTRIES,
    LOAN_PURPOSES,
    PAYGO_REPAYMENT_PERIODS,
    SALARY_BANDS,
    USAGE_OPTIONS,
)
from lending_core.domain.terms import TermsCalculator
from lending_core.domain.validation import (
    MAX_LOAN_AMOUNT,
    MIN_LOAN_AMOUNT,
    validate_choice,
    validate_loan_amount,
    validate_repayment_period,
)
from lending_core.infrastructure.database.repositories import ApplicationRepository
from lending_core.infrastructure.database.session import get_db
from lending_core.infrastructure.observability.metrics import record_submission
from lending_core.utils.serialization import application_from_payload, to_json_dict

router = APIRouter()


@router.get("/loans/cash/form-data")
def get_cash_form_data():
    """Options and bounds for the cash loan wizard"""
    form_data = CashLoanFormData(
        repayment_periods=CASH_REPAYMENT_PERIODS,
        loan_purposes=LOAN_PURPOSES,
        employer_industries=EMPLOYER_INDUSTRIES,
        min_loan_amount=MIN_LOAN_AMOUNT,
        max_loan_amount=MAX_LOAN_AMOUNT,
        min_collateral_value=Decimal("0"),
    )
    return JSONResponse(to_json_dict(form_data))


@router.post("/loans/cash/calculate")
def calculate_cash_terms(
    request: CashCalculateRequest,
    calculator: TermsCalculator = Depends(get_terms_calculator),
):
    """
    Server-side cash loan terms.

    Amounts are returned as strings so they round-trip exactly.
    """
    checks = [
        validate_loan_amount(request.loan_amount),
        validate_repayment_period(request.repayment_period, CASH_REPAYMENT_PERIODS),
    ]
    if request.employer_industry:
        checks.append(validate_choice(request.employer_industry, EMPLOYER_INDUSTRIES, "Employer industry"))
    _reject_invalid(checks)

    terms = calculator.calculate(
        CashTermsRequest(
            principal=request.loan_amount,
            repayment_period=request.repayment_period,
            employer_industry=request.employer_industry,
            monthly_income=request.monthly_income,
        )
    )
    return JSONResponse(to_json_dict(terms))


@router.post("/loans/cash/apply", response_model=SubmissionResponse)
def apply_cash_loan(
    payload: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    request_id: str = Depends(get_request_id),
):
    return _submit(LoanType.CASH, payload, db, request_id)


@router.get("/loans/paygo/categories")
def get_paygo_categories():
    return JSONResponse({"categories": [to_json_dict(c) for c in catalog.CATEGORIES]})


@router.get("/loans/paygo/categories/{category_id}/products")
def get_category_products(category_id: str):
    if catalog.get_category(category_id) is None:
        raise HTTPException(status_code=404, detail="Category not found")
    return JSONResponse({"products": [to_json_dict(p) for p in catalog.get_products(category_id)]})


@router.post("/loans/paygo/calculate")
def calculate_paygo_terms(
    request: PayGoCalculateRequest,
    calculator: TermsCalculator = Depends(get_terms_calculator),
):
    product = catalog.find_product(request.product_id)
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    if not product.is_available:
        raise HTTPException(status_code=400, detail="This product is currently unavailable")

    checks = [validate_repayment_period(request.repayment_period, PAYGO_REPAYMENT_PERIODS)]
    if request.salary_band:
        checks.append(validate_choice(request.salary_band, SALARY_BANDS, "Salary band"))
    if request.usage_per_day:
        checks.append(validate_choice(request.usage_per_day, USAGE_OPTIONS, "Usage per day"))
    _reject_invalid(checks)

    terms = calculator.calculate(
        PayGoTermsRequest(
            product=product,
            repayment_period=request.repayment_period,
            salary_band=request.salary_band,
            usage_per_day=request.usage_per_day,
        )
    )
    return JSONResponse(to_json_dict(terms))


@router.post("/loans/paygo/apply", response_model=SubmissionResponse)
def apply_paygo_loan(
    payload: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    request_id: str = Depends(get_request_id),
):
    return _submit(LoanType.PAYGO, payload, db, request_id)


@router.get("/loans/applications", response_model=ApplicationHistoryResponse)
def get_application_history(user_id: str, limit: int = 20, db: Session = Depends(get_db)):
    """Submitted applications for a user, newest first"""
    records = ApplicationRepository(db).get_by_user(user_id, limit=min(limit, 100))
    return ApplicationHistoryResponse(
        user_id=user_id,
        applications=[
            ApplicationHistoryItem(
                application_id=r.id,
                loan_type=r.loan_type,
                status=r.status,
                created_at=r.created_at.isoformat() if r.created_at else None,
            )
            for r in records
        ],
    )


def _reject_invalid(checks: List[ValidationResult]) -> None:
    """Answer 400 with the first failing rule's message"""
    failed = next((check for check in checks if not check.is_valid), None)
    if failed is not None:
        raise HTTPException(status_code=400, detail=failed.message)


def _submit(loan_type: LoanType, payload: Dict[str, Any], db: Session, request_id: str) -> SubmissionResponse:
    """
    Accept a finished application.

    Flow:
    1. Decode the application (422 when malformed)
    2. Re-run the wizard's step rules (400 with the first message)
    3. Reject a second pending application of the same type (409)
    4. Persist and acknowledge
    """
    try:
        application = application_from_payload(loan_type, payload)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=f"Invalid application: {e.errors()[0]['msg']}")

    errors = _application_errors(application)
    if errors:
        record_submission(loan_type.value, False)
        raise HTTPException(status_code=400, detail=next(iter(errors.values())))

    repo = ApplicationRepository(db)
    if repo.find_pending(application.user_id, loan_type.value) is not None:
        record_submission(loan_type.value, False)
        raise HTTPException(
            status_code=409,
            detail=f"You already have a pending {loan_type.value} loan application",
        )

    record = repo.create(application)
    db.commit()
    record_submission(loan_type.value, True)

    logging.info(
        "Application received",
        extra={
            "request_id": request_id,
            "user_id": application.user_id,
            "loan_type": loan_type.value,
            "application_id": record.id,
        },
    )
    return SubmissionResponse(
        application_id=record.id,
        status=record.status,
        message="Application submitted successfully",
    )


def _application_errors(application: LoanApplication) -> Dict[str, str]:
    flow = flow_for(application.loan_type)
    if application.loan_type == LoanType.CASH:
        form = CashLoanForm.from_application(application)
    else:
        form = PayGoLoanForm.from_application(application)
        if form.product is not None and catalog.find_product(form.product.id) is None:
            return {"product": "Product not found"}

    errors: Dict[str, str] = {}
    for step in flow.data_steps:
        errors.update(flow.field_errors(step, form))
    errors.update(review_errors(application.calculated_terms, application.accepted_terms))
    return errors
