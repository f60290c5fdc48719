"""Pydantic schemas for API request/response validation"""

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class CashCalculateRequest(BaseModel):
    """Request body for POST /api/loans/cash/calculate"""

    loan_amount: Decimal = Field(..., gt=0, description="Requested principal")
    repayment_period: str = Field(..., min_length=1, description='Period label, e.g. "6 months"')
    employer_industry: str = ""
    monthly_income: Decimal = Decimal("0")


class PayGoCalculateRequest(BaseModel):
    """Request body for POST /api/loans/paygo/calculate"""

    product_id: str = Field(..., min_length=1)
    repayment_period: str = Field(..., min_length=1)
    salary_band: str = ""
    usage_per_day: str = ""


class SubmissionResponse(BaseModel):
    """Response for POST /api/loans/{type}/apply"""

    application_id: str
    status: str = "submitted"
    message: str = ""


class ApplicationHistoryItem(BaseModel):
    application_id: str
    loan_type: str
    status: str
    created_at: Optional[str] = None


class ApplicationHistoryResponse(BaseModel):
    """Response for GET /api/loans/applications"""

    user_id: str
    applications: List[ApplicationHistoryItem]
