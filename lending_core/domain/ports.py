"""Boundaries the wizard depends on: draft persistence and the remote loan API"""

from typing import List, Optional, Protocol

from lending_core.domain.models import (
    CalculatedTerms,
    CashLoanFormData,
    LoanApplication,
    LoanType,
    PayGoCategory,
    PayGoProduct,
    SubmissionReceipt,
    TermsRequest,
)
from lending_core.domain.result import Result


class DraftStore(Protocol):
    """
    Keeps at most one unsubmitted application per (user, loan type).

    Implementations raise PersistenceError when storage fails.
    """

    async def save_draft(self, application: LoanApplication) -> LoanApplication:
        """Upsert the draft for the application's user and loan type; returns it with a stable id"""
        ...

    async def get_draft(self, user_id: str, loan_type: LoanType) -> Optional[LoanApplication]:
        ...

    async def delete_draft(self, draft_id: str) -> None:
        ...


class RemoteLoanService(Protocol):
    """Loan API calls; every call returns a Result instead of raising"""

    async def get_form_data(self) -> Result[CashLoanFormData]:
        ...

    async def calculate_terms(self, request: TermsRequest) -> Result[CalculatedTerms]:
        ...

    async def submit_application(self, application: LoanApplication) -> Result[SubmissionReceipt]:
        ...

    async def get_paygo_categories(self) -> Result[List[PayGoCategory]]:
        ...

    async def get_category_products(self, category_id: str) -> Result[List[PayGoProduct]]:
        ...
