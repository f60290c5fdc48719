"""Pytest fixtures for testing"""

import asyncio
import pytest
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, Generator, List, Optional, Tuple
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from lending_core.api.main import create_app
from lending_core.config import Settings
from lending_core.domain.exceptions import PersistenceError
from lending_core.domain.models import (
    CashLoanFormData,
    CollateralDocument,
    LoanApplication,
    LoanType,
    PayGoCategory,
    PayGoProduct,
    SubmissionReceipt,
)
from lending_core.domain.options import CASH_REPAYMENT_PERIODS, EMPLOYER_INDUSTRIES, LOAN_PURPOSES
from lending_core.domain.result import ErrorCategory, Result
from lending_core.domain.terms import TermsCalculator
from lending_core.infrastructure.database.models import Base
from lending_core.infrastructure.database.session import get_db


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory(db: Session) -> sessionmaker:
    """Session factory bound to the test database, for stores that open their own sessions"""
    return TestingSessionLocal


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


class FakeClock:
    """Controllable replacement for datetime.now"""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeLoanService:
    """
    In-memory RemoteLoanService.

    Results can be replaced per test; setting a gate (asyncio.Event) holds
    calculate, submit and product calls until the gate is opened.
    """

    def __init__(self, products: List[PayGoProduct]):
        self.form_data_result: Result = Result.ok(
            CashLoanFormData(
                repayment_periods=CASH_REPAYMENT_PERIODS,
                loan_purposes=LOAN_PURPOSES,
                employer_industries=EMPLOYER_INDUSTRIES,
            )
        )
        self.categories_result: Result = Result.ok(
            [PayGoCategory(id="solar", name="Solar"), PayGoCategory(id="smartphones", name="Smartphones")]
        )
        self.products = products
        self.products_failure: Optional[Result] = None
        self.submit_result: Result = Result.ok(SubmissionReceipt(application_id="app-001"))
        self.calculate_result: Optional[Result] = None
        self.calculator = TermsCalculator()
        self.gate: Optional[asyncio.Event] = None

        self.submitted: List[LoanApplication] = []
        self.calculate_calls = 0
        self.product_calls: List[str] = []

    async def _wait(self) -> None:
        if self.gate is not None:
            await self.gate.wait()

    async def get_form_data(self) -> Result:
        return self.form_data_result

    async def calculate_terms(self, request) -> Result:
        self.calculate_calls += 1
        await self._wait()
        if self.calculate_result is not None:
            return self.calculate_result
        return Result.ok(self.calculator.calculate(request))

    async def submit_application(self, application) -> Result:
        await self._wait()
        self.submitted.append(application)
        return self.submit_result

    async def get_paygo_categories(self) -> Result:
        return self.categories_result

    async def get_category_products(self, category_id: str) -> Result:
        self.product_calls.append(category_id)
        await self._wait()
        if self.products_failure is not None:
            return self.products_failure
        return Result.ok([p for p in self.products if p.category == category_id])


class InMemoryDraftStore:
    """DraftStore keeping one draft per (user, loan type) in a dict"""

    def __init__(self):
        self.drafts: Dict[Tuple[str, LoanType], LoanApplication] = {}
        self.fail_saves = False
        self.fail_deletes = False
        self.fail_loads = False
        self.save_calls = 0
        self._next_id = 1

    async def save_draft(self, application: LoanApplication) -> LoanApplication:
        self.save_calls += 1
        if self.fail_saves:
            raise PersistenceError("disk full")
        key = (application.user_id, application.loan_type)
        existing = self.drafts.get(key)
        draft_id = existing.id if existing else f"draft-{self._next_id}"
        if existing is None:
            self._next_id += 1
        saved = replace(application, id=draft_id, created_at=application.created_at or datetime.now(timezone.utc))
        self.drafts[key] = saved
        return saved

    async def get_draft(self, user_id: str, loan_type: LoanType) -> Optional[LoanApplication]:
        if self.fail_loads:
            raise PersistenceError("storage unavailable")
        return self.drafts.get((user_id, loan_type))

    async def delete_draft(self, draft_id: str) -> None:
        if self.fail_deletes:
            raise PersistenceError("storage unavailable")
        self.drafts = {key: app for key, app in self.drafts.items() if app.id != draft_id}


@pytest.fixture
def solar_products() -> List[PayGoProduct]:
    return [
        PayGoProduct(
            id="P1",
            name="3KVA SOLAR HYBRID Backup System (405W-PV)",
            category="solar",
            price=Decimal("1850.00"),
            installation_fee=Decimal("150.00"),
        ),
        PayGoProduct(
            id="P2",
            name="3KVA SOLAR HYBRID Backup System (500W-PV)",
            category="solar",
            price=Decimal("2300.00"),
            installation_fee=Decimal("150.00"),
        ),
        PayGoProduct(id="P3", name="Galaxy A15 128GB", category="smartphones", price=Decimal("220.00")),
    ]


@pytest.fixture
def remote(solar_products: List[PayGoProduct]) -> FakeLoanService:
    return FakeLoanService(solar_products)


@pytest.fixture
def drafts() -> InMemoryDraftStore:
    return InMemoryDraftStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def test_settings() -> Settings:
    """Settings with auto-save pushed far enough out that it never fires mid-test"""
    return Settings(autosave_debounce_seconds=60, server_side_terms=False)


@pytest.fixture
def collateral_document() -> CollateralDocument:
    return CollateralDocument(
        id="doc-1",
        file_name="logbook.pdf",
        file_url="https://files.example.com/logbook.pdf",
        file_size=250_000,
        file_type="application/pdf",
    )
