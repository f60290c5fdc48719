"""Data access layer for drafts and submitted applications"""

import asyncio
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lending_core.domain.exceptions import PersistenceError
from lending_core.domain.models import ApplicationStatus, LoanApplication, LoanType
from lending_core.infrastructure.database.models import LoanApplicationDraft, SubmittedApplication
from lending_core.infrastructure.database.session import SessionLocal
from lending_core.utils.serialization import application_from_payload, application_to_payload

PENDING_STATUSES = (ApplicationStatus.SUBMITTED.value, ApplicationStatus.UNDER_REVIEW.value)


class DraftRepository:
    """Repository for in-progress application drafts"""

    def __init__(self, db: Session):
        self.db = db

    def upsert(self, user_id: str, loan_type: str, current_step: int, payload: Dict[str, Any]) -> LoanApplicationDraft:
        """Create or overwrite the single draft held for (user, loan type)"""
        draft = self.get(user_id, loan_type)
        if draft is None:
            draft = LoanApplicationDraft(user_id=user_id, loan_type=loan_type)
            self.db.add(draft)
        draft.current_step = current_step
        draft.payload = payload
        self.db.flush()  # Get ID without committing
        return draft

    def get(self, user_id: str, loan_type: str) -> Optional[LoanApplicationDraft]:
        return (
            self.db.query(LoanApplicationDraft)
            .filter(LoanApplicationDraft.user_id == user_id, LoanApplicationDraft.loan_type == loan_type)
            .first()
        )

    def delete(self, draft_id: str) -> bool:
        deleted = self.db.query(LoanApplicationDraft).filter(LoanApplicationDraft.id == draft_id).delete()
        return deleted > 0

    def count_for_user(self, user_id: str) -> int:
        return self.db.query(LoanApplicationDraft).filter(LoanApplicationDraft.user_id == user_id).count()


class ApplicationRepository:
    """Repository for applications received by the loan API"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, application: LoanApplication) -> SubmittedApplication:
        record = SubmittedApplication(
            user_id=application.user_id,
            loan_type=application.loan_type.value,
            status=ApplicationStatus.SUBMITTED.value,
            payload=application_to_payload(application),
        )
        self.db.add(record)
        self.db.flush()
        return record

    def find_pending(self, user_id: str, loan_type: str) -> Optional[SubmittedApplication]:
        """Application of this type still awaiting a lender decision"""
        return (
            self.db.query(SubmittedApplication)
            .filter(
                SubmittedApplication.user_id == user_id,
                SubmittedApplication.loan_type == loan_type,
                SubmittedApplication.status.in_(PENDING_STATUSES),
            )
            .first()
        )

    def get_by_user(self, user_id: str, limit: int = 20) -> List[SubmittedApplication]:
        return (
            self.db.query(SubmittedApplication)
            .filter(SubmittedApplication.user_id == user_id)
            .order_by(SubmittedApplication.created_at.desc())
            .limit(limit)
            .all()
        )


class SqlDraftStore:
    """
    DraftStore backed by SQLAlchemy.

    Each call runs in its own session on a worker thread and commits before
    returning, so the event loop is never blocked on the database.
    SQLAlchemy failures surface as PersistenceError.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    async def save_draft(self, application: LoanApplication) -> LoanApplication:
        created_at = application.created_at or datetime.now(timezone.utc)
        draft_id = await asyncio.to_thread(self._save, replace(application, id="", created_at=created_at))
        logging.debug("Draft saved", extra={"user_id": application.user_id, "draft_id": draft_id})
        return replace(application, id=draft_id, created_at=created_at)

    async def get_draft(self, user_id: str, loan_type: LoanType) -> Optional[LoanApplication]:
        found = await asyncio.to_thread(self._load, user_id, loan_type)
        if found is None:
            return None
        draft_id, payload = found
        return replace(application_from_payload(loan_type, payload), id=draft_id)

    async def delete_draft(self, draft_id: str) -> None:
        await asyncio.to_thread(self._delete, draft_id)

    def _save(self, application: LoanApplication) -> str:
        try:
            with self.session_factory() as db:
                draft = DraftRepository(db).upsert(
                    user_id=application.user_id,
                    loan_type=application.loan_type.value,
                    current_step=application.current_step,
                    payload=application_to_payload(application),
                )
                draft_id = draft.id
                db.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not save draft: {e}") from e
        return draft_id

    def _load(self, user_id: str, loan_type: LoanType) -> Optional[Tuple[str, Dict[str, Any]]]:
        try:
            with self.session_factory() as db:
                draft = DraftRepository(db).get(user_id, loan_type.value)
                if draft is None:
                    return None
                return draft.id, draft.payload
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not load draft: {e}") from e

    def _delete(self, draft_id: str) -> None:
        try:
            with self.session_factory() as db:
                DraftRepository(db).delete(draft_id)
                db.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not delete draft: {e}") from e
