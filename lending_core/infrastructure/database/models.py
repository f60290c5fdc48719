"""SQLAlchemy ORM models for drafts and submitted applications"""

import uuid
from sqlalchemy import Column, String, DateTime, Integer, Text, JSON, UniqueConstraint
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


class LoanApplicationDraft(Base):
    """In-progress application; one row per (user, loan type)"""

    __tablename__ = "loan_application_draft"
    __table_args__ = (UniqueConstraint("user_id", "loan_type", name="uq_draft_user_loan_type"),)

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(Text, nullable=False, index=True)
    loan_type = Column(String(16), nullable=False)
    current_step = Column(Integer, nullable=False, default=1)
    payload = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())


class SubmittedApplication(Base):
    """Application received by the loan API"""

    __tablename__ = "loan_application"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(Text, nullable=False, index=True)
    loan_type = Column(String(16), nullable=False)
    status = Column(String(32), nullable=False, default="submitted")
    payload = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
