"""Dependency injection for FastAPI endpoints"""

from fastapi import Request
from lending_core.domain.terms import TermsCalculator

_calculator = TermsCalculator()


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_terms_calculator() -> TermsCalculator:
    """Provide the terms calculator used for server-side pricing"""
    return _calculator
