"""JSON conversion of domain dataclasses through pydantic TypeAdapters"""

from functools import lru_cache
from typing import Any, Dict

from pydantic import TypeAdapter

from lending_core.domain.models import CashLoanApplication, LoanApplication, LoanType, PayGoLoanApplication

APPLICATION_TYPES = {LoanType.CASH: CashLoanApplication, LoanType.PAYGO: PayGoLoanApplication}


@lru_cache(maxsize=None)
def adapter(tp) -> TypeAdapter:
    return TypeAdapter(tp)


def to_json_dict(obj: Any, tp=None) -> Dict[str, Any]:
    """JSON-safe dict; Decimals become strings so amounts survive exactly"""
    return adapter(tp or type(obj)).dump_python(obj, mode="json")


def from_json(tp, data: Any):
    """
    Build a domain object from decoded JSON.

    Raises:
        pydantic.ValidationError: Data does not fit the type
    """
    return adapter(tp).validate_python(data)


def application_to_payload(application: LoanApplication) -> Dict[str, Any]:
    return to_json_dict(application)


def application_from_payload(loan_type: LoanType, payload: Dict[str, Any]) -> LoanApplication:
    return from_json(APPLICATION_TYPES[loan_type], payload)
