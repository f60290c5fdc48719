"""Tagged success/failure results returned by the loan API boundary"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorCategory(str, Enum):
    """Machine-checkable reason a boundary call failed"""

    VALIDATION = "validation"
    CONFLICT = "conflict"
    SERVER = "server"
    NETWORK = "network"
    UNAUTHORIZED = "unauthorized"

    @property
    def retryable(self) -> bool:
        return self in (ErrorCategory.SERVER, ErrorCategory.NETWORK)


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Outcome of a boundary call.

    Usage:
        return Result.ok(terms)
        return Result.fail("Loan amount too high", ErrorCategory.VALIDATION)
    """

    success: bool
    value: Optional[T] = None
    error: Optional[str] = None
    category: Optional[ErrorCategory] = None

    @classmethod
    def ok(cls, value: T = None) -> "Result[T]":
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: str, category: ErrorCategory = ErrorCategory.SERVER) -> "Result[T]":
        return cls(success=False, error=error, category=category)

    def __bool__(self) -> bool:
        return self.success

    def unwrap(self) -> T:
        """
        Get the value of a successful result.

        Raises:
            ValueError: If the call failed
        """
        if not self.success:
            raise ValueError(f"Result unwrap failed: {self.error}")
        return self.value


def user_message(category: ErrorCategory | None, detail: str | None = None) -> str:
    """Message shown in the wizard's error banner for a failed boundary call"""
    if category == ErrorCategory.NETWORK:
        return "Network error. Please check your connection."
    if category == ErrorCategory.UNAUTHORIZED:
        return "Please log in again"
    if category in (ErrorCategory.VALIDATION, ErrorCategory.CONFLICT) and detail:
        return detail
    if category == ErrorCategory.SERVER:
        return "Server error. Please try again later."
    return detail or "An unexpected error occurred"
