"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class CalculationError(DomainException):
    """Terms could not be calculated from the given loan request"""

    pass


class PersistenceError(DomainException):
    """Draft could not be saved, loaded or deleted"""

    pass


class RemoteServiceError(DomainException):
    """Loan API call failed with a categorised reason"""

    def __init__(self, category, message: str, status_code: int | None = None):
        super().__init__(message)
        self.category = category
        self.message = message
        self.status_code = status_code
