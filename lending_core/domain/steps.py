"""Wizard step sequences for each loan type"""

from enum import Enum


class _Step(Enum):
    def __init__(self, number: int, title: str):
        self.number = number
        self.title = title

    @classmethod
    def first(cls):
        return next(iter(cls))

    @classmethod
    def last(cls):
        return list(cls)[-1]

    @classmethod
    def from_number(cls, number: int):
        for step in cls:
            if step.number == number:
                return step
        raise ValueError(f"{cls.__name__} has no step {number}")

    def next(self):
        steps = list(type(self))
        index = steps.index(self)
        return steps[index + 1] if index + 1 < len(steps) else None

    def previous(self):
        steps = list(type(self))
        index = steps.index(self)
        return steps[index - 1] if index > 0 else None


class CashLoanStep(_Step):
    LOAN_DETAILS = (1, "Loan Details")
    INCOME_EMPLOYMENT = (2, "Income & Employment")
    COLLATERAL_INFO = (3, "Collateral Information")
    TERMS_REVIEW = (4, "Review Terms")
    CONFIRMATION = (5, "Confirmation")


class PayGoStep(_Step):
    CATEGORY_SELECTION = (1, "Select Category")
    PRODUCT_SELECTION = (2, "Select Product")
    APPLICATION_DETAILS = (3, "Application Details")
    GUARANTOR_INFO = (4, "Guarantor Information")
    TERMS_REVIEW = (5, "Review Terms")
