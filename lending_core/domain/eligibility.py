"""Eligibility checks for new loans and early payoff"""

from decimal import Decimal
from typing import Dict

from lending_core.domain.models import EligibilityResult, Loan, LoanStatus, LoanType
from lending_core.utils.money import ZERO, parse_amount, round_money

MIN_MONTHLY_INCOME = Decimal("500")
MIN_PAYGO_MONTHLY_INCOME = Decimal("300")
RECOMMENDED_CASH_INCOME = Decimal("1000")
MAX_ACTIVE_LOANS = 3

MIN_PAYMENTS_FOR_EARLY_PAYOFF: Dict[LoanType, int] = {LoanType.CASH: 2, LoanType.PAYGO: 4}
ESTIMATED_PAYOFF_SAVINGS_RATE = Decimal("0.05")


def check_loan_eligibility(loan_type: LoanType, monthly_income: Decimal | str, active_loans: int = 0) -> EligibilityResult:
    """
    Pre-check whether a borrower may open another loan.

    Requirements:
    - Monthly income of at least $500
    - At most 3 active loans
    - PayGo additionally needs $300 income; cash below $1,000 gets a recommendation
    """
    income = parse_amount(monthly_income)
    reasons = []
    recommendations = []

    if income < MIN_MONTHLY_INCOME:
        reasons.append("Minimum monthly income of $500 required")
        recommendations.append("Increase your income or consider a smaller loan amount")

    if active_loans >= MAX_ACTIVE_LOANS:
        reasons.append("Maximum of 3 active loans allowed")
        recommendations.append("Complete existing loans before applying for new ones")

    if loan_type == LoanType.CASH and income < RECOMMENDED_CASH_INCOME:
        recommendations.append("Higher income improves cash loan terms")
    if loan_type == LoanType.PAYGO and income < MIN_PAYGO_MONTHLY_INCOME:
        reasons.append("Minimum monthly income of $300 required for PayGo loans")

    return EligibilityResult(is_eligible=not reasons, reasons=reasons, recommendations=recommendations)


def check_early_payoff_eligibility(loan: Loan, payments_completed: int | None = None) -> EligibilityResult:
    """Whether a loan can be settled early, with a rough 5% savings estimate when it can"""
    if payments_completed is None:
        payments_completed = loan.payments_completed
    minimum = MIN_PAYMENTS_FOR_EARLY_PAYOFF[loan.loan_type]
    reasons = []

    if loan.status != LoanStatus.ACTIVE:
        reasons.append("Only active loans are eligible for early payoff")
    if payments_completed < minimum:
        reasons.append(f"Minimum {minimum} payments required for early payoff")
    if loan.remaining_balance <= 0:
        reasons.append("Loan is already fully paid")

    estimated = round_money(loan.remaining_balance * ESTIMATED_PAYOFF_SAVINGS_RATE) if not reasons else ZERO
    return EligibilityResult(is_eligible=not reasons, reasons=reasons, estimated_savings=estimated)
