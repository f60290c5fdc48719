"""Weekly repayment schedule generation for calculated loan terms"""

from datetime import date
from decimal import Decimal
from typing import List

from lending_core.domain.models import CalculatedTerms, Installment
from lending_core.utils.date_utils import WEEKS_PER_YEAR, generate_due_dates
from lending_core.utils.money import round_money


def generate_repayment_schedule(terms: CalculatedTerms, start_date: date | None = None) -> List[Installment]:
    """
    Split calculated terms into weekly installments.

    Requirements:
    - number_of_weeks equal installments of weekly_payment, 7 days apart
    - Each installment's interest is charged on the outstanding financed balance
    - Last installment clears the balance and absorbs rounding drift, so
      amounts sum to total_cost and interest sums to total_interest

    Args:
        terms: Output of TermsCalculator.calculate
        start_date: Disbursement date (default: today)

    Returns:
        List of Installment objects with principal/interest split and running balance
    """
    if terms.number_of_weeks <= 0 or terms.total_cost <= 0:
        return []

    if start_date is None:
        start_date = date.today()

    weekly_rate = Decimal(terms.interest_rate) / WEEKS_PER_YEAR
    balance = terms.loan_amount + terms.total_fees
    due_dates = generate_due_dates(start_date, terms.number_of_weeks)

    installments = []
    for number, due_date in enumerate(due_dates, start=1):
        if number == terms.number_of_weeks:
            # Last installment clears whatever balance the rounding left behind
            principal = balance
            interest = terms.weekly_payment - principal
        else:
            interest = round_money(balance * weekly_rate)
            principal = terms.weekly_payment - interest
        balance = balance - principal

        installments.append(
            Installment(
                number=number,
                due_date=due_date,
                amount=terms.weekly_payment,
                principal=principal,
                interest=interest,
                balance=balance,
            )
        )

    return installments
