"""Payment dashboard aggregation over a borrower's loans and schedules"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List

from lending_core.domain.models import (
    DashboardSummary,
    Loan,
    LoanStatus,
    PaymentSummary,
    ScheduledPayment,
    SummaryStatus,
)
from lending_core.utils.money import ZERO, round_money


def is_overdue(payment: ScheduledPayment, now: date) -> bool:
    """A payment is overdue iff its due date has passed and it has not been paid"""
    return payment.due_date < now and not payment.status.is_settled


def summarize_loan(loan: Loan, payments: Iterable[ScheduledPayment], now: date) -> PaymentSummary:
    """
    Project what a single loan owes as of `now`.

    Amount due = overdue unpaid installments + penalties + the next upcoming unpaid installment.
    """
    unpaid = sorted((p for p in payments if not p.status.is_settled), key=lambda p: (p.due_date, p.payment_number))
    overdue = [p for p in unpaid if p.due_date < now]
    upcoming = [p for p in unpaid if p.due_date >= now]
    next_payment = upcoming[0] if upcoming else None

    amount_due = sum((p.amount for p in overdue), ZERO) + loan.penalties
    if next_payment is not None:
        amount_due += next_payment.amount

    if overdue:
        status = SummaryStatus.OVERDUE
        due_date = overdue[0].due_date
    elif next_payment is not None:
        status = SummaryStatus.CURRENT
        due_date = next_payment.due_date
    else:
        status = SummaryStatus.PAID
        due_date = None

    return PaymentSummary(
        loan_id=loan.id,
        loan_type=loan.loan_type,
        product_name=loan.product_name,
        due_date=due_date,
        amount_due=round_money(amount_due),
        status=status,
        days_until_due=(next_payment.due_date - now).days if next_payment else 0,
        days_overdue=(now - overdue[0].due_date).days if overdue else 0,
        penalties=round_money(loan.penalties),
    )


def summarize(loans: Iterable[Loan], schedules: Iterable[ScheduledPayment], now: date) -> DashboardSummary:
    """
    Fold loans and their payment schedules into dashboard totals.

    Only active loans are summarised. The next payment is the earliest upcoming
    unpaid installment across all loans; its amount sums every installment due that day.
    """
    by_loan: Dict[str, List[ScheduledPayment]] = defaultdict(list)
    for payment in schedules:
        by_loan[payment.loan_id].append(payment)

    summaries = [
        summarize_loan(loan, by_loan.get(loan.id, []), now)
        for loan in loans
        if loan.status == LoanStatus.ACTIVE
    ]

    upcoming = [
        p
        for summary in summaries
        for p in by_loan.get(summary.loan_id, [])
        if not p.status.is_settled and p.due_date >= now
    ]
    next_payment_date = min((p.due_date for p in upcoming), default=None)
    next_payment_amount: Decimal = sum((p.amount for p in upcoming if p.due_date == next_payment_date), ZERO)

    return DashboardSummary(
        total_due=round_money(sum((s.amount_due for s in summaries), ZERO)),
        overdue_count=sum(1 for s in summaries if s.status == SummaryStatus.OVERDUE),
        current_count=sum(1 for s in summaries if s.status == SummaryStatus.CURRENT),
        next_payment_date=next_payment_date,
        next_payment_amount=round_money(next_payment_amount),
        summaries=summaries,
    )
