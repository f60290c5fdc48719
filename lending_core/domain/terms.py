"""Loan terms calculation: rates, fees, amortised installments and early payoff"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Dict, List, Tuple

from lending_core.config import settings
from lending_core.domain.exceptions import CalculationError
from lending_core.domain.models import (
    CalculatedTerms,
    CashLoanTerms,
    CashTermsRequest,
    EarlyPayoffCalculation,
    Installment,
    PayGoLoanTerms,
    PayGoTermsRequest,
    TermsRequest,
)
from lending_core.utils.date_utils import DAYS_PER_WEEK, WEEKS_PER_YEAR, parse_repayment_period, weeks_for_months
from lending_core.utils.money import ZERO, round_money


@dataclass(frozen=True)
class RateTable:
    """Pricing inputs for the terms calculator; rates are annual fractions"""

    # (max term in months, annual rate); longer terms fall through to cash_max_rate
    cash_rate_brackets: Tuple[Tuple[int, Decimal], ...] = (
        (3, Decimal("0.18")),
        (6, Decimal("0.24")),
        (12, Decimal("0.30")),
    )
    cash_max_rate: Decimal = Decimal("0.36")
    industry_adjustments: Dict[str, Decimal] = field(
        default_factory=lambda: {
            "Agriculture & Farming": Decimal("0.02"),
            "Mining & Extraction": Decimal("0.02"),
            "Construction": Decimal("0.01"),
            "Hospitality & Tourism": Decimal("0.01"),
            "Banking & Financial Services": Decimal("-0.01"),
            "Government & Public Sector": Decimal("-0.02"),
        }
    )
    cash_admin_fee_rate: Decimal = Decimal("0.03")
    cash_min_admin_fee: Decimal = Decimal("5.00")

    paygo_base_rate: Decimal = Decimal("0.20")
    salary_band_adjustments: Dict[str, Decimal] = field(
        default_factory=lambda: {
            "Below $300": Decimal("0.06"),
            "$300 - $500": Decimal("0.04"),
            "$500 - $1,000": Decimal("0.02"),
        }
    )
    paygo_admin_fee_rate: Decimal = Decimal("0")

    def cash_rate(self, term_months: int, employer_industry: str = "") -> Decimal:
        base = self.cash_max_rate
        for max_months, rate in self.cash_rate_brackets:
            if term_months <= max_months:
                base = rate
                break
        return base + self.industry_adjustments.get(employer_industry, ZERO)

    def paygo_rate(self, salary_band: str = "") -> Decimal:
        return self.paygo_base_rate + self.salary_band_adjustments.get(salary_band, ZERO)


DEFAULT_RATE_TABLE = RateTable()


def equal_installment(financed: Decimal, annual_rate: Decimal, periods: int) -> Decimal:
    """
    Unrounded installment that repays `financed` over `periods` weekly payments.

    Standard amortisation: A = F * i / (1 - (1 + i) ** -n) with i = annual_rate / 52.
    A zero rate degenerates to F / n.
    """
    if periods <= 0:
        raise CalculationError("Term must be at least one installment")
    weekly_rate = Decimal(annual_rate) / WEEKS_PER_YEAR
    if weekly_rate == 0:
        return financed / periods
    return financed * weekly_rate / (1 - (1 + weekly_rate) ** -periods)


class TermsCalculator:
    """Pure terms calculation against a fixed rate table"""

    def __init__(self, rate_table: RateTable = DEFAULT_RATE_TABLE):
        self.rate_table = rate_table

    def calculate(self, request: TermsRequest, start_date: date | None = None) -> CalculatedTerms:
        """
        Compute repayment terms for a cash or PayGo loan request.

        Rounding happens once, on the weekly installment. Everything else is
        derived from the rounded installment so that
        total_cost == weekly_payment * number_of_weeks == loan_amount + total_interest + fees.

        Raises:
            CalculationError: Non-positive principal or an unusable repayment period
        """
        match request:
            case CashTermsRequest():
                return self._cash_terms(request, start_date)
            case PayGoTermsRequest():
                return self._paygo_terms(request, start_date)
            case _:
                raise CalculationError(f"Unsupported terms request: {type(request).__name__}")

    def _cash_terms(self, request: CashTermsRequest, start_date: date | None) -> CashLoanTerms:
        principal = Decimal(request.principal)
        months = self._term_months(request.repayment_period)
        if principal <= 0:
            raise CalculationError("Loan amount must be greater than zero")

        rate = self.rate_table.cash_rate(months, request.employer_industry)
        admin_fee = round_money(max(principal * self.rate_table.cash_admin_fee_rate, self.rate_table.cash_min_admin_fee))
        values = self._amortise(principal, admin_fee, ZERO, rate, months, start_date)
        return CashLoanTerms(**values)

    def _paygo_terms(self, request: PayGoTermsRequest, start_date: date | None) -> PayGoLoanTerms:
        principal = Decimal(request.product.price)
        months = self._term_months(request.repayment_period)
        if principal <= 0:
            raise CalculationError("Product price must be greater than zero")

        rate = self.rate_table.paygo_rate(request.salary_band)
        admin_fee = round_money(principal * self.rate_table.paygo_admin_fee_rate)
        installation_fee = round_money(request.product.installation_fee or ZERO)
        values = self._amortise(principal, admin_fee, installation_fee, rate, months, start_date)
        return PayGoLoanTerms(**values, installation_fee=installation_fee)

    @staticmethod
    def _term_months(repayment_period: str) -> int:
        months = parse_repayment_period(repayment_period)
        if months is None:
            raise CalculationError(f"Invalid repayment period: {repayment_period!r}")
        return months

    @staticmethod
    def _amortise(
        principal: Decimal,
        admin_fee: Decimal,
        installation_fee: Decimal,
        rate: Decimal,
        months: int,
        start_date: date | None,
    ) -> dict:
        weeks = weeks_for_months(months)
        weekly_payment = round_money(equal_installment(principal + admin_fee + installation_fee, rate, weeks))
        total_cost = weekly_payment * weeks
        start = start_date or date.today()

        return {
            "loan_amount": round_money(principal),
            "interest_rate": rate,
            "admin_fee": admin_fee,
            "weekly_payment": weekly_payment,
            "monthly_payment": round_money(total_cost / months),
            "number_of_weeks": weeks,
            "term_months": months,
            "total_interest": total_cost - round_money(principal) - admin_fee - installation_fee,
            "total_cost": total_cost,
            "first_payment_date": start + timedelta(days=DAYS_PER_WEEK),
            "final_payment_date": start + timedelta(days=DAYS_PER_WEEK * weeks),
        }


def calculate_early_payoff(
    loan_id: str,
    schedule: List[Installment],
    payments_made: int,
    as_of: date,
    penalties: Decimal = ZERO,
    rebate_fraction: Decimal | float | None = None,
    calculated_at: datetime | None = None,
) -> EarlyPayoffCalculation:
    """
    Price settling a loan early.

    Requirements:
    - current_balance = scheduled amounts not yet paid + outstanding penalties
    - Interest of every remaining period that has started by as_of is owed in full
    - savings = (scheduled remaining interest - interest owed) * rebate_fraction
    - early_payoff_amount = current_balance - savings

    Paying on schedule makes both the payoff amount and the savings shrink
    with every installment.

    Args:
        loan_id: Loan being priced
        schedule: Full repayment schedule of the loan
        payments_made: Number of installments already paid, in order
        as_of: Payoff date
        penalties: Accrued, unpaid penalties
        rebate_fraction: Share of unearned interest credited (default: settings)
        calculated_at: Timestamp stored on the result (default: now, UTC)

    Raises:
        CalculationError: Negative payments count or a rebate outside [0, 1]
    """
    if payments_made < 0:
        raise CalculationError("Payments made cannot be negative")
    rebate = Decimal(str(settings.early_payoff_rebate_fraction if rebate_fraction is None else rebate_fraction))
    if not ZERO <= rebate <= 1:
        raise CalculationError("Rebate fraction must be between 0 and 1")

    remaining = schedule[payments_made:]
    period = timedelta(days=DAYS_PER_WEEK)

    current_balance = sum((inst.amount for inst in remaining), ZERO) + penalties
    scheduled_interest = sum((inst.interest for inst in remaining), ZERO)
    interest_owed = sum((inst.interest for inst in remaining if inst.due_date - period <= as_of), ZERO)

    savings = round_money((scheduled_interest - interest_owed) * rebate)
    return EarlyPayoffCalculation(
        loan_id=loan_id,
        current_balance=round_money(current_balance),
        early_payoff_amount=round_money(current_balance - savings),
        savings_amount=savings,
        calculated_at=calculated_at or datetime.now(timezone.utc),
    )


class EarlyPayoffCache:
    """
    Early payoff snapshots keyed by loan id.

    An entry is served until it is older than the staleness window or the
    loan's current balance no longer matches the cached one.
    """

    def __init__(
        self,
        staleness_seconds: int | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.staleness = timedelta(seconds=settings.early_payoff_staleness_seconds if staleness_seconds is None else staleness_seconds)
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._entries: Dict[str, EarlyPayoffCalculation] = {}

    def get(self, loan_id: str, current_balance: Decimal | None = None) -> EarlyPayoffCalculation | None:
        entry = self._entries.get(loan_id)
        if entry is None:
            return None
        if self.clock() - entry.calculated_at > self.staleness:
            del self._entries[loan_id]
            return None
        if current_balance is not None and round_money(current_balance) != entry.current_balance:
            logging.info(
                "Early payoff cache invalidated by balance change",
                extra={"loan_id": loan_id, "cached_balance": str(entry.current_balance), "current_balance": str(current_balance)},
            )
            del self._entries[loan_id]
            return None
        return entry

    def put(self, calculation: EarlyPayoffCalculation) -> None:
        self._entries[calculation.loan_id] = calculation

    def invalidate(self, loan_id: str) -> None:
        self._entries.pop(loan_id, None)

    def get_or_calculate(
        self,
        loan_id: str,
        current_balance: Decimal | None,
        calculate: Callable[[], EarlyPayoffCalculation],
    ) -> EarlyPayoffCalculation:
        cached = self.get(loan_id, current_balance)
        if cached is not None:
            return cached
        calculation = calculate()
        self.put(calculation)
        return calculation
