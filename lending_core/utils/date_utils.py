"""Date manipulation utilities"""

import re
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import List

WEEKS_PER_YEAR = 52
DAYS_PER_WEEK = 7

_PERIOD_PATTERN = re.compile(r"^\s*(\d+)\s*(month|months|year|years)?\s*$", re.IGNORECASE)


def parse_repayment_period(period: str | None) -> int | None:
    """
    Convert a repayment period label into months.

    "6 months" -> 6, "1 year" -> 12, "18" -> 18. Returns None for anything else.
    """
    if not period:
        return None
    match = _PERIOD_PATTERN.match(period)
    if not match:
        return None
    count = int(match.group(1))
    unit = (match.group(2) or "months").lower()
    months = count * 12 if unit.startswith("year") else count
    return months if months > 0 else None


def format_repayment_period(months: int) -> str:
    """Label shown in the period picker, e.g. 6 months or 1 year"""
    if months % 12 == 0:
        years = months // 12
        return "1 year" if years == 1 else f"{years} years"
    return "1 month" if months == 1 else f"{months} months"


def weeks_for_months(months: int) -> int:
    """Number of weekly installments covering a term of whole months"""
    weeks = (Decimal(months) * WEEKS_PER_YEAR / 12).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return max(int(weeks), 1)


def generate_due_dates(start: date, count: int, interval_days: int = DAYS_PER_WEEK) -> List[date]:
    """Due dates for `count` installments, the first one interval_days after start"""
    return [start + timedelta(days=interval_days * (i + 1)) for i in range(count)]


def days_between(start: date, end: date) -> int:
    """Signed whole days from start to end"""
    return (end - start).days
