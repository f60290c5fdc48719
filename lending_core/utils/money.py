"""Decimal money helpers"""

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal("0.01")
ZERO = Decimal("0")

_AMOUNT_CHARS = re.compile(r"[^0-9.]")


def round_money(value: Decimal) -> Decimal:
    """Round to cents, half-up"""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def sanitize_amount(raw: str) -> str:
    """Strip everything except digits and the decimal point from typed input"""
    return _AMOUNT_CHARS.sub("", raw or "")


def parse_amount(raw: str | Decimal | int | float | None) -> Decimal:
    """
    Parse a user-entered amount.

    Unparseable or blank input yields 0 so threshold checks fail instead of raising.
    """
    if raw is None:
        return ZERO
    if isinstance(raw, Decimal):
        return raw if raw.is_finite() else ZERO
    try:
        value = Decimal(str(raw).strip().replace(",", ""))
    except InvalidOperation:
        return ZERO
    return value if value.is_finite() else ZERO


def format_money(value: Decimal) -> str:
    """Render an amount as $1,234.50"""
    return f"${round_money(value):,.2f}"
