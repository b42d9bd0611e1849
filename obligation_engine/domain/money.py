"""Currency helpers: amounts live as integer cents inside the engine"""

import math
from decimal import ROUND_HALF_UP, Decimal


def safe_cents(amount: float | int | None) -> int:
    """Treat missing, NaN, infinite or negative cent values as zero"""
    if amount is None:
        return 0
    try:
        value = float(amount)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(value) or value < 0:
        return 0
    return int(value)


def round_cents(value: float) -> int:
    """Round a fractional cent value (e.g. a 15% estimate) half-up to whole cents"""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_dollars(cents: int, decimals: int = 2) -> str:
    """Human-readable dollar string for recommendation text, e.g. $1,250.00 or -$12.00"""
    sign = "-" if cents < 0 else ""
    return f"{sign}${abs(cents) / 100:,.{decimals}f}"
