"""
Money and percentage helpers - every amount entering the core is a Decimal
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def to_money(value: Any) -> Decimal:
    """Parse a loosely-typed amount (str, int, float, Decimal) into cents"""
    if value is None or value == "":
        return ZERO
    if isinstance(value, bool):
        raise ValueError(f"Invalid amount: {value!r}")
    try:
        # str() first so floats parse to their shortest repr, not binary noise
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f"Invalid amount: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def to_optional_money(value: Any) -> Optional[Decimal]:
    """Like to_money, but blank input stays None"""
    if value is None or value == "":
        return None
    return to_money(value)


def percentage(part: Decimal, whole: Decimal) -> Decimal:
    """part / whole * 100, rounded to 2 places. A non-positive whole yields 0."""
    if whole <= 0:
        return ZERO
    return (part / whole * HUNDRED).quantize(CENTS, rounding=ROUND_HALF_UP)


def format_currency(amount: Decimal, currency: str = "SGD") -> str:
    """Format amount for alert messages, e.g. SGD 105,000.00"""
    return f"{currency} {amount:,.2f}"
