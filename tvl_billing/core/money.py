"""Decimal helpers for currency amounts (two decimal places, half-up)."""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any


ZERO = Decimal("0")
HUNDRED = Decimal("100")
PAISA = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """
    Coerce a loosely-typed amount to Decimal.

    Missing, blank or non-numeric values become 0. Sign is preserved so
    negative amounts can still be rejected by the caller.

    Examples:
        >>> to_decimal("150.50")
        Decimal('150.50')
        >>> to_decimal(None)
        Decimal('0')
        >>> to_decimal("abc")
        Decimal('0')
    """
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip().replace(",", "")
        if not text:
            return ZERO
        try:
            result = Decimal(text)
        except InvalidOperation:
            return ZERO
    else:
        return ZERO

    if not result.is_finite():
        return ZERO
    return result


def quantize_money(amount: Decimal) -> Decimal:
    """Round to paisa using ROUND_HALF_UP."""
    return amount.quantize(PAISA, rounding=ROUND_HALF_UP)
