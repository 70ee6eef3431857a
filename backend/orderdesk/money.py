from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal("0.01")


class AmountOutOfRange(ValueError):
    pass


def to_money(value) -> Decimal:
    """Normalize a numeric value to a 2-place Decimal (half-up)."""
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, bool):
        raise ValueError("amount must be numeric")
    elif isinstance(value, (int, str)):
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError("amount must be numeric")
    elif isinstance(value, float):
        amount = Decimal(repr(value))
    else:
        raise ValueError("amount must be numeric")
    if not amount.is_finite():
        raise ValueError("amount must be numeric")
    try:
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # More digits than the decimal context can hold
        raise AmountOutOfRange("amount is out of range")


def money_json(value) -> float | None:
    """Serialize a money column for JSON responses."""
    if value is None:
        return None
    return float(to_money(value))
