# Overview: Decimal helpers for currency amounts.

"""
Amounts are carried as Decimal end to end. Arithmetic never rounds; values are
quantized to cents exactly once, when they are written to a Numeric(12, 2)
column, and converted to float only when serialized to JSON.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")

# Upper bound for any single rate or amount accepted from clients
MAX_AMOUNT = Decimal("9999999.99")


def to_decimal(value, *, field: str = "amount") -> Decimal:
    """Coerce int/float/str/Decimal into Decimal; floats go through str() to avoid binary noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or value is None:
        raise ValueError(f"{field} must be a number")
    if isinstance(value, float):
        value = repr(value)
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f"{field} must be a number")
    if not result.is_finite():
        raise ValueError(f"{field} must be a finite number")
    return result


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def as_float(value) -> float | None:
    if value is None:
        return None
    return float(value)
