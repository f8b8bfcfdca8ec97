"""Decimal helpers for monetary arithmetic.

All money in ledgerkit is ``Decimal``; binary floats never touch a balance.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Union

CENT = Decimal("0.01")
ZERO = Decimal("0")

Number = Union[Decimal, int, str]


def to_decimal(value: Optional[Number]) -> Decimal:
    """Convert a value to Decimal.

    None and empty strings become zero. Floats are rejected so that binary
    rounding errors cannot leak into ledger amounts.

    Raises:
        ValueError: If the value is a float or not a number
    """
    if value is None or value == "":
        return ZERO
    if isinstance(value, float):
        raise ValueError(f"Refusing float amount {value!r}; pass a str or Decimal")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).strip())
    except InvalidOperation as e:
        raise ValueError(f"Invalid decimal value '{value}'") from e


def quantize(value: Number) -> Decimal:
    """Round to exactly two fraction digits (half up)."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_fixed(value: Number) -> str:
    """Format with exactly two fraction digits."""
    return f"{quantize(value):.2f}"

