from __future__ import annotations

from decimal import Context, Decimal, ROUND_HALF_UP, localcontext
from typing import Final

# uint256 needs 78 decimal digits; anything narrower silently rounds share amounts.
AMOUNT_CONTEXT: Final[Context] = Context(prec=78, rounding=ROUND_HALF_UP)

ZERO: Final[Decimal] = Decimal(0)


def to_decimal_string(value: int) -> str:
    """Render an on-chain integer (uint256/int256) without any precision loss."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"Expected int, got {type(value).__name__}")
    return str(value)


def to_amount(value: Decimal | int | str | float | None) -> Decimal:
    """
    Coerce a stored value (NUMERIC, decimal string, int) into a Decimal.

    Floats go through `repr` so 0.1 stays 0.1 instead of its binary expansion.
    None is treated as zero, matching how empty snapshot columns are read.
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def mul(a: Decimal, b: Decimal) -> Decimal:
    with localcontext(AMOUNT_CONTEXT):
        return a * b


def add(*values: Decimal) -> Decimal:
    with localcontext(AMOUNT_CONTEXT):
        total = ZERO
        for v in values:
            total += v
        return total


def safe_ratio(numerator: Decimal, denominator: Decimal) -> Decimal:
    """numerator / denominator, or 0 when the denominator is 0."""
    if denominator == 0:
        return ZERO
    with localcontext(AMOUNT_CONTEXT):
        return numerator / denominator


def round_to(value: Decimal, places: int) -> Decimal:
    with localcontext(AMOUNT_CONTEXT):
        return value.quantize(Decimal(1).scaleb(-places))


def to_number(value: Decimal) -> float | int:
    """Output boundary: integral values stay ints, the rest become floats."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def sub(a: Decimal, b: Decimal) -> Decimal:
    with localcontext(AMOUNT_CONTEXT):
        return a - b
