"""
Monetary helpers

Money is always Decimal, quantized to two places with banker's rounding.
Floats never enter a calculation.
"""

from decimal import Decimal, ROUND_HALF_EVEN
from typing import Iterable, Union

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Union[Decimal, int, str, float, None]) -> Decimal:
    """Coerce a value to a two-place Decimal"""
    if value is None:
        return ZERO
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_EVEN)


def money_sum(values: Iterable[Union[Decimal, int, str, None]]) -> Decimal:
    total = ZERO
    for value in values:
        total += to_money(value)
    return total


def within_tolerance(a: Decimal, b: Decimal, tolerance: Decimal) -> bool:
    return abs(to_money(a) - to_money(b)) <= tolerance
