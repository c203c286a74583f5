"""Cent rounding helpers"""

from decimal import Decimal, ROUND_HALF_UP, ROUND_CEILING
from fractions import Fraction
from typing import Union

Number = Union[int, Decimal, Fraction]


def _as_decimal(value: Number) -> Decimal:
    if isinstance(value, Fraction):
        return Decimal(value.numerator) / Decimal(value.denominator)
    return Decimal(value)


def round_half_up(value: Number) -> int:
    """Round an exact amount of cents to a whole cent, halves away from zero"""
    return int(_as_decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def round_up(value: Number) -> int:
    """Round an exact amount of cents up to the next whole cent"""
    return int(_as_decimal(value).quantize(Decimal("1"), rounding=ROUND_CEILING))


def rate(apr: float) -> Decimal:
    """APR float to an exact Decimal (0.1999 stays 0.1999, not its binary approximation)"""
    return Decimal(str(apr))


def format_cents(cents: int) -> str:
    """1234567 -> '$12,345.67'"""
    sign = "-" if cents < 0 else ""
    return f"{sign}${abs(cents) / 100:,.2f}"
