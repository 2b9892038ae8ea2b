"""Rounding and safe-division helpers shared by the analyses."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

CURRENCY_PRECISION = Decimal("0.01")
PERCENTAGE_PRECISION = Decimal("0.01")
RATIO_PRECISION = Decimal("0.0001")

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def currency(value: Decimal) -> Decimal:
    return value.quantize(CURRENCY_PRECISION, rounding=ROUND_HALF_UP)


def percentage(value: Decimal) -> Decimal:
    return value.quantize(PERCENTAGE_PRECISION, rounding=ROUND_HALF_UP)


def ratio(value: Decimal) -> Decimal:
    return value.quantize(RATIO_PRECISION, rounding=ROUND_HALF_UP)


def divide_or_none(numerator: Decimal, denominator: Decimal | int) -> Decimal | None:
    """``numerator / denominator``, or ``None`` when the denominator is zero."""
    if denominator == 0:
        return None
    return Decimal(numerator) / Decimal(denominator)


def divide_or_zero(numerator: Decimal, denominator: Decimal | int) -> Decimal:
    """``numerator / denominator``, or zero when the denominator is zero."""
    if denominator == 0:
        return ZERO
    return Decimal(numerator) / Decimal(denominator)


def percent_change(current: Decimal, previous: Decimal | None) -> Decimal | None:
    """Growth from ``previous`` to ``current`` in percent; ``None`` without a denominator."""
    if previous is None or previous == 0:
        return None
    return percentage((Decimal(current) - Decimal(previous)) / Decimal(previous) * HUNDRED)
