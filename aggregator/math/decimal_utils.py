"""Shared high-precision Decimal utilities for price calculations.

All Decimal arithmetic on token amounts must use a high-precision context to
avoid rounding artifacts with very large values (up to 10^77 for uint256).
"""

from __future__ import annotations

import decimal
from collections.abc import Sequence
from decimal import Decimal

# 78 digits of precision covers uint256 values (up to ~10^77)
DECIMAL_HIGH_PREC_CONTEXT = decimal.Context(prec=78)


def to_display(amount: int, decimals: int) -> Decimal:
    """Convert a base-unit amount to display units (amount / 10^decimals)."""
    with decimal.localcontext(DECIMAL_HIGH_PREC_CONTEXT):
        return Decimal(amount).scaleb(-decimals)


def ratio(
    numerator: int,
    numerator_decimals: int,
    denominator: int,
    denominator_decimals: int,
) -> Decimal:
    """Ratio of two base-unit amounts after normalizing each to display units.

    Raises:
        ZeroDivisionError: If denominator is zero
    """
    if denominator == 0:
        raise ZeroDivisionError("ratio denominator is zero")
    with decimal.localcontext(DECIMAL_HIGH_PREC_CONTEXT):
        return to_display(numerator, numerator_decimals) / to_display(
            denominator, denominator_decimals
        )


def median(values: Sequence[Decimal]) -> Decimal:
    """Median of a non-empty sequence (mean of the two middle values when even)."""
    if not values:
        raise ValueError("median of empty sequence")
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[mid]
    with decimal.localcontext(DECIMAL_HIGH_PREC_CONTEXT):
        return (ordered[mid - 1] + ordered[mid]) / 2


__all__ = [
    "DECIMAL_HIGH_PREC_CONTEXT",
    "median",
    "ratio",
    "to_display",
]
