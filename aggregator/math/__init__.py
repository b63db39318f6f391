"""Numeric helpers for price comparison."""

from aggregator.math.decimal_utils import (
    DECIMAL_HIGH_PREC_CONTEXT,
    median,
    ratio,
    to_display,
)

__all__ = ["DECIMAL_HIGH_PREC_CONTEXT", "median", "ratio", "to_display"]
