"""Route aggregator error classes.

Only CallerInputError ever reaches a get_routes caller. The others are
raised at I/O boundaries and folded into "route absent" outcomes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from aggregator.models.token import TokenKey


class AggregatorError(Exception):
    """Base error for route aggregation."""

    pass


class CallerInputError(AggregatorError, ValueError):
    """Malformed route request; raised before any network call."""

    pass


class DecimalResolutionError(AggregatorError):
    """A token's decimals could not be read on-chain."""

    def __init__(self, token: TokenKey, reason: str) -> None:
        super().__init__(f"Cannot resolve decimals for {token}: {reason}")
        self.token = token
        self.reason = reason
