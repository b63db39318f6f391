"""Base class and protocol for venue adapters.

A venue adapter quotes one hop through one kind of liquidity source. Adding
a venue means adding an adapter; the enumerator, fetcher, filter and ranker
only see this interface.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from aggregator.models.route import Hop, SwapMode
    from aggregator.models.token import Token
    from aggregator.tokens.decimals import DecimalResolution

PoolId = int | str | None


class FailureReason(str, Enum):
    """Why a hop produced no quote. All of these are routine outcomes."""

    NOT_FOUND = "NOT_FOUND"
    TIMEOUT = "TIMEOUT"
    REVERTED = "REVERTED"
    UNRESOLVED_DECIMALS = "UNRESOLVED_DECIMALS"
    INSUFFICIENT_LIQUIDITY = "INSUFFICIENT_LIQUIDITY"


@dataclass(frozen=True)
class HopQuote:
    """A successful hop quote in base units.

    Attributes:
        amount_in: Input amount (given for EXACT_IN, solved for EXACT_OUT)
        amount_out: Output amount (solved for EXACT_IN, given for EXACT_OUT)
        venue: Venue that would execute the hop
        pool: Pool or fee tier that would execute the hop
        sources: Underlying sources reached through an aggregator venue
    """

    amount_in: int
    amount_out: int
    venue: str
    pool: PoolId = None
    sources: tuple[str, ...] = ()


@dataclass(frozen=True)
class HopAlternatives:
    """Several independent quotes for one hop, each priced as its own route.

    Returned by adapters that learn one quote per underlying source from a
    single call, such as the aggregator contract.
    """

    quotes: tuple[HopQuote, ...]


@dataclass(frozen=True)
class HopFailure:
    """A hop that could not be quoted."""

    reason: FailureReason
    detail: str | None = None


HopOutcome = HopQuote | HopAlternatives | HopFailure


class VenueAdapter(Protocol):
    """Protocol for venue adapters.

    `pools_for` is a pure, synchronous guess at which pools plausibly exist
    for a pair; `quote_hop` does the I/O and reports a missing pool as
    HopFailure(NOT_FOUND) rather than raising. An adapter that learns several
    executable quotes from one call returns them all as HopAlternatives.
    """

    venue: str

    def pools_for(self, token_in: Token, token_out: Token) -> Sequence[PoolId]: ...

    async def quote_hop(
        self,
        hop: Hop,
        amount: int,
        mode: SwapMode,
        decimals: DecimalResolution,
    ) -> HopOutcome: ...


class BaseVenueAdapter:
    """Base class with the checks shared by every adapter.

    Subclasses set `venue` and implement `_pools_for` and `_quote`.
    """

    venue: str = ""

    def __init__(self, chain_id: int) -> None:
        self.chain_id = chain_id

    def pools_for(self, token_in: Token, token_out: Token) -> Sequence[PoolId]:
        if token_in.key == token_out.key:
            return ()
        if token_in.chain_id != self.chain_id or token_out.chain_id != self.chain_id:
            return ()
        return self._pools_for(token_in, token_out)

    def _pools_for(self, token_in: Token, token_out: Token) -> Sequence[PoolId]:
        return (None,)

    async def quote_hop(
        self,
        hop: Hop,
        amount: int,
        mode: SwapMode,
        decimals: DecimalResolution,
    ) -> HopOutcome:
        """Quote a hop after checking both tokens have resolved decimals.

        Args:
            hop: The hop to quote
            amount: Input amount for EXACT_IN, desired output for EXACT_OUT
            mode: Which side is fixed
            decimals: Decimals resolved for this query

        Returns:
            HopQuote or HopAlternatives in base units, or HopFailure
        """
        for token in (hop.token_in, hop.token_out):
            if not decimals.is_resolved(token):
                return HopFailure(FailureReason.UNRESOLVED_DECIMALS, str(token.key))
        if amount <= 0:
            return HopFailure(FailureReason.INSUFFICIENT_LIQUIDITY, "non-positive amount")
        return await self._quote(hop, amount, mode)

    async def _quote(self, hop: Hop, amount: int, mode: SwapMode) -> HopOutcome:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(venue={self.venue!r}, chain_id={self.chain_id})"


__all__ = [
    "BaseVenueAdapter",
    "FailureReason",
    "HopAlternatives",
    "HopFailure",
    "HopOutcome",
    "HopQuote",
    "PoolId",
    "VenueAdapter",
]
