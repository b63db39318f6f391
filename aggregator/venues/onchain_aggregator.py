"""On-chain aggregator venue (zQuoter style).

A single contract call quotes a hop across several underlying AMMs and
returns every per-source quote. The adapter hands each viable source back as
a separate alternative tagged with the underlying venue, and a pool that is
also quoted directly shares its route key.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

import structlog
from eth_abi import decode, encode

from aggregator.constants import MAINNET_CHAIN_ID
from aggregator.models.route import SwapMode
from aggregator.venues.base import (
    BaseVenueAdapter,
    FailureReason,
    HopAlternatives,
    HopFailure,
    HopOutcome,
    HopQuote,
)

if TYPE_CHECKING:
    from aggregator.models.route import Hop

logger = structlog.get_logger()

# Underlying AMM enum of the quoter contract, mapped to venue ids
AGGREGATOR_SOURCES: dict[int, str] = {
    0: "uniswap-v2",
    1: "sushiswap",
    2: "zamm",
    3: "uniswap-v3",
    4: "uniswap-v4",
    5: "curve",
}

GET_QUOTES_SIGNATURE = "getQuotes(bool,address,address,uint256)"
QUOTE_TUPLE = "(uint8,uint256,uint256,uint256)"


@dataclass(frozen=True)
class SourceQuote:
    """One underlying-venue quote returned by the aggregator contract."""

    venue: str
    fee_bps: int
    amount_in: int
    amount_out: int


class AggregatorBackend(Protocol):
    """Protocol for aggregator contract readers."""

    async def quote_all(
        self,
        token_in: str,
        token_out: str,
        amount: int,
        mode: SwapMode,
    ) -> list[SourceQuote]: ...


def decode_quotes(raw: bytes) -> list[SourceQuote]:
    """Decode the (best, quotes[]) return value of getQuotes.

    Sources outside the known enum are skipped.
    """
    _best, quotes = decode([QUOTE_TUPLE, f"{QUOTE_TUPLE}[]"], raw)
    decoded = []
    for source, fee_bps, amount_in, amount_out in quotes:
        venue = AGGREGATOR_SOURCES.get(source)
        if venue is None:
            logger.debug("aggregator_unknown_source", source=source)
            continue
        decoded.append(
            SourceQuote(venue=venue, fee_bps=fee_bps, amount_in=amount_in, amount_out=amount_out)
        )
    return decoded


class Web3AggregatorBackend:
    """Calls getQuotes on a deployed aggregator quoter via eth_call.

    The quoter reverts when no source can serve the pair, so reverts are
    reported as an empty quote list at debug level rather than as errors.
    """

    def __init__(self, web3_provider: str, quoter_address: str) -> None:
        try:
            from web3 import AsyncHTTPProvider, AsyncWeb3
        except ImportError as e:
            raise ImportError(
                "web3 package required for Web3AggregatorBackend. Install with: pip install web3"
            ) from e

        self.w3 = AsyncWeb3(AsyncHTTPProvider(web3_provider))
        self.quoter_address = AsyncWeb3.to_checksum_address(quoter_address)
        self.selector = AsyncWeb3.keccak(text=GET_QUOTES_SIGNATURE)[:4]

    async def quote_all(
        self,
        token_in: str,
        token_out: str,
        amount: int,
        mode: SwapMode,
    ) -> list[SourceQuote]:
        from web3.exceptions import ContractLogicError

        calldata = self.selector + encode(
            ["bool", "address", "address", "uint256"],
            [mode == SwapMode.EXACT_OUT, token_in, token_out, amount],
        )
        try:
            raw = await self.w3.eth.call({"to": self.quoter_address, "data": calldata})
        except ContractLogicError as e:
            logger.debug(
                "aggregator_quote_reverted",
                token_in=token_in,
                token_out=token_out,
                amount=amount,
                mode=mode.value,
                error=str(e),
            )
            return []
        return decode_quotes(bytes(raw))


class StaticAggregatorBackend:
    """Backend returning preconfigured source quotes, for tests.

    Quotes are keyed by (token_in, token_out, mode); the amounts are returned
    as configured whatever amount is asked for.
    """

    def __init__(self, quotes: dict[tuple[str, str, SwapMode], list[SourceQuote]] | None = None):
        self.quotes = {
            (token_in.lower(), token_out.lower(), mode): value
            for (token_in, token_out, mode), value in (quotes or {}).items()
        }
        self.calls: list[tuple[str, str, int, SwapMode]] = []

    async def quote_all(
        self,
        token_in: str,
        token_out: str,
        amount: int,
        mode: SwapMode,
    ) -> list[SourceQuote]:
        self.calls.append((token_in, token_out, amount, mode))
        return list(self.quotes.get((token_in.lower(), token_out.lower(), mode), []))


class OnChainAggregatorAdapter(BaseVenueAdapter):
    """Venue adapter for a singleton on-chain aggregator contract."""

    venue = "aggregator"

    def __init__(self, backend: AggregatorBackend, chain_id: int = MAINNET_CHAIN_ID) -> None:
        super().__init__(chain_id)
        self.backend = backend

    async def _quote(self, hop: Hop, amount: int, mode: SwapMode) -> HopOutcome:
        quotes = await self.backend.quote_all(hop.token_in.address, hop.token_out.address, amount, mode)

        if mode == SwapMode.EXACT_IN:
            viable = [(amount, q.amount_out, q) for q in quotes if q.amount_out > 0]
        else:
            viable = [(q.amount_in, amount, q) for q in quotes if q.amount_in > 0]
        if not viable:
            return HopFailure(FailureReason.NOT_FOUND)

        # Ordered by source, then fee tier
        viable.sort(key=lambda item: (item[2].venue, item[2].fee_bps, item[0], item[1]))
        return HopAlternatives(
            tuple(
                HopQuote(
                    amount_in=amount_in,
                    amount_out=amount_out,
                    venue=q.venue,
                    pool=q.fee_bps,
                    sources=(q.venue,),
                )
                for amount_in, amount_out, q in viable
            )
        )


__all__ = [
    "AGGREGATOR_SOURCES",
    "AggregatorBackend",
    "OnChainAggregatorAdapter",
    "SourceQuote",
    "StaticAggregatorBackend",
    "Web3AggregatorBackend",
    "decode_quotes",
]
