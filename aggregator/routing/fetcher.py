"""Concurrent quote fetching across venues.

Every candidate path is priced in its own task inside one task group. Each
adapter call has its own timeout and its own failure handling, so a slow or
broken venue only removes its own paths. The group as a whole is bounded by
the query timeout: paths still pending at the deadline are cancelled and
whatever already completed is returned.

Multi-hop paths chain their hops: for EXACT_IN the output of hop 1 feeds hop
2; for EXACT_OUT hop 2 is solved first and its required input becomes the
desired output of hop 1.

A hop answered with several alternatives (one per source behind an
aggregator contract) forks the path: each alternative is chained and priced
as its own quote.
"""

from __future__ import annotations

import asyncio
from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from aggregator.models.route import ExecutedHop, Quote, SwapMode
from aggregator.venues.base import FailureReason, HopAlternatives, HopFailure, HopQuote

if TYPE_CHECKING:
    from collections.abc import Sequence

    from aggregator.models.route import Hop, Path
    from aggregator.tokens.decimals import DecimalResolution
    from aggregator.venues.registry import VenueRegistry

logger = structlog.get_logger()


@dataclass
class FetchResult:
    """Quotes that completed, in path order, plus failure accounting."""

    quotes: list[Quote] = field(default_factory=list)
    failures: Counter[FailureReason] = field(default_factory=Counter)
    timed_out: bool = False


class QuoteFetcher:
    """Prices candidate paths concurrently through the venue registry.

    Args:
        registry: Venue adapters, looked up by each hop's venue id
        hop_timeout_seconds: Timeout for a single adapter call
        max_concurrency: Maximum adapter calls in flight at once
    """

    def __init__(
        self,
        registry: VenueRegistry,
        hop_timeout_seconds: float,
        max_concurrency: int,
    ) -> None:
        self.registry = registry
        self.hop_timeout_seconds = hop_timeout_seconds
        self.max_concurrency = max_concurrency

    async def fetch_quotes(
        self,
        paths: Sequence[Path],
        amount: int,
        mode: SwapMode,
        decimals: DecimalResolution,
        *,
        timeout: float | None = None,
    ) -> FetchResult:
        """Price every path; failed or timed-out paths are left out.

        Args:
            paths: Candidate paths
            amount: Fixed amount (sell side for EXACT_IN, buy side for EXACT_OUT)
            mode: Which side is fixed
            decimals: Decimals resolved for this query
            timeout: Overall deadline in seconds for the whole batch

        Returns:
            FetchResult whose quotes follow the order of `paths`, independent
            of completion order. An empty list means no route was found.
        """
        result = FetchResult()
        if not paths:
            return result

        slots: list[list[Quote] | HopFailure | None] = [None] * len(paths)
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def fill(index: int, path: Path) -> None:
            slots[index] = await self._quote_path(path, amount, mode, decimals, semaphore)

        try:
            async with asyncio.timeout(timeout):
                async with asyncio.TaskGroup() as group:
                    for index, path in enumerate(paths):
                        group.create_task(fill(index, path))
        except TimeoutError:
            result.timed_out = True
            logger.info(
                "quote_fetch_deadline",
                timeout_seconds=timeout,
                completed=sum(1 for slot in slots if slot is not None),
                total=len(paths),
            )

        for slot in slots:
            if isinstance(slot, list):
                result.quotes.extend(slot)
            elif isinstance(slot, HopFailure):
                result.failures[slot.reason] += 1
            else:
                result.failures[FailureReason.TIMEOUT] += 1

        return result

    async def _quote_path(
        self,
        path: Path,
        amount: int,
        mode: SwapMode,
        decimals: DecimalResolution,
        semaphore: asyncio.Semaphore,
    ) -> list[Quote] | HopFailure:
        if mode == SwapMode.EXACT_IN:
            ordered = list(path.hops)
        else:
            ordered = list(reversed(path.hops))

        # (amount carried into the next hop, hops executed so far, sources seen)
        branches: list[tuple[int, tuple[ExecutedHop, ...], frozenset[str]]] = [(amount, (), frozenset())]

        for hop in ordered:
            outcomes = await asyncio.gather(
                *(self._quote_hop(hop, current, mode, decimals, semaphore) for current, _, _ in branches)
            )
            extended = []
            failure = HopFailure(FailureReason.NOT_FOUND)
            for (_, executed, sources), outcome in zip(branches, outcomes):
                if isinstance(outcome, HopFailure):
                    logger.debug(
                        "hop_unquoted",
                        path=path.describe(),
                        hop=hop.describe(),
                        reason=outcome.reason.value,
                        detail=outcome.detail,
                    )
                    failure = outcome
                    continue
                for hop_quote in outcome:
                    executed_hop = ExecutedHop(
                        venue=hop_quote.venue,
                        token_in=hop.token_in,
                        token_out=hop.token_out,
                        pool=hop_quote.pool if hop_quote.pool is not None else hop.pool,
                        amount_in=hop_quote.amount_in,
                        amount_out=hop_quote.amount_out,
                    )
                    carried = hop_quote.amount_out if mode == SwapMode.EXACT_IN else hop_quote.amount_in
                    extended.append((carried, executed + (executed_hop,), sources | set(hop_quote.sources)))

            if not extended:
                return failure
            branches = extended

        quotes = []
        for current, executed, sources in branches:
            if mode == SwapMode.EXACT_OUT:
                executed = tuple(reversed(executed))
                amount_in, amount_out = current, amount
            else:
                amount_in, amount_out = amount, current
            quotes.append(
                Quote(
                    path=path,
                    amount_in=amount_in,
                    amount_out=amount_out,
                    source_label="+".join(dict.fromkeys(path.venues)),
                    executed_hops=executed,
                    sources=tuple(sorted(sources)),
                )
            )
        return quotes

    async def _quote_hop(
        self,
        hop: Hop,
        amount: int,
        mode: SwapMode,
        decimals: DecimalResolution,
        semaphore: asyncio.Semaphore,
    ) -> list[HopQuote] | HopFailure:
        adapter = self.registry.get(hop.venue)
        if adapter is None:
            return HopFailure(FailureReason.NOT_FOUND, f"unknown venue {hop.venue}")

        async with semaphore:
            try:
                outcome = await asyncio.wait_for(
                    adapter.quote_hop(hop, amount, mode, decimals),
                    timeout=self.hop_timeout_seconds,
                )
            except TimeoutError:
                return HopFailure(FailureReason.TIMEOUT)
            except Exception as e:
                logger.warning(
                    "adapter_error",
                    venue=hop.venue,
                    hop=hop.describe(),
                    amount=amount,
                    mode=mode.value,
                    error=str(e),
                )
                return HopFailure(FailureReason.REVERTED, str(e))

        if isinstance(outcome, HopFailure):
            return outcome
        candidates = outcome.quotes if isinstance(outcome, HopAlternatives) else (outcome,)
        viable = [q for q in candidates if q.amount_in > 0 and q.amount_out > 0]
        if not viable:
            return HopFailure(FailureReason.INSUFFICIENT_LIQUIDITY, "zero amount quoted")
        return viable


__all__ = ["FetchResult", "QuoteFetcher"]
