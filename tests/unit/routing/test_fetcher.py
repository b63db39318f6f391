"""Tests for concurrent quote fetching."""

import time

import pytest

from aggregator.models.route import SwapMode
from aggregator.routing.fetcher import QuoteFetcher
from aggregator.tokens.decimals import DecimalResolution
from aggregator.venues.base import BaseVenueAdapter, FailureReason
from aggregator.venues.onchain_aggregator import OnChainAggregatorAdapter, SourceQuote, StaticAggregatorBackend
from aggregator.venues.registry import VenueRegistry
from tests.helpers import DAI, ETH, USDC, ScriptedAdapter, make_path, make_token

ETH_TOKEN = make_token(ETH, symbol="ETH")
DAI_TOKEN = make_token(DAI, decimals=18, symbol="DAI")
USDC_TOKEN = make_token(USDC, decimals=6, symbol="USDC")

DECIMALS = DecimalResolution(
    decimals={ETH_TOKEN.key: 18, DAI_TOKEN.key: 18, USDC_TOKEN.key: 6}
)

# 1 ETH = 3000 DAI, 1 DAI = 1 USDC
ETH_DAI = (3000, 1)
DAI_USDC = (1, 10**12)


def make_fetcher(*adapters: BaseVenueAdapter, hop_timeout: float = 1.0, concurrency: int = 8) -> QuoteFetcher:
    return QuoteFetcher(VenueRegistry(list(adapters)), hop_timeout_seconds=hop_timeout, max_concurrency=concurrency)


class TestSingleHop:
    """Tests for single-hop paths."""

    @pytest.mark.asyncio
    async def test_quotes_keep_path_order(self) -> None:
        slow = ScriptedAdapter("slow", {(ETH, USDC): (3000 * 10**6, 10**18)}, delay=0.05)
        fast = ScriptedAdapter("fast", {(ETH, USDC): (2990 * 10**6, 10**18)})
        fetcher = make_fetcher(slow, fast)
        paths = [make_path(("slow", ETH_TOKEN, USDC_TOKEN)), make_path(("fast", ETH_TOKEN, USDC_TOKEN))]

        result = await fetcher.fetch_quotes(paths, 10**18, SwapMode.EXACT_IN, DECIMALS)

        assert [q.source_label for q in result.quotes] == ["slow", "fast"]
        assert result.quotes[0].amount_out == 3000 * 10**6
        assert not result.timed_out

    @pytest.mark.asyncio
    async def test_missing_pool_is_not_an_error(self) -> None:
        fetcher = make_fetcher(ScriptedAdapter("v1"))

        result = await fetcher.fetch_quotes(
            [make_path(("v1", ETH_TOKEN, USDC_TOKEN))], 10**18, SwapMode.EXACT_IN, DECIMALS
        )

        assert result.quotes == []
        assert result.failures[FailureReason.NOT_FOUND] == 1

    @pytest.mark.asyncio
    async def test_empty_paths(self) -> None:
        result = await make_fetcher().fetch_quotes([], 10**18, SwapMode.EXACT_IN, DECIMALS)
        assert result.quotes == []
        assert not result.failures


class TestMultiHop:
    """Tests for chaining two-hop paths."""

    @pytest.mark.asyncio
    async def test_exact_in_chains_forward(self) -> None:
        venue = ScriptedAdapter("v1", {(ETH, DAI): ETH_DAI, (DAI, USDC): DAI_USDC})
        fetcher = make_fetcher(venue)
        path = make_path(("v1", ETH_TOKEN, DAI_TOKEN), ("v1", DAI_TOKEN, USDC_TOKEN))

        result = await fetcher.fetch_quotes([path], 10**18, SwapMode.EXACT_IN, DECIMALS)

        (quote,) = result.quotes
        assert quote.amount_in == 10**18
        assert quote.amount_out == 3000 * 10**6
        assert [hop.amount_out for hop in quote.executed_hops] == [3000 * 10**18, 3000 * 10**6]
        # Hop 2 was asked for hop 1's output
        assert venue.calls[1] == (DAI, USDC, 3000 * 10**18, SwapMode.EXACT_IN)

    @pytest.mark.asyncio
    async def test_exact_out_chains_backward(self) -> None:
        venue = ScriptedAdapter("v1", {(ETH, DAI): ETH_DAI, (DAI, USDC): DAI_USDC})
        fetcher = make_fetcher(venue)
        path = make_path(("v1", ETH_TOKEN, DAI_TOKEN), ("v1", DAI_TOKEN, USDC_TOKEN))

        result = await fetcher.fetch_quotes([path], 3000 * 10**6, SwapMode.EXACT_OUT, DECIMALS)

        (quote,) = result.quotes
        assert quote.amount_out == 3000 * 10**6
        assert quote.amount_in == 10**18
        # The last hop is solved first
        assert venue.calls[0] == (DAI, USDC, 3000 * 10**6, SwapMode.EXACT_OUT)
        assert venue.calls[1] == (ETH, DAI, 3000 * 10**18, SwapMode.EXACT_OUT)
        # Executed hops are reported in path order
        assert [hop.token_in for hop in quote.executed_hops] == [ETH_TOKEN, DAI_TOKEN]

    @pytest.mark.asyncio
    async def test_source_label_joins_distinct_venues(self) -> None:
        v1 = ScriptedAdapter("v1", {(ETH, DAI): ETH_DAI})
        v2 = ScriptedAdapter("v2", {(DAI, USDC): DAI_USDC})
        fetcher = make_fetcher(v1, v2)
        path = make_path(("v1", ETH_TOKEN, DAI_TOKEN), ("v2", DAI_TOKEN, USDC_TOKEN))

        result = await fetcher.fetch_quotes([path], 10**18, SwapMode.EXACT_IN, DECIMALS)

        assert result.quotes[0].source_label == "v1+v2"

    @pytest.mark.asyncio
    async def test_failed_second_hop_drops_path(self) -> None:
        venue = ScriptedAdapter("v1", {(ETH, DAI): ETH_DAI})
        fetcher = make_fetcher(venue)
        path = make_path(("v1", ETH_TOKEN, DAI_TOKEN), ("v1", DAI_TOKEN, USDC_TOKEN))

        result = await fetcher.fetch_quotes([path], 10**18, SwapMode.EXACT_IN, DECIMALS)

        assert result.quotes == []
        assert result.failures[FailureReason.NOT_FOUND] == 1


class TestFailureIsolation:
    """Tests that one failing venue only drops its own paths."""

    @pytest.mark.asyncio
    async def test_slow_venue_times_out_alone(self) -> None:
        slow = ScriptedAdapter("slow", {(ETH, USDC): (1, 1)}, delay=5)
        fast = ScriptedAdapter("fast", {(ETH, USDC): (3000 * 10**6, 10**18)})
        fetcher = make_fetcher(slow, fast, hop_timeout=0.05)
        paths = [make_path(("slow", ETH_TOKEN, USDC_TOKEN)), make_path(("fast", ETH_TOKEN, USDC_TOKEN))]

        started = time.monotonic()
        result = await fetcher.fetch_quotes(paths, 10**18, SwapMode.EXACT_IN, DECIMALS)

        assert time.monotonic() - started < 2
        assert [q.source_label for q in result.quotes] == ["fast"]
        assert result.failures[FailureReason.TIMEOUT] == 1
        assert not result.timed_out

    @pytest.mark.asyncio
    async def test_raising_venue_is_contained(self) -> None:
        broken = ScriptedAdapter("broken", error=RuntimeError("execution reverted"))
        fast = ScriptedAdapter("fast", {(ETH, USDC): (3000 * 10**6, 10**18)})
        fetcher = make_fetcher(broken, fast)
        paths = [make_path(("broken", ETH_TOKEN, USDC_TOKEN)), make_path(("fast", ETH_TOKEN, USDC_TOKEN))]

        result = await fetcher.fetch_quotes(paths, 10**18, SwapMode.EXACT_IN, DECIMALS)

        assert [q.source_label for q in result.quotes] == ["fast"]
        assert result.failures[FailureReason.REVERTED] == 1

    @pytest.mark.asyncio
    async def test_zero_output_is_insufficient_liquidity(self) -> None:
        dust = ScriptedAdapter("dust", {(ETH, USDC): (1, 10**30)})
        fetcher = make_fetcher(dust)

        result = await fetcher.fetch_quotes(
            [make_path(("dust", ETH_TOKEN, USDC_TOKEN))], 10**18, SwapMode.EXACT_IN, DECIMALS
        )

        assert result.quotes == []
        assert result.failures[FailureReason.INSUFFICIENT_LIQUIDITY] == 1

    @pytest.mark.asyncio
    async def test_unknown_venue(self) -> None:
        result = await make_fetcher().fetch_quotes(
            [make_path(("ghost", ETH_TOKEN, USDC_TOKEN))], 10**18, SwapMode.EXACT_IN, DECIMALS
        )
        assert result.failures[FailureReason.NOT_FOUND] == 1

    @pytest.mark.asyncio
    async def test_overall_deadline_returns_partial_results(self) -> None:
        slow = ScriptedAdapter("slow", {(ETH, USDC): (1, 1)}, delay=5)
        fast = ScriptedAdapter("fast", {(ETH, USDC): (3000 * 10**6, 10**18)})
        fetcher = make_fetcher(slow, fast, hop_timeout=10)
        paths = [make_path(("slow", ETH_TOKEN, USDC_TOKEN)), make_path(("fast", ETH_TOKEN, USDC_TOKEN))]

        started = time.monotonic()
        result = await fetcher.fetch_quotes(paths, 10**18, SwapMode.EXACT_IN, DECIMALS, timeout=0.1)

        assert time.monotonic() - started < 2
        assert result.timed_out
        assert [q.source_label for q in result.quotes] == ["fast"]
        assert result.failures[FailureReason.TIMEOUT] == 1

    @pytest.mark.asyncio
    async def test_concurrency_limit_still_completes(self) -> None:
        venues = [ScriptedAdapter(f"v{i}", {(ETH, USDC): (3000 * 10**6, 10**18)}, delay=0.01) for i in range(6)]
        fetcher = make_fetcher(*venues, concurrency=2)
        paths = [make_path((v.venue, ETH_TOKEN, USDC_TOKEN)) for v in venues]

        result = await fetcher.fetch_quotes(paths, 10**18, SwapMode.EXACT_IN, DECIMALS)

        assert len(result.quotes) == 6


class TestAlternatives:
    """Tests for hops answered with several per-source quotes."""

    @pytest.mark.asyncio
    async def test_exact_in_forks_into_one_quote_per_source(self) -> None:
        backend = StaticAggregatorBackend(
            {
                (ETH, DAI, SwapMode.EXACT_IN): [
                    SourceQuote("zamm", 100, 10**18, 2990 * 10**18),
                    SourceQuote("uniswap-v2", 30, 10**18, 3000 * 10**18),
                ]
            }
        )
        second = ScriptedAdapter("v1", {(DAI, USDC): DAI_USDC})
        fetcher = make_fetcher(OnChainAggregatorAdapter(backend), second)
        path = make_path(("aggregator", ETH_TOKEN, DAI_TOKEN), ("v1", DAI_TOKEN, USDC_TOKEN))

        result = await fetcher.fetch_quotes([path], 10**18, SwapMode.EXACT_IN, DECIMALS)

        assert [q.amount_out for q in result.quotes] == [3000 * 10**6, 2990 * 10**6]
        assert [q.sources for q in result.quotes] == [("uniswap-v2",), ("zamm",)]
        assert [q.executed_hops[0].venue for q in result.quotes] == ["uniswap-v2", "zamm"]
        assert all(q.source_label == "aggregator+v1" for q in result.quotes)
        assert len(second.calls) == 2

    @pytest.mark.asyncio
    async def test_exact_out_forks_on_first_hop(self) -> None:
        backend = StaticAggregatorBackend(
            {
                (ETH, DAI, SwapMode.EXACT_OUT): [
                    SourceQuote("uniswap-v2", 30, 10**18, 3000 * 10**18),
                    SourceQuote("zamm", 100, 11 * 10**17, 3000 * 10**18),
                ]
            }
        )
        fetcher = make_fetcher(OnChainAggregatorAdapter(backend), ScriptedAdapter("v1", {(DAI, USDC): DAI_USDC}))
        path = make_path(("aggregator", ETH_TOKEN, DAI_TOKEN), ("v1", DAI_TOKEN, USDC_TOKEN))

        result = await fetcher.fetch_quotes([path], 3000 * 10**6, SwapMode.EXACT_OUT, DECIMALS)

        assert [q.amount_in for q in result.quotes] == [10**18, 11 * 10**17]
        assert all(q.amount_out == 3000 * 10**6 for q in result.quotes)
        assert [q.executed_hops[1].venue for q in result.quotes] == ["v1", "v1"]
        assert backend.calls == [(ETH, DAI, 3000 * 10**18, SwapMode.EXACT_OUT)]
