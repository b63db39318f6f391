"""Tests for RouteAggregator.get_routes."""

import asyncio
import time

import pytest

from aggregator.config import RouterConfig
from aggregator.errors import CallerInputError
from aggregator.models.route import RejectReason, RouteRequest, SwapMode
from aggregator.models.token import Token
from aggregator.routing.router import RouteAggregator, get_routes
from aggregator.tokens.decimals import DecimalCache, DecimalResolver
from aggregator.venues.constant_product import ConstantProductAdapter, InMemoryReserveSource
from aggregator.venues.onchain_aggregator import OnChainAggregatorAdapter, SourceQuote, StaticAggregatorBackend
from aggregator.venues.registry import VenueRegistry
from tests.helpers import (
    DAI,
    ETH,
    TOKEN_A,
    TOKEN_B,
    USDC,
    WETH,
    ScriptedAdapter,
    make_aggregator,
    make_token,
)

ETH_TOKEN = make_token(ETH, symbol="ETH")
DAI_TOKEN = make_token(DAI, decimals=18, symbol="DAI")
USDC_TOKEN = make_token(USDC, decimals=6, symbol="USDC")
WETH_TOKEN = make_token(WETH, decimals=18, symbol="WETH")

# 1 ETH = 3084.6 DAI, 1 DAI = 1 USDC
ETH_DAI = (30846, 10)
DAI_USDC = (1, 10**12)
ETH_USDC = (3000 * 10**6, 10**18)


def request(
    amount: int = 10**18,
    mode: SwapMode = SwapMode.EXACT_IN,
    sell: Token = ETH_TOKEN,
    buy: Token = USDC_TOKEN,
    **kwargs,
) -> RouteRequest:
    return RouteRequest(sell_token=sell, buy_token=buy, amount=amount, mode=mode, **kwargs)


class SlowDecimalSource:
    """Decimals source that never answers in time."""

    async def read_decimals(self, token: Token) -> int:
        await asyncio.sleep(10)
        return 18


class FailingDecimalSource:
    """Decimals source whose RPC is down."""

    async def read_decimals(self, token: Token) -> int:
        raise ConnectionError("rpc down")


class TestValidation:
    """Tests for request validation."""

    @pytest.mark.parametrize(
        "bad_request",
        [
            request(amount=0),
            request(amount=-5),
            request(amount=1.5),  # type: ignore[arg-type]
            request(amount=True),  # type: ignore[arg-type]
            request(mode="SELL"),  # type: ignore[arg-type]
            request(buy=ETH_TOKEN),
            request(buy=make_token(USDC, chain_id=10)),
            request(max_hops=0),
            request(max_hops=3),
        ],
        ids=["zero", "negative", "float", "bool", "mode", "same-token", "cross-chain", "hops-0", "hops-3"],
    )
    @pytest.mark.asyncio
    async def test_malformed_request_raises_before_io(self, bad_request: RouteRequest) -> None:
        venue = ScriptedAdapter("v1", {(ETH, USDC): ETH_USDC})
        aggregator = make_aggregator([venue])

        with pytest.raises(CallerInputError):
            await aggregator.get_routes(bad_request)

        assert venue.calls == []

    def test_caller_input_error_is_value_error(self) -> None:
        assert issubclass(CallerInputError, ValueError)


class TestEmptyResults:
    """Tests for queries with no route."""

    @pytest.mark.asyncio
    async def test_no_venues(self) -> None:
        result = await make_aggregator([]).get_routes(request())

        assert result.best is None
        assert result.all == []
        assert result.diagnostics.paths_considered == 0

    @pytest.mark.asyncio
    async def test_no_pools_anywhere(self) -> None:
        result = await make_aggregator([ScriptedAdapter("v1"), ScriptedAdapter("v2")]).get_routes(request())

        assert result.best is None
        assert result.diagnostics.paths_considered > 0
        assert result.diagnostics.quotes_received == 0

    @pytest.mark.asyncio
    async def test_default_aggregator_without_rpc(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("AGGREGATOR_RPC_URL", raising=False)

        result = await get_routes(request())

        assert result.best is None


class TestRouting:
    """Tests for end-to-end routing through get_routes."""

    @pytest.mark.asyncio
    async def test_exact_in_best_output_wins(self) -> None:
        low = ScriptedAdapter("low", {(ETH, USDC): (2990 * 10**6, 10**18)})
        high = ScriptedAdapter("high", {(ETH, USDC): (3010 * 10**6, 10**18)})
        aggregator = make_aggregator([low, high])

        result = await aggregator.get_routes(request(allowed_intermediates=()))

        assert result.best is not None
        assert result.best.quote.source_label == "high"
        assert result.best.amount_out == 3010 * 10**6
        assert [r.rank for r in result.all] == [1, 2]

    @pytest.mark.asyncio
    async def test_max_hops_one_skips_intermediates(self) -> None:
        venue = ScriptedAdapter("v1", {(ETH, USDC): ETH_USDC, (ETH, DAI): ETH_DAI, (DAI, USDC): DAI_USDC})
        aggregator = make_aggregator([venue])

        result = await aggregator.get_routes(request(max_hops=1, allowed_intermediates=(DAI_TOKEN,)))

        assert [r.quote.hop_count for r in result.all] == [1]

    @pytest.mark.asyncio
    async def test_default_intermediate_is_weth(self) -> None:
        venue = ScriptedAdapter("v1", {(DAI, WETH): (1, 3000), (WETH, USDC): (3000, 10**12)})
        aggregator = make_aggregator([venue])

        result = await aggregator.get_routes(request(sell=DAI_TOKEN, amount=3000 * 10**18))

        assert result.best is not None
        assert result.best.path.tokens == (DAI_TOKEN, WETH_TOKEN, USDC_TOKEN)

    @pytest.mark.asyncio
    async def test_exact_out_rejects_decimal_confused_venue(self) -> None:
        good = ScriptedAdapter("good", {(ETH, DAI): ETH_DAI, (DAI, USDC): DAI_USDC})
        # Reports an ETH->DAI price 1000x too generous
        broken = ScriptedAdapter("broken", {(ETH, DAI): (ETH_DAI[0] * 1000, ETH_DAI[1])})
        aggregator = make_aggregator([good, broken])

        result = await aggregator.get_routes(
            request(amount=3100 * 10**6, mode=SwapMode.EXACT_OUT, allowed_intermediates=(DAI_TOKEN,))
        )

        assert result.best is not None
        expected_in = -(-3100 * 10**18 * ETH_DAI[1] // ETH_DAI[0])
        assert result.best.amount_in == expected_in
        assert 1_004 * 10**15 < result.best.amount_in < 1_006 * 10**15
        assert result.best.amount_out == 3100 * 10**6
        assert len(result.all) == 1

        (rejected,) = result.diagnostics.rejected
        assert rejected.reason == RejectReason.SANITY_INPUT_TOO_SMALL
        assert rejected.path.venues == ("broken", "good")
        assert result.diagnostics.quotes_received == 2

    @pytest.mark.asyncio
    async def test_lone_decimal_confused_venue_rejected(self) -> None:
        broken = ScriptedAdapter("broken", {(ETH, DAI): (ETH_DAI[0] * 1000, ETH_DAI[1]), (DAI, USDC): DAI_USDC})
        aggregator = make_aggregator([broken])

        result = await aggregator.get_routes(
            request(amount=3100 * 10**6, mode=SwapMode.EXACT_OUT, allowed_intermediates=(DAI_TOKEN,))
        )

        assert result.best is None
        assert result.all == []
        (rejected,) = result.diagnostics.rejected
        assert rejected.reason == RejectReason.SANITY_INPUT_TOO_SMALL
        assert rejected.path.venues == ("broken", "broken")

    @pytest.mark.asyncio
    async def test_decimal_confused_majority_rejected(self) -> None:
        broken = [
            ScriptedAdapter(f"bad{i}", {(ETH, USDC): (ETH_USDC[0] * 1000, ETH_USDC[1])}) for i in range(3)
        ]
        good = ScriptedAdapter("good", {(ETH, USDC): (3100 * 10**6, 10**18)})
        aggregator = make_aggregator([*broken, good])

        result = await aggregator.get_routes(
            request(amount=3100 * 10**6, mode=SwapMode.EXACT_OUT, allowed_intermediates=())
        )

        assert result.best is not None
        assert result.best.quote.source_label == "good"
        assert result.best.amount_in == 10**18
        assert len(result.all) == 1
        assert sorted(r.source_label for r in result.diagnostics.rejected) == ["bad0", "bad1", "bad2"]

    @pytest.mark.asyncio
    async def test_aggregator_keeps_good_source_when_another_is_confused(self) -> None:
        backend = StaticAggregatorBackend(
            {
                (ETH, USDC, SwapMode.EXACT_OUT): [
                    SourceQuote("uniswap-v3", 5, 977_427_031_317_218, 3100 * 10**6),
                    SourceQuote("uniswap-v2", 30, 1_005_279_957_266_645_571, 3100 * 10**6),
                ]
            }
        )
        aggregator = make_aggregator([OnChainAggregatorAdapter(backend)])

        result = await aggregator.get_routes(
            request(amount=3100 * 10**6, mode=SwapMode.EXACT_OUT, allowed_intermediates=())
        )

        assert result.best is not None
        assert result.best.amount_in == 1_005_279_957_266_645_571
        assert result.best.quote.executed_hops[0].venue == "uniswap-v2"
        assert len(result.all) == 1
        (rejected,) = result.diagnostics.rejected
        assert rejected.reason == RejectReason.SANITY_INPUT_TOO_SMALL
        assert rejected.source_label == "aggregator"
        assert len(backend.calls) == 1

    @pytest.mark.asyncio
    async def test_modes_agree(self) -> None:
        reserves = InMemoryReserveSource()
        reserves.add_pool(WETH_TOKEN, DAI_TOKEN, 10**24, 10**24)
        venue = ConstantProductAdapter("cp", reserves, fee_bps=0)
        aggregator = make_aggregator([venue])
        amount_in = 10**21

        forward = await aggregator.get_routes(
            request(sell=WETH_TOKEN, buy=DAI_TOKEN, amount=amount_in, allowed_intermediates=())
        )
        assert forward.best is not None
        backward = await aggregator.get_routes(
            request(
                sell=WETH_TOKEN,
                buy=DAI_TOKEN,
                amount=forward.best.amount_out,
                mode=SwapMode.EXACT_OUT,
                allowed_intermediates=(),
            )
        )

        assert backward.best is not None
        assert abs(backward.best.amount_in - amount_in) <= 1


class TestDecimals:
    """Tests for paths touching tokens with unknown decimals."""

    @pytest.mark.asyncio
    async def test_unresolved_intermediate_drops_only_its_paths(self) -> None:
        venue = ScriptedAdapter(
            "v1",
            {(ETH, USDC): ETH_USDC, (ETH, TOKEN_A): (1, 1), (TOKEN_A, USDC): (1, 1)},
        )
        aggregator = make_aggregator([venue])
        mystery = make_token(TOKEN_A)

        result = await aggregator.get_routes(request(allowed_intermediates=(mystery,)))

        assert [r.quote.hop_count for r in result.all] == [1]
        (rejected,) = result.diagnostics.rejected
        assert rejected.reason == RejectReason.DECIMALS_UNRESOLVED
        assert result.diagnostics.unresolved_tokens == [mystery.key]
        assert all(TOKEN_A not in call[:2] for call in venue.calls)

    @pytest.mark.asyncio
    async def test_unresolved_endpoint_yields_empty_result(self) -> None:
        venue = ScriptedAdapter("v1", {(ETH, TOKEN_B): (1, 1)})
        aggregator = make_aggregator([venue])

        result = await aggregator.get_routes(request(buy=make_token(TOKEN_B), allowed_intermediates=()))

        assert result.best is None
        assert venue.calls == []

    @pytest.mark.asyncio
    async def test_decimals_source_error_drops_paths(self) -> None:
        venue = ScriptedAdapter("v1", {(ETH, TOKEN_A): (1, 1)})
        aggregator = RouteAggregator(
            VenueRegistry([venue]),
            DecimalResolver(FailingDecimalSource(), cache=DecimalCache()),
        )
        token = make_token(TOKEN_A)

        result = await aggregator.get_routes(request(buy=token, allowed_intermediates=()))

        assert result.best is None
        assert result.diagnostics.unresolved_tokens == [token.key]
        assert venue.calls == []

    @pytest.mark.asyncio
    async def test_decimals_past_query_deadline(self) -> None:
        aggregator = RouteAggregator(
            VenueRegistry([ScriptedAdapter("v1", {(ETH, TOKEN_A): (1, 1)})]),
            DecimalResolver(SlowDecimalSource(), cache=DecimalCache()),
            RouterConfig(hop_timeout_seconds=0.05, query_timeout_seconds=0.1),
        )

        result = await aggregator.get_routes(request(buy=make_token(TOKEN_A), allowed_intermediates=()))

        assert result.best is None
        assert result.diagnostics.timed_out


class TestTimeoutsAndCancellation:
    """Tests for hop timeouts, query deadlines and cancellation."""

    @pytest.mark.asyncio
    async def test_slow_venue_does_not_block(self) -> None:
        slow = ScriptedAdapter("slow", {(ETH, USDC): ETH_USDC}, delay=5)
        fast = ScriptedAdapter("fast", {(ETH, USDC): ETH_USDC})
        aggregator = make_aggregator([slow, fast], hop_timeout_seconds=0.05, query_timeout_seconds=1.0)

        started = time.monotonic()
        result = await aggregator.get_routes(request(allowed_intermediates=()))

        assert time.monotonic() - started < 1.0
        assert [r.quote.source_label for r in result.all] == ["fast"]

    @pytest.mark.asyncio
    async def test_cancel_event_returns_empty_cancelled_result(self) -> None:
        slow = ScriptedAdapter("slow", {(ETH, USDC): ETH_USDC}, delay=5)
        aggregator = make_aggregator([slow], hop_timeout_seconds=10, query_timeout_seconds=20)
        cancel = asyncio.Event()
        asyncio.get_running_loop().call_later(0.05, cancel.set)

        started = time.monotonic()
        result = await aggregator.get_routes(request(allowed_intermediates=()), cancel_event=cancel)

        assert time.monotonic() - started < 2
        assert result.best is None
        assert result.diagnostics.cancelled

    @pytest.mark.asyncio
    async def test_already_cancelled(self) -> None:
        venue = ScriptedAdapter("v1", {(ETH, USDC): ETH_USDC})
        cancel = asyncio.Event()
        cancel.set()

        result = await make_aggregator([venue]).get_routes(request(), cancel_event=cancel)

        assert result.diagnostics.cancelled
        assert venue.calls == []

    @pytest.mark.asyncio
    async def test_unused_cancel_event_is_harmless(self) -> None:
        venue = ScriptedAdapter("v1", {(ETH, USDC): ETH_USDC})

        result = await make_aggregator([venue]).get_routes(
            request(allowed_intermediates=()), cancel_event=asyncio.Event()
        )

        assert result.best is not None
        assert not result.diagnostics.cancelled

    @pytest.mark.asyncio
    async def test_task_cancellation_propagates(self) -> None:
        slow = ScriptedAdapter("slow", {(ETH, USDC): ETH_USDC}, delay=5)
        aggregator = make_aggregator([slow], hop_timeout_seconds=10, query_timeout_seconds=20)

        task = asyncio.create_task(aggregator.get_routes(request(allowed_intermediates=())))
        await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
