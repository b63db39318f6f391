"""Route aggregation entry point.

RouteAggregator.get_routes runs the full pipeline for one trade:

    request -> enumerate paths -> resolve decimals -> fetch quotes
            -> sanity filter -> deduplicate and rank -> result

Only malformed requests raise (CallerInputError, before any network call).
Missing pools, slow venues, unresolvable decimals and implausible quotes all
just remove routes; an empty result is a normal answer.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
from typing import TYPE_CHECKING

import structlog

from aggregator.config import DEFAULT_ROUTER_CONFIG, RouterConfig
from aggregator.constants import MAINNET_CHAIN_ID, MAX_HOPS
from aggregator.errors import CallerInputError
from aggregator.models.route import (
    RejectedPath,
    RejectReason,
    RouteDiagnostics,
    RouteRequest,
    RouteResult,
    SwapMode,
)
from aggregator.models.token import Token
from aggregator.routing.fetcher import QuoteFetcher
from aggregator.routing.filters import SanityFilter
from aggregator.routing.pathfinding import enumerate_paths
from aggregator.routing.ranking import rank_routes
from aggregator.tokens.decimals import DecimalResolver, Web3DecimalSource
from aggregator.venues.registry import VenueRegistry

if TYPE_CHECKING:
    from aggregator.models.route import Path

logger = structlog.get_logger()


class RouteAggregator:
    """Discovers, validates and ranks swap routes across venues.

    Args:
        registry: Venue adapters to query
        decimal_resolver: Resolver for token decimals. Defaults to one with no
            on-chain source, which only knows caller-supplied and cached decimals.
        config: Timeouts, concurrency and sanity thresholds
    """

    def __init__(
        self,
        registry: VenueRegistry,
        decimal_resolver: DecimalResolver | None = None,
        config: RouterConfig = DEFAULT_ROUTER_CONFIG,
    ) -> None:
        self.registry = registry
        self.config = config
        self.decimal_resolver = decimal_resolver if decimal_resolver is not None else DecimalResolver()
        self.fetcher = QuoteFetcher(
            registry,
            hop_timeout_seconds=config.hop_timeout_seconds,
            max_concurrency=config.max_concurrency,
        )
        self.sanity_filter = SanityFilter(
            ratio=config.sanity_ratio,
            min_output=config.sanity_min_output,
            min_input=config.sanity_min_input,
            large_output=config.sanity_large_output,
            large_output_min_input=config.sanity_large_output_min_input,
        )

    def validate_request(self, request: RouteRequest) -> None:
        """Reject malformed requests.

        Raises:
            CallerInputError: On a non-integer, zero or negative amount, an
                unknown mode, identical or cross-chain tokens, or a bad max_hops
        """
        amount = request.amount
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise CallerInputError(f"Amount must be an integer in base units, got {amount!r}")
        if amount <= 0:
            raise CallerInputError(f"Amount must be positive: {amount}")
        if not isinstance(request.mode, SwapMode):
            raise CallerInputError(f"Unknown swap mode: {request.mode!r}")
        if not isinstance(request.sell_token, Token) or not isinstance(request.buy_token, Token):
            raise CallerInputError("sell_token and buy_token must be Token instances")
        if request.sell_token.key == request.buy_token.key:
            raise CallerInputError("sell_token and buy_token must differ")
        if request.sell_token.chain_id != request.buy_token.chain_id:
            raise CallerInputError(
                f"Tokens on different chains: {request.sell_token.chain_id} "
                f"and {request.buy_token.chain_id}"
            )
        if request.max_hops is not None and (
            isinstance(request.max_hops, bool)
            or not isinstance(request.max_hops, int)
            or not 1 <= request.max_hops <= MAX_HOPS
        ):
            raise CallerInputError(f"max_hops must be between 1 and {MAX_HOPS}: {request.max_hops!r}")

    def _intermediates(self, request: RouteRequest) -> tuple[Token, ...]:
        if request.allowed_intermediates is not None:
            return tuple(request.allowed_intermediates)
        chain_id = request.sell_token.chain_id
        return tuple(Token(chain_id=chain_id, address=address) for address in self.config.default_intermediates)

    async def get_routes(
        self,
        request: RouteRequest,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> RouteResult:
        """Find, validate and rank routes for a trade.

        Args:
            request: The trade to route
            cancel_event: When set during the query, outstanding venue calls
                are abandoned and an empty result flagged `cancelled` is returned

        Returns:
            RouteResult; `best` is None when no route survived

        Raises:
            CallerInputError: If the request is malformed (no network call is made)
        """
        self.validate_request(request)

        if cancel_event is None:
            return await self._discover(request)

        if cancel_event.is_set():
            return RouteResult.empty(RouteDiagnostics(cancelled=True))

        discovery = asyncio.ensure_future(self._discover(request))
        cancelled = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait({discovery, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancelled.cancel()
            if not discovery.done():
                discovery.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await discovery
            with contextlib.suppress(asyncio.CancelledError):
                await cancelled

        if cancel_event.is_set() or discovery.cancelled():
            logger.info("route_query_cancelled", sell=request.sell_token.label, buy=request.buy_token.label)
            return RouteResult.empty(RouteDiagnostics(cancelled=True))
        return discovery.result()

    async def _discover(self, request: RouteRequest) -> RouteResult:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.query_timeout_seconds
        diagnostics = RouteDiagnostics()

        max_hops = request.max_hops if request.max_hops is not None else self.config.max_hops
        paths = enumerate_paths(
            request.sell_token,
            request.buy_token,
            self._intermediates(request),
            max_hops,
            self.registry,
        )
        diagnostics.paths_considered = len(paths)
        if not paths:
            logger.info(
                "no_candidate_paths",
                sell=request.sell_token.label,
                buy=request.buy_token.label,
            )
            return RouteResult.empty(diagnostics)

        tokens = {request.sell_token.key: request.sell_token, request.buy_token.key: request.buy_token}
        for path in paths:
            for token in path.tokens:
                tokens.setdefault(token.key, token)

        try:
            async with asyncio.timeout_at(deadline):
                resolution = await self.decimal_resolver.resolve(tokens.values())
        except TimeoutError:
            logger.warning("decimals_deadline", timeout_seconds=self.config.query_timeout_seconds)
            diagnostics.timed_out = True
            return RouteResult.empty(diagnostics)

        diagnostics.unresolved_tokens = list(resolution.failures)
        viable: list[Path] = []
        for path in paths:
            unresolved = [token for token in path.tokens if not resolution.is_resolved(token)]
            if unresolved:
                diagnostics.rejected.append(
                    RejectedPath(
                        path=path,
                        reason=RejectReason.DECIMALS_UNRESOLVED,
                        detail=", ".join(str(token.key) for token in unresolved),
                    )
                )
            else:
                viable.append(path)

        fetched = await self.fetcher.fetch_quotes(
            viable,
            request.amount,
            request.mode,
            resolution,
            timeout=max(deadline - loop.time(), 0.0),
        )
        diagnostics.quotes_received = len(fetched.quotes)
        diagnostics.timed_out = fetched.timed_out

        filtered = self.sanity_filter.filter_valid(fetched.quotes, request.mode, resolution)
        diagnostics.rejected.extend(filtered.rejected)

        routes = rank_routes(filtered.kept, request.mode, resolution)
        best = routes[0] if routes else None

        logger.info(
            "routes_found",
            sell=request.sell_token.label,
            buy=request.buy_token.label,
            mode=request.mode.value,
            amount=request.amount,
            paths=len(paths),
            quotes=len(fetched.quotes),
            rejected=len(diagnostics.rejected),
            routes=len(routes),
            best=best.quote.source_label if best else None,
            failures={reason.value: count for reason, count in fetched.failures.items()},
            timed_out=fetched.timed_out,
        )

        return RouteResult(best=best, routes=routes, diagnostics=diagnostics)


def build_web3_aggregator(
    rpc_url: str,
    *,
    chain_id: int = MAINNET_CHAIN_ID,
    aggregator_quoter: str | None = None,
    config: RouterConfig = DEFAULT_ROUTER_CONFIG,
) -> RouteAggregator:
    """Wire a RouteAggregator against a JSON-RPC endpoint.

    Venues: Uniswap V2, Uniswap V3, and the aggregator contract when its
    address is given.
    """
    from aggregator.venues.constant_product import Web3V2ReserveSource, uniswap_v2_adapter
    from aggregator.venues.onchain_aggregator import OnChainAggregatorAdapter, Web3AggregatorBackend
    from aggregator.venues.uniswap_v3 import UniswapV3Adapter, Web3UniswapV3Quoter

    registry = VenueRegistry(
        [
            uniswap_v2_adapter(Web3V2ReserveSource(rpc_url), chain_id=chain_id),
            UniswapV3Adapter(Web3UniswapV3Quoter(rpc_url), chain_id=chain_id),
        ]
    )
    if aggregator_quoter:
        registry.add(OnChainAggregatorAdapter(Web3AggregatorBackend(rpc_url, aggregator_quoter), chain_id))

    resolver = DecimalResolver(
        Web3DecimalSource(rpc_url),
        timeout_seconds=config.hop_timeout_seconds,
    )
    return RouteAggregator(registry, resolver, config)


_default_aggregator: RouteAggregator | None = None


def get_default_aggregator() -> RouteAggregator:
    """Get or create the process-wide aggregator from environment settings.

    Reads AGGREGATOR_RPC_URL, AGGREGATOR_CHAIN_ID, AGGREGATOR_QUOTER_ADDRESS and
    the RouterConfig variables. Without an RPC URL no venues are registered
    and every query returns an empty result.
    """
    global _default_aggregator
    if _default_aggregator is None:
        config = RouterConfig.from_env()
        rpc_url = os.environ.get("AGGREGATOR_RPC_URL")
        if rpc_url:
            _default_aggregator = build_web3_aggregator(
                rpc_url,
                chain_id=int(os.environ.get("AGGREGATOR_CHAIN_ID", str(MAINNET_CHAIN_ID))),
                aggregator_quoter=os.environ.get("AGGREGATOR_QUOTER_ADDRESS"),
                config=config,
            )
        else:
            logger.warning("no_rpc_configured", message="No venues registered; set AGGREGATOR_RPC_URL")
            _default_aggregator = RouteAggregator(VenueRegistry(), config=config)
    return _default_aggregator


async def get_routes(request: RouteRequest, *, cancel_event: asyncio.Event | None = None) -> RouteResult:
    """Route a trade with the default aggregator."""
    return await get_default_aggregator().get_routes(request, cancel_event=cancel_event)


__all__ = [
    "RouteAggregator",
    "build_web3_aggregator",
    "get_default_aggregator",
    "get_routes",
]
