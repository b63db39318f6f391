"""Route discovery pipeline: enumerate, fetch, filter, rank."""

from aggregator.routing.fetcher import FetchResult, QuoteFetcher
from aggregator.routing.filters import FilterResult, SanityFilter
from aggregator.routing.pathfinding import enumerate_paths
from aggregator.routing.ranking import deduplicate, effective_price, rank_routes
from aggregator.routing.router import (
    RouteAggregator,
    build_web3_aggregator,
    get_default_aggregator,
    get_routes,
)

__all__ = [
    "FetchResult",
    "FilterResult",
    "QuoteFetcher",
    "RouteAggregator",
    "SanityFilter",
    "build_web3_aggregator",
    "deduplicate",
    "effective_price",
    "enumerate_paths",
    "get_default_aggregator",
    "get_routes",
    "rank_routes",
]
