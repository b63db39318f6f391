"""Swap route aggregation and quote validation."""

from aggregator.routing.router import RouteAggregator, get_default_aggregator, get_routes

__version__ = "0.1.0"
__all__ = ["RouteAggregator", "get_default_aggregator", "get_routes", "__version__"]
