"""Liquidity venue adapters."""

from aggregator.venues.base import (
    BaseVenueAdapter,
    FailureReason,
    HopAlternatives,
    HopFailure,
    HopOutcome,
    HopQuote,
    VenueAdapter,
)
from aggregator.venues.constant_product import (
    ConstantProductAdapter,
    InMemoryReserveSource,
    Web3V2ReserveSource,
    uniswap_v2_adapter,
    zamm_adapter,
)
from aggregator.venues.onchain_aggregator import (
    OnChainAggregatorAdapter,
    SourceQuote,
    StaticAggregatorBackend,
    Web3AggregatorBackend,
)
from aggregator.venues.registry import VenueRegistry
from aggregator.venues.uniswap_v3 import (
    MockUniswapV3Quoter,
    UniswapV3Adapter,
    Web3UniswapV3Quoter,
)

__all__ = [
    # Base
    "BaseVenueAdapter",
    "FailureReason",
    "HopAlternatives",
    "HopFailure",
    "HopOutcome",
    "HopQuote",
    "VenueAdapter",
    # Constant product
    "ConstantProductAdapter",
    "InMemoryReserveSource",
    "Web3V2ReserveSource",
    "uniswap_v2_adapter",
    "zamm_adapter",
    # Uniswap V3
    "MockUniswapV3Quoter",
    "UniswapV3Adapter",
    "Web3UniswapV3Quoter",
    # Aggregator contract
    "OnChainAggregatorAdapter",
    "SourceQuote",
    "StaticAggregatorBackend",
    "Web3AggregatorBackend",
    # Registry
    "VenueRegistry",
]
