"""Token metadata resolution."""

from aggregator.tokens.decimals import (
    DECIMAL_CACHE,
    DecimalCache,
    DecimalResolution,
    DecimalResolver,
    DecimalSource,
    StaticDecimalSource,
    Web3DecimalSource,
)

__all__ = [
    "DECIMAL_CACHE",
    "DecimalCache",
    "DecimalResolution",
    "DecimalResolver",
    "DecimalSource",
    "StaticDecimalSource",
    "Web3DecimalSource",
]
