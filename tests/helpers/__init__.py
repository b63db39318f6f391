"""Test helpers module for shared test utilities.

This module consolidates common test utilities to reduce duplication:
- constants: Token addresses and decimals
- factories: Token, path and quote factories plus a scripted venue adapter
"""

from tests.helpers.constants import (
    DAI,
    ETH,
    MULTI_TOKEN,
    TOKEN_A,
    TOKEN_B,
    TOKEN_C,
    TOKEN_DECIMALS,
    USDC,
    USDT,
    WBTC,
    WETH,
)
from tests.helpers.factories import (
    ScriptedAdapter,
    make_aggregator,
    make_path,
    make_quote,
    make_resolver,
    make_token,
)

__all__ = [
    # Constants
    "ETH",
    "WETH",
    "USDC",
    "DAI",
    "USDT",
    "WBTC",
    "TOKEN_A",
    "TOKEN_B",
    "TOKEN_C",
    "MULTI_TOKEN",
    "TOKEN_DECIMALS",
    # Factories
    "ScriptedAdapter",
    "make_aggregator",
    "make_path",
    "make_quote",
    "make_resolver",
    "make_token",
]
