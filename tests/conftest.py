"""Pytest configuration and fixtures."""

from collections.abc import Iterator

import pytest

from aggregator.models.token import Token
from aggregator.routing import router as router_module
from aggregator.tokens.decimals import DecimalCache
from tests.helpers import DAI, ETH, USDC, WETH, make_token


@pytest.fixture
def eth() -> Token:
    return make_token(ETH, symbol="ETH")


@pytest.fixture
def weth() -> Token:
    return make_token(WETH, decimals=18, symbol="WETH")


@pytest.fixture
def usdc() -> Token:
    return make_token(USDC, decimals=6, symbol="USDC")


@pytest.fixture
def dai() -> Token:
    return make_token(DAI, decimals=18, symbol="DAI")


@pytest.fixture
def decimal_cache() -> DecimalCache:
    """A private decimals cache, so tests never share resolved values."""
    return DecimalCache()


@pytest.fixture(autouse=True)
def reset_default_aggregator() -> Iterator[None]:
    """Drop the process-wide aggregator between tests."""
    router_module._default_aggregator = None
    yield
    router_module._default_aggregator = None
