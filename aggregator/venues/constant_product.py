"""Constant-product pool venues (Uniswap V2 style and ZAMM style).

Reserves come from a ReserveSource; the swap math is evaluated locally with
ConstantProduct, so one hop costs one reserves read.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from aggregator.amm.constant_product import ConstantProduct, constant_product
from aggregator.constants import (
    MAINNET_CHAIN_ID,
    NATIVE_ETH,
    UNISWAP_V2_FACTORY,
    UNISWAP_V2_FEE_BPS,
    WETH,
    ZAMM_FEE_BPS,
)
from aggregator.models.route import SwapMode
from aggregator.models.types import UINT256_MAX
from aggregator.venues.base import BaseVenueAdapter, FailureReason, HopFailure, HopOutcome, HopQuote

if TYPE_CHECKING:
    from aggregator.models.route import Hop
    from aggregator.models.token import Token, TokenKey


class ReserveSource(Protocol):
    """Protocol for pool reserve readers.

    Returns (reserve_in, reserve_out) ordered for the swap direction, or None
    when no pool exists for the pair.
    """

    async def get_reserves(self, token_in: Token, token_out: Token) -> tuple[int, int] | None: ...


class InMemoryReserveSource:
    """Reserve source backed by a dict of pools, for tests and simulations."""

    def __init__(self) -> None:
        self._pools: dict[frozenset[TokenKey], dict[TokenKey, int]] = {}
        self.calls: list[tuple[str, str]] = []

    def add_pool(self, token_a: Token, token_b: Token, reserve_a: int, reserve_b: int) -> None:
        """Register (or replace) the pool for a token pair."""
        self._pools[frozenset((token_a.key, token_b.key))] = {
            token_a.key: reserve_a,
            token_b.key: reserve_b,
        }

    def has_pool(self, token_a: Token, token_b: Token) -> bool:
        return frozenset((token_a.key, token_b.key)) in self._pools

    async def get_reserves(self, token_in: Token, token_out: Token) -> tuple[int, int] | None:
        self.calls.append((token_in.address, token_out.address))
        pool = self._pools.get(frozenset((token_in.key, token_out.key)))
        if pool is None:
            return None
        return pool[token_in.key], pool[token_out.key]


# Minimal ABIs - just the functions we need
UNISWAP_V2_FACTORY_ABI = [
    {
        "name": "getPair",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "tokenA", "type": "address"},
            {"name": "tokenB", "type": "address"},
        ],
        "outputs": [{"name": "pair", "type": "address"}],
    }
]

UNISWAP_V2_PAIR_ABI = [
    {
        "name": "getReserves",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [
            {"name": "reserve0", "type": "uint112"},
            {"name": "reserve1", "type": "uint112"},
            {"name": "blockTimestampLast", "type": "uint32"},
        ],
    },
    {
        "name": "token0",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "address"}],
    },
]


class Web3V2ReserveSource:
    """Reads Uniswap V2 pair reserves via factory.getPair + pair.getReserves.

    Native ETH is looked up as WETH, since V2 pairs only hold ERC20s.
    """

    def __init__(self, web3_provider: str, factory_address: str = UNISWAP_V2_FACTORY) -> None:
        try:
            from web3 import AsyncHTTPProvider, AsyncWeb3
        except ImportError as e:
            raise ImportError(
                "web3 package required for Web3V2ReserveSource. Install with: pip install web3"
            ) from e

        self.w3 = AsyncWeb3(AsyncHTTPProvider(web3_provider))
        self.factory = self.w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(factory_address),
            abi=UNISWAP_V2_FACTORY_ABI,
        )

    async def get_reserves(self, token_in: Token, token_out: Token) -> tuple[int, int] | None:
        from web3 import AsyncWeb3

        address_in = WETH if token_in.address == NATIVE_ETH else token_in.address
        address_out = WETH if token_out.address == NATIVE_ETH else token_out.address

        pair_address = await self.factory.functions.getPair(
            AsyncWeb3.to_checksum_address(address_in),
            AsyncWeb3.to_checksum_address(address_out),
        ).call()
        if int(pair_address, 16) == 0:
            return None

        pair = self.w3.eth.contract(address=pair_address, abi=UNISWAP_V2_PAIR_ABI)
        reserve0, reserve1, _ = await pair.functions.getReserves().call()
        token0 = (await pair.functions.token0().call()).lower()
        if token0 == address_in:
            return int(reserve0), int(reserve1)
        return int(reserve1), int(reserve0)


class ConstantProductAdapter(BaseVenueAdapter):
    """Venue adapter for x*y=k pools with a fixed fee.

    One pool per pair, so `pools_for` always proposes a single candidate.
    """

    def __init__(
        self,
        venue: str,
        reserves: ReserveSource,
        fee_bps: int,
        chain_id: int = MAINNET_CHAIN_ID,
        amm: ConstantProduct | None = None,
    ) -> None:
        super().__init__(chain_id)
        self.venue = venue
        self.reserves = reserves
        self.fee_bps = fee_bps
        self.amm = amm if amm is not None else constant_product

    async def _quote(self, hop: Hop, amount: int, mode: SwapMode) -> HopOutcome:
        reserves = await self.reserves.get_reserves(hop.token_in, hop.token_out)
        if reserves is None:
            return HopFailure(FailureReason.NOT_FOUND)
        reserve_in, reserve_out = reserves

        if mode == SwapMode.EXACT_IN:
            amount_out = self.amm.get_amount_out(amount, reserve_in, reserve_out, self.fee_bps)
            if amount_out <= 0:
                return HopFailure(FailureReason.INSUFFICIENT_LIQUIDITY)
            return HopQuote(amount_in=amount, amount_out=amount_out, venue=self.venue)

        amount_in = self.amm.get_amount_in(amount, reserve_in, reserve_out, self.fee_bps)
        if amount_in <= 0 or amount_in >= UINT256_MAX:
            return HopFailure(FailureReason.INSUFFICIENT_LIQUIDITY)
        return HopQuote(amount_in=amount_in, amount_out=amount, venue=self.venue)


def uniswap_v2_adapter(
    reserves: ReserveSource, chain_id: int = MAINNET_CHAIN_ID
) -> ConstantProductAdapter:
    """Uniswap V2 pools: 0.3% fee."""
    return ConstantProductAdapter("uniswap-v2", reserves, UNISWAP_V2_FEE_BPS, chain_id)


def zamm_adapter(reserves: ReserveSource, chain_id: int = MAINNET_CHAIN_ID) -> ConstantProductAdapter:
    """ZAMM pools: 1% default fee."""
    return ConstantProductAdapter("zamm", reserves, ZAMM_FEE_BPS, chain_id)


__all__ = [
    "ConstantProductAdapter",
    "InMemoryReserveSource",
    "ReserveSource",
    "Web3V2ReserveSource",
    "uniswap_v2_adapter",
    "zamm_adapter",
]
