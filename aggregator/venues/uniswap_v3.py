"""UniswapV3 venue: per-fee-tier pools quoted through QuoterV2.

Each fee tier is a separate pool, so `pools_for` proposes one candidate hop
per tier and the quoter is called with that tier.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, NamedTuple, Protocol

import structlog

from aggregator.constants import (
    DEFAULT_V3_FEE_TIERS,
    MAINNET_CHAIN_ID,
    NATIVE_ETH,
    UNISWAP_V3_QUOTER_V2,
    WETH,
)
from aggregator.models.route import SwapMode
from aggregator.venues.base import (
    BaseVenueAdapter,
    FailureReason,
    HopFailure,
    HopOutcome,
    HopQuote,
    PoolId,
)

if TYPE_CHECKING:
    from aggregator.models.route import Hop
    from aggregator.models.token import Token

logger = structlog.get_logger()


class UniswapV3Quoter(Protocol):
    """Protocol for UniswapV3 quoter implementations.

    This allows swapping between the RPC-based quoter and a mock quoter for testing.
    """

    async def quote_exact_input(
        self,
        token_in: str,
        token_out: str,
        fee: int,
        amount_in: int,
    ) -> int | None:
        """Get output amount for exact input.

        Args:
            token_in: Input token address
            token_out: Output token address
            fee: Pool fee tier (e.g., 3000)
            amount_in: Input amount

        Returns:
            Output amount, or None if the pool does not exist or the quote reverts
        """
        ...

    async def quote_exact_output(
        self,
        token_in: str,
        token_out: str,
        fee: int,
        amount_out: int,
    ) -> int | None:
        """Get input amount for exact output.

        Returns:
            Required input amount, or None if the pool does not exist or the quote reverts
        """
        ...


class QuoteKey(NamedTuple):
    """Key for looking up quotes in MockUniswapV3Quoter (addresses lowercase)."""

    token_in: str
    token_out: str
    fee: int
    amount: int
    is_exact_input: bool


class MockUniswapV3Quoter:
    """Mock quoter for testing without RPC calls.

    Configure with expected quotes, and track calls for assertions.
    """

    def __init__(
        self,
        quotes: dict[QuoteKey, int] | None = None,
        default_rate: tuple[int, int] | None = None,
        fees: Sequence[int] | None = None,
    ):
        """Initialize mock quoter.

        Args:
            quotes: Mapping of QuoteKey -> result amount for specific quotes
            default_rate: If set, (numerator, denominator) ratio for any unconfigured quote.
                         For exact_input: amount_out = amount_in * num // denom
                         For exact_output: amount_in = ceil(amount_out * denom / num)
            fees: Fee tiers the default rate applies to (all tiers when None)
        """
        self.quotes = {
            QuoteKey(k.token_in.lower(), k.token_out.lower(), k.fee, k.amount, k.is_exact_input): v
            for k, v in (quotes or {}).items()
        }
        self.default_rate = default_rate
        self.fees = set(fees) if fees is not None else None
        self.calls: list[tuple[str, str, str, int, int]] = []  # (method, in, out, fee, amount)

    def _default_applies(self, fee: int) -> bool:
        return self.default_rate is not None and (self.fees is None or fee in self.fees)

    async def quote_exact_input(
        self,
        token_in: str,
        token_out: str,
        fee: int,
        amount_in: int,
    ) -> int | None:
        self.calls.append(("exact_input", token_in, token_out, fee, amount_in))

        key = QuoteKey(token_in.lower(), token_out.lower(), fee, amount_in, True)
        if key in self.quotes:
            return self.quotes[key]

        if self._default_applies(fee):
            num, denom = self.default_rate  # type: ignore[misc]
            # Floor division for output amount (conservative for receiver)
            return amount_in * num // denom

        return None

    async def quote_exact_output(
        self,
        token_in: str,
        token_out: str,
        fee: int,
        amount_out: int,
    ) -> int | None:
        self.calls.append(("exact_output", token_in, token_out, fee, amount_out))

        key = QuoteKey(token_in.lower(), token_out.lower(), fee, amount_out, False)
        if key in self.quotes:
            return self.quotes[key]

        if self._default_applies(fee):
            num, denom = self.default_rate  # type: ignore[misc]
            if num > 0:
                # Ceiling division for input amount (conservative for payer)
                return (amount_out * denom + num - 1) // num

        return None


# QuoterV2 ABI - minimal, just the functions we need
QUOTER_V2_ABI = [
    {
        "name": "quoteExactInputSingle",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {
                "name": "params",
                "type": "tuple",
                "components": [
                    {"name": "tokenIn", "type": "address"},
                    {"name": "tokenOut", "type": "address"},
                    {"name": "amountIn", "type": "uint256"},
                    {"name": "fee", "type": "uint24"},
                    {"name": "sqrtPriceLimitX96", "type": "uint160"},
                ],
            }
        ],
        "outputs": [
            {"name": "amountOut", "type": "uint256"},
            {"name": "sqrtPriceX96After", "type": "uint160"},
            {"name": "initializedTicksCrossed", "type": "uint32"},
            {"name": "gasEstimate", "type": "uint256"},
        ],
    },
    {
        "name": "quoteExactOutputSingle",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {
                "name": "params",
                "type": "tuple",
                "components": [
                    {"name": "tokenIn", "type": "address"},
                    {"name": "tokenOut", "type": "address"},
                    {"name": "amount", "type": "uint256"},
                    {"name": "fee", "type": "uint24"},
                    {"name": "sqrtPriceLimitX96", "type": "uint160"},
                ],
            }
        ],
        "outputs": [
            {"name": "amountIn", "type": "uint256"},
            {"name": "sqrtPriceX96After", "type": "uint160"},
            {"name": "initializedTicksCrossed", "type": "uint32"},
            {"name": "gasEstimate", "type": "uint256"},
        ],
    },
]


class Web3UniswapV3Quoter:
    """Quoter that calls the QuoterV2 contract via async RPC.

    QuoterV2 reverts when a pool does not exist, so reverts are reported as
    None at debug level rather than as errors.
    """

    def __init__(self, web3_provider: str, quoter_address: str = UNISWAP_V3_QUOTER_V2):
        """Initialize quoter with web3 provider.

        Args:
            web3_provider: HTTP RPC URL (e.g., "https://eth.llamarpc.com")
            quoter_address: QuoterV2 contract address
        """
        try:
            from web3 import AsyncHTTPProvider, AsyncWeb3
        except ImportError as e:
            raise ImportError(
                "web3 package required for Web3UniswapV3Quoter. Install with: pip install web3"
            ) from e

        self.w3 = AsyncWeb3(AsyncHTTPProvider(web3_provider))
        self.quoter = self.w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(quoter_address),
            abi=QUOTER_V2_ABI,
        )

    async def _call(self, function_name: str, token_in: str, token_out: str, fee: int, amount: int) -> int | None:
        from web3 import AsyncWeb3
        from web3.exceptions import ContractLogicError

        function = getattr(self.quoter.functions, function_name)
        try:
            result = await function(
                (
                    AsyncWeb3.to_checksum_address(token_in),
                    AsyncWeb3.to_checksum_address(token_out),
                    amount,
                    fee,
                    0,  # sqrtPriceLimitX96 = 0 means no limit
                )
            ).call()
        except ContractLogicError as e:
            logger.debug(
                "v3_quote_reverted",
                function=function_name,
                token_in=token_in,
                token_out=token_out,
                fee=fee,
                amount=amount,
                error=str(e),
            )
            return None

        # Result is (amount, sqrtPriceX96After, initializedTicksCrossed, gasEstimate)
        return int(result[0])

    async def quote_exact_input(
        self,
        token_in: str,
        token_out: str,
        fee: int,
        amount_in: int,
    ) -> int | None:
        return await self._call("quoteExactInputSingle", token_in, token_out, fee, amount_in)

    async def quote_exact_output(
        self,
        token_in: str,
        token_out: str,
        fee: int,
        amount_out: int,
    ) -> int | None:
        return await self._call("quoteExactOutputSingle", token_in, token_out, fee, amount_out)


class UniswapV3Adapter(BaseVenueAdapter):
    """Venue adapter for Uniswap V3 pools, one candidate per fee tier."""

    venue = "uniswap-v3"

    def __init__(
        self,
        quoter: UniswapV3Quoter,
        fee_tiers: Sequence[int] = DEFAULT_V3_FEE_TIERS,
        chain_id: int = MAINNET_CHAIN_ID,
    ) -> None:
        super().__init__(chain_id)
        self.quoter = quoter
        self.fee_tiers = tuple(fee_tiers)

    def _pools_for(self, token_in: Token, token_out: Token) -> Sequence[PoolId]:
        # ETH and WETH share pools, there is nothing to swap between them here
        if {self._pool_address(token_in), self._pool_address(token_out)} == {WETH}:
            return ()
        return self.fee_tiers

    @staticmethod
    def _pool_address(token: Token) -> str:
        """V3 pools hold WETH, never native ETH."""
        return WETH if token.address == NATIVE_ETH else token.address

    async def _quote(self, hop: Hop, amount: int, mode: SwapMode) -> HopOutcome:
        if not isinstance(hop.pool, int):
            return HopFailure(FailureReason.NOT_FOUND, f"not a fee tier: {hop.pool!r}")

        token_in = self._pool_address(hop.token_in)
        token_out = self._pool_address(hop.token_out)

        if mode == SwapMode.EXACT_IN:
            amount_out = await self.quoter.quote_exact_input(token_in, token_out, hop.pool, amount)
            if not amount_out:
                return HopFailure(FailureReason.NOT_FOUND)
            return HopQuote(amount_in=amount, amount_out=amount_out, venue=self.venue, pool=hop.pool)

        amount_in = await self.quoter.quote_exact_output(token_in, token_out, hop.pool, amount)
        if not amount_in:
            return HopFailure(FailureReason.NOT_FOUND)
        return HopQuote(amount_in=amount_in, amount_out=amount, venue=self.venue, pool=hop.pool)


__all__ = [
    "MockUniswapV3Quoter",
    "QUOTER_V2_ABI",
    "QuoteKey",
    "UniswapV3Adapter",
    "UniswapV3Quoter",
    "Web3UniswapV3Quoter",
]
