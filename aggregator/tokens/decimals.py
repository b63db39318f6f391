"""Token decimal resolution with a process-wide cache.

Amounts are only comparable once both tokens' decimals are known. This
module resolves them on-chain and never guesses: a token whose decimals
cannot be read stays unresolved and every path touching it is dropped.

The cache is insert-only. Decimals are immutable on-chain, so entries are
never invalidated and concurrent resolution of the same token is at worst
redundant work.
"""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

import structlog

from aggregator.constants import MULTI_TOKEN_DECIMALS, NATIVE_DECIMALS, NATIVE_ETH
from aggregator.errors import DecimalResolutionError
from aggregator.models.token import Token, TokenKey, TokenStandard

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = structlog.get_logger()

# Minimal ERC20 ABI - just decimals()
ERC20_DECIMALS_ABI = [
    {
        "name": "decimals",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint8"}],
    }
]


class DecimalSource(Protocol):
    """Protocol for on-chain decimals readers.

    Implementations raise DecimalResolutionError when the call reverts or the
    contract has no decimals() accessor.
    """

    async def read_decimals(self, token: Token) -> int: ...


class DecimalCache:
    """Process-wide decimals cache keyed by (chain id, address).

    Thread-safe insert-if-absent; the first value stored for a key wins.
    """

    def __init__(self) -> None:
        self._values: dict[tuple[int, str], int] = {}
        self._lock = threading.Lock()

    @staticmethod
    def cache_key(token: Token) -> tuple[int, str]:
        return (token.chain_id, token.address)

    def get(self, token: Token) -> int | None:
        return self._values.get(self.cache_key(token))

    def insert(self, token: Token, decimals: int) -> int:
        """Store decimals for a token unless already present.

        Returns:
            The value held by the cache after the call
        """
        key = self.cache_key(token)
        with self._lock:
            existing = self._values.setdefault(key, decimals)
        if existing != decimals:
            logger.warning(
                "decimals_conflict",
                token=str(token.key),
                cached=existing,
                offered=decimals,
            )
        return existing

    def __contains__(self, token: object) -> bool:
        return isinstance(token, Token) and self.cache_key(token) in self._values

    def __len__(self) -> int:
        return len(self._values)


# Shared by every resolver in the process unless one is given explicitly
DECIMAL_CACHE = DecimalCache()


@dataclass
class DecimalResolution:
    """Outcome of resolving a batch of tokens."""

    decimals: dict[TokenKey, int] = field(default_factory=dict)
    failures: dict[TokenKey, DecimalResolutionError] = field(default_factory=dict)

    def is_resolved(self, token: Token) -> bool:
        return token.key in self.decimals

    def __getitem__(self, token: Token) -> int:
        return self.decimals[token.key]


class DecimalResolver:
    """Resolves decimals for tokens, reading on-chain only on cache misses.

    Resolution order per token:
    1. Native ETH and ERC6909 ids are fixed at 18
    2. Decimals already carried by the Token (trusted token list)
    3. The process-wide cache
    4. An on-chain read through the DecimalSource
    """

    def __init__(
        self,
        source: DecimalSource | None = None,
        cache: DecimalCache | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self.source = source
        self.cache = cache if cache is not None else DECIMAL_CACHE
        self.timeout_seconds = timeout_seconds

    def _known_decimals(self, token: Token) -> int | None:
        if token.address == NATIVE_ETH or token.standard == TokenStandard.NATIVE:
            return NATIVE_DECIMALS
        if token.standard == TokenStandard.ERC6909:
            return MULTI_TOKEN_DECIMALS
        if token.decimals is not None:
            return self.cache.insert(token, token.decimals)
        return self.cache.get(token)

    async def _read(self, token: Token) -> int:
        if self.source is None:
            raise DecimalResolutionError(token.key, "no decimals source configured")
        try:
            if self.timeout_seconds is None:
                value = await self.source.read_decimals(token)
            else:
                value = await asyncio.wait_for(
                    self.source.read_decimals(token), timeout=self.timeout_seconds
                )
        except TimeoutError as e:
            raise DecimalResolutionError(token.key, "decimals() read timed out") from e
        except DecimalResolutionError:
            raise
        except Exception as e:
            logger.warning("decimals_read_error", token=str(token.key), error=str(e))
            raise DecimalResolutionError(token.key, f"decimals() read failed: {e}") from e
        if not 0 <= value <= 255:
            raise DecimalResolutionError(token.key, f"decimals() returned {value}")
        return self.cache.insert(token, value)

    async def resolve(self, tokens: Iterable[Token]) -> DecimalResolution:
        """Resolve decimals for every token, reading distinct misses concurrently.

        Failures are reported per token; this method never raises for them.
        """
        resolution = DecimalResolution()
        pending: dict[tuple[int, str], list[Token]] = {}

        for token in tokens:
            if token.key in resolution.decimals:
                continue
            known = self._known_decimals(token)
            if known is not None:
                resolution.decimals[token.key] = known
            else:
                pending.setdefault(DecimalCache.cache_key(token), []).append(token)

        if not pending:
            return resolution

        groups = list(pending.values())
        results = await asyncio.gather(
            *(self._read(group[0]) for group in groups),
            return_exceptions=True,
        )

        for group, result in zip(groups, results):
            if isinstance(result, DecimalResolutionError):
                logger.info(
                    "decimals_unresolved",
                    token=str(group[0].key),
                    reason=result.reason,
                )
                for token in group:
                    resolution.failures[token.key] = result
            elif isinstance(result, BaseException):
                raise result
            else:
                for token in group:
                    resolution.decimals[token.key] = result

        return resolution


class StaticDecimalSource:
    """Decimals source backed by a fixed mapping, for tests and offline use.

    Addresses missing from the mapping fail like a reverting decimals() call.
    """

    def __init__(self, decimals: dict[str, int]) -> None:
        self.decimals = {address.lower(): value for address, value in decimals.items()}
        self.calls: list[str] = []

    async def read_decimals(self, token: Token) -> int:
        self.calls.append(token.address)
        if token.address not in self.decimals:
            raise DecimalResolutionError(token.key, "decimals() reverted")
        return self.decimals[token.address]


class Web3DecimalSource:
    """Reads ERC20 decimals() through an async JSON-RPC provider."""

    def __init__(self, web3_provider: str) -> None:
        """Initialize with an HTTP RPC URL (e.g., "https://eth.llamarpc.com")."""
        try:
            from web3 import AsyncHTTPProvider, AsyncWeb3
        except ImportError as e:
            raise ImportError(
                "web3 package required for Web3DecimalSource. Install with: pip install web3"
            ) from e

        self.w3 = AsyncWeb3(AsyncHTTPProvider(web3_provider))

    async def read_decimals(self, token: Token) -> int:
        from web3 import AsyncWeb3

        contract = self.w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(token.address),
            abi=ERC20_DECIMALS_ABI,
        )
        try:
            return int(await contract.functions.decimals().call())
        except Exception as e:
            raise DecimalResolutionError(token.key, str(e)) from e
