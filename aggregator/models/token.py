"""Token identity and metadata."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple

from aggregator.models.types import normalize_address


class TokenStandard(str, Enum):
    """Token contract standard."""

    NATIVE = "native"
    ERC20 = "erc20"
    ERC6909 = "erc6909"


class TokenKey(NamedTuple):
    """Identity of a token: (chain id, lowercase address, optional sub-id)."""

    chain_id: int
    address: str
    token_id: int | None = None

    def __str__(self) -> str:
        base = f"{self.chain_id}:{self.address}"
        return base if self.token_id is None else f"{base}#{self.token_id}"


@dataclass(frozen=True)
class Token:
    """A token involved in a route.

    `decimals` is optional: tokens from a trusted list carry it, anything
    else is resolved on-chain before amounts are compared. Symbol and name
    are display only and do not take part in equality.
    """

    chain_id: int
    address: str
    token_id: int | None = None
    decimals: int | None = None
    standard: TokenStandard = TokenStandard.ERC20
    symbol: str | None = None
    name: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "address", normalize_address(self.address, validate=True))
        if self.decimals is not None and not 0 <= self.decimals <= 255:
            raise ValueError(f"decimals out of range for {self.address}: {self.decimals}")

    @property
    def key(self) -> TokenKey:
        return TokenKey(self.chain_id, self.address, self.token_id)

    @property
    def label(self) -> str:
        """Short human label for logs."""
        return self.symbol or self.address[-8:]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Token):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)
