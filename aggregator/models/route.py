"""Route data structures: hops, paths, quotes and ranked results.

All instances are created per query and never mutated. Amounts are always
integers in base units of their token's resolved decimals.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from aggregator.models.token import Token, TokenKey


class SwapMode(str, Enum):
    """Which side of the trade is fixed."""

    EXACT_IN = "EXACT_IN"
    EXACT_OUT = "EXACT_OUT"


@dataclass(frozen=True)
class Hop:
    """One atomic exchange leg through a single venue.

    Attributes:
        venue: Venue identifier of the adapter that quotes this hop
        token_in: Token sold into the venue
        token_out: Token received from the venue
        pool: Fee tier or pool identifier, None when the venue has one pool per pair
    """

    venue: str
    token_in: Token
    token_out: Token
    pool: int | str | None = None

    @property
    def signature(self) -> tuple[str, TokenKey, TokenKey]:
        return (self.venue, self.token_in.key, self.token_out.key)

    def describe(self) -> str:
        pool = "" if self.pool is None else f"/{self.pool}"
        return f"{self.token_in.label}->{self.token_out.label}@{self.venue}{pool}"


@dataclass(frozen=True)
class Path:
    """Ordered, non-empty chain of hops from sell token to buy token."""

    hops: tuple[Hop, ...]

    def __post_init__(self) -> None:
        if not self.hops:
            raise ValueError("Path must contain at least one hop")
        for prev, nxt in zip(self.hops, self.hops[1:]):
            if prev.token_out.key != nxt.token_in.key:
                raise ValueError(
                    f"Disconnected path: {prev.describe()} does not feed {nxt.describe()}"
                )

    @property
    def sell_token(self) -> Token:
        return self.hops[0].token_in

    @property
    def buy_token(self) -> Token:
        return self.hops[-1].token_out

    @property
    def length(self) -> int:
        return len(self.hops)

    @property
    def tokens(self) -> tuple[Token, ...]:
        """Every token on the path, in order (sell, intermediates..., buy)."""
        return (self.hops[0].token_in,) + tuple(hop.token_out for hop in self.hops)

    @property
    def venues(self) -> tuple[str, ...]:
        return tuple(hop.venue for hop in self.hops)

    def describe(self) -> str:
        return " | ".join(hop.describe() for hop in self.hops)


@dataclass(frozen=True)
class ExecutedHop:
    """A hop as it would actually execute, with amounts.

    For most adapters `venue` equals the enumerated hop's venue. The on-chain
    aggregator reports the underlying venue behind each of its per-source
    quotes, which lets the ranker spot the same pool discovered twice.
    """

    venue: str
    token_in: Token
    token_out: Token
    pool: int | str | None
    amount_in: int
    amount_out: int

    @property
    def signature(self) -> tuple[str, TokenKey, TokenKey]:
        return (self.venue, self.token_in.key, self.token_out.key)


@dataclass(frozen=True)
class Quote:
    """A priced path.

    Attributes:
        path: The enumerated path that was evaluated
        amount_in: Total input in sell-token base units
        amount_out: Total output in buy-token base units
        source_label: Adapter(s) that produced the quote, joined with "+"
        executed_hops: Per-hop execution detail
        sources: Underlying liquidity sources reported by an aggregator venue
    """

    path: Path
    amount_in: int
    amount_out: int
    source_label: str
    executed_hops: tuple[ExecutedHop, ...] = ()
    sources: tuple[str, ...] = ()

    @property
    def route_key(self) -> tuple[tuple[str, TokenKey, TokenKey], ...]:
        """Ordered (venue, token_in, token_out) signature used for deduplication."""
        if self.executed_hops:
            return tuple(hop.signature for hop in self.executed_hops)
        return tuple(hop.signature for hop in self.path.hops)

    @property
    def hop_count(self) -> int:
        return self.path.length


@dataclass(frozen=True)
class RankedRoute:
    """A surviving quote with its normalized effective price and rank (1 = best)."""

    quote: Quote
    effective_price: Decimal
    rank: int
    amount_in_display: str = ""
    amount_out_display: str = ""

    @property
    def amount_in(self) -> int:
        return self.quote.amount_in

    @property
    def amount_out(self) -> int:
        return self.quote.amount_out

    @property
    def path(self) -> Path:
        return self.quote.path

    @property
    def is_multihop(self) -> bool:
        return self.quote.hop_count > 1


class RejectReason(str, Enum):
    """Machine-readable reason a path was dropped."""

    SANITY_INPUT_TOO_SMALL = "SANITY_INPUT_TOO_SMALL"
    DECIMALS_UNRESOLVED = "DECIMALS_UNRESOLVED"


@dataclass(frozen=True)
class RejectedPath:
    """Diagnostic record for a dropped path."""

    path: Path
    reason: RejectReason
    source_label: str | None = None
    detail: str | None = None


@dataclass
class RouteDiagnostics:
    """What happened during one query, for debugging venue exclusions."""

    rejected: list[RejectedPath] = field(default_factory=list)
    unresolved_tokens: list[TokenKey] = field(default_factory=list)
    paths_considered: int = 0
    quotes_received: int = 0
    timed_out: bool = False
    cancelled: bool = False


@dataclass(frozen=True)
class RouteRequest:
    """Input to get_routes.

    `amount` is in sell-token base units for EXACT_IN and buy-token base
    units for EXACT_OUT.
    """

    sell_token: Token
    buy_token: Token
    amount: int
    mode: SwapMode
    max_hops: int | None = None
    allowed_intermediates: tuple[Token, ...] | None = None


@dataclass
class RouteResult:
    """Ranked routes for one query. `best` is None when nothing survived."""

    best: RankedRoute | None
    routes: list[RankedRoute]
    diagnostics: RouteDiagnostics

    @property
    def all(self) -> list[RankedRoute]:
        return self.routes

    @classmethod
    def empty(cls, diagnostics: RouteDiagnostics | None = None) -> RouteResult:
        return cls(best=None, routes=[], diagnostics=diagnostics or RouteDiagnostics())
