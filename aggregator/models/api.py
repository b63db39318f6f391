"""Pydantic models for the HTTP quote API.

Field names are camelCase on the wire (aliases) and snake_case in Python.
Amounts travel as decimal strings to survive JSON number precision.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from aggregator.models.route import (
    Path,
    RankedRoute,
    RejectedPath,
    RouteRequest,
    RouteResult,
    SwapMode,
)
from aggregator.models.token import Token, TokenStandard
from aggregator.models.types import Address, Uint256


class TokenModel(BaseModel):
    """Token as supplied by the client."""

    chain_id: int = Field(default=1, alias="chainId", ge=1)
    address: Address
    id: int | None = Field(default=None, ge=0, description="Sub-id for multi-token contracts")
    decimals: int | None = Field(default=None, ge=0, le=255)
    standard: TokenStandard = TokenStandard.ERC20
    symbol: str | None = None

    model_config = {"populate_by_name": True}

    def to_token(self) -> Token:
        return Token(
            chain_id=self.chain_id,
            address=self.address,
            token_id=self.id,
            decimals=self.decimals,
            standard=self.standard,
            symbol=self.symbol,
        )


class QuoteRequestModel(BaseModel):
    """Body of POST /quote."""

    sell_token: TokenModel = Field(alias="sellToken")
    buy_token: TokenModel = Field(alias="buyToken")
    amount: Uint256 = Field(description="Fixed amount in base units of the fixed side")
    mode: SwapMode
    max_hops: int | None = Field(default=None, alias="maxHops")
    allowed_intermediates: list[TokenModel] | None = Field(default=None, alias="allowedIntermediates")

    model_config = {"populate_by_name": True}

    def to_request(self) -> RouteRequest:
        intermediates = None
        if self.allowed_intermediates is not None:
            intermediates = tuple(token.to_token() for token in self.allowed_intermediates)
        return RouteRequest(
            sell_token=self.sell_token.to_token(),
            buy_token=self.buy_token.to_token(),
            amount=int(self.amount),
            mode=self.mode,
            max_hops=self.max_hops,
            allowed_intermediates=intermediates,
        )


class HopModel(BaseModel):
    """One hop of a route."""

    venue: str
    token_in: Address = Field(alias="tokenIn")
    token_out: Address = Field(alias="tokenOut")
    pool: int | str | None = None
    amount_in: Uint256 | None = Field(default=None, alias="amountIn")
    amount_out: Uint256 | None = Field(default=None, alias="amountOut")

    model_config = {"populate_by_name": True}


class RouteModel(BaseModel):
    """A ranked route."""

    rank: int
    amount_in: Uint256 = Field(alias="amountIn")
    amount_out: Uint256 = Field(alias="amountOut")
    amount_in_display: str = Field(alias="amountInDisplay")
    amount_out_display: str = Field(alias="amountOutDisplay")
    effective_price: str = Field(alias="effectivePrice")
    venue: str
    sources: list[str] = Field(default_factory=list)
    is_multihop: bool = Field(alias="isMultiHop")
    hops: list[HopModel]

    model_config = {"populate_by_name": True}

    @classmethod
    def from_route(cls, route: RankedRoute) -> RouteModel:
        quote = route.quote
        if quote.executed_hops:
            hops = [
                HopModel(
                    venue=hop.venue,
                    token_in=hop.token_in.address,
                    token_out=hop.token_out.address,
                    pool=hop.pool,
                    amount_in=str(hop.amount_in),
                    amount_out=str(hop.amount_out),
                )
                for hop in quote.executed_hops
            ]
        else:
            hops = _path_hops(quote.path)
        return cls(
            rank=route.rank,
            amount_in=str(route.amount_in),
            amount_out=str(route.amount_out),
            amount_in_display=route.amount_in_display,
            amount_out_display=route.amount_out_display,
            effective_price=str(route.effective_price),
            venue=quote.source_label,
            sources=list(quote.sources),
            is_multihop=route.is_multihop,
            hops=hops,
        )


def _path_hops(path: Path) -> list[HopModel]:
    return [
        HopModel(
            venue=hop.venue,
            token_in=hop.token_in.address,
            token_out=hop.token_out.address,
            pool=hop.pool,
        )
        for hop in path.hops
    ]


class RejectedModel(BaseModel):
    """A path dropped during discovery, and why."""

    path: list[HopModel]
    reason: str
    venue: str | None = None
    detail: str | None = None

    @classmethod
    def from_rejected(cls, rejected: RejectedPath) -> RejectedModel:
        return cls(
            path=_path_hops(rejected.path),
            reason=rejected.reason.value,
            venue=rejected.source_label,
            detail=rejected.detail,
        )


class DiagnosticsModel(BaseModel):
    """Query diagnostics."""

    rejected: list[RejectedModel] = Field(default_factory=list)
    unresolved_tokens: list[str] = Field(default_factory=list, alias="unresolvedTokens")
    paths_considered: int = Field(default=0, alias="pathsConsidered")
    quotes_received: int = Field(default=0, alias="quotesReceived")
    timed_out: bool = Field(default=False, alias="timedOut")
    cancelled: bool = False

    model_config = {"populate_by_name": True}


class QuoteResponse(BaseModel):
    """Response of POST /quote."""

    best: RouteModel | None = None
    all: list[RouteModel] = Field(default_factory=list)
    diagnostics: DiagnosticsModel = Field(default_factory=DiagnosticsModel)

    @classmethod
    def from_result(cls, result: RouteResult) -> QuoteResponse:
        routes = [RouteModel.from_route(route) for route in result.routes]
        diagnostics = result.diagnostics
        return cls(
            best=routes[0] if routes else None,
            all=routes,
            diagnostics=DiagnosticsModel(
                rejected=[RejectedModel.from_rejected(r) for r in diagnostics.rejected],
                unresolved_tokens=[str(key) for key in diagnostics.unresolved_tokens],
                paths_considered=diagnostics.paths_considered,
                quotes_received=diagnostics.quotes_received,
                timed_out=diagnostics.timed_out,
                cancelled=diagnostics.cancelled,
            ),
        )


__all__ = [
    "DiagnosticsModel",
    "HopModel",
    "QuoteRequestModel",
    "QuoteResponse",
    "RejectedModel",
    "RouteModel",
    "TokenModel",
]
