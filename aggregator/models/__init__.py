"""Data structures for route discovery."""

from aggregator.models.route import (
    ExecutedHop,
    Hop,
    Path,
    Quote,
    RankedRoute,
    RejectedPath,
    RejectReason,
    RouteDiagnostics,
    RouteRequest,
    RouteResult,
    SwapMode,
)
from aggregator.models.token import Token, TokenKey, TokenStandard
from aggregator.models.types import Address, Uint256

__all__ = [
    # Types
    "Address",
    "Uint256",
    # Tokens
    "Token",
    "TokenKey",
    "TokenStandard",
    # Routes
    "SwapMode",
    "Hop",
    "Path",
    "ExecutedHop",
    "Quote",
    "RankedRoute",
    "RejectReason",
    "RejectedPath",
    "RouteDiagnostics",
    "RouteRequest",
    "RouteResult",
]
