"""Candidate path enumeration.

Generates every direct and one-intermediate path the registered venues could
plausibly serve. No I/O happens here: whether a pool really exists is the
adapter's answer at fetch time. Output order is a pure function of the
inputs (registry order, intermediate order, fee tier order).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from aggregator.constants import MAX_HOPS
from aggregator.models.route import Hop, Path

if TYPE_CHECKING:
    from collections.abc import Iterable

    from aggregator.models.token import Token
    from aggregator.venues.registry import VenueRegistry


def _unique_intermediates(
    sell_token: Token,
    buy_token: Token,
    allowed_intermediates: Iterable[Token],
) -> list[Token]:
    """Drop endpoints, cross-chain tokens and repeats, keeping first-seen order."""
    excluded = {sell_token.key, buy_token.key}
    seen = set()
    result = []
    for token in allowed_intermediates:
        if token.key in excluded or token.key in seen:
            continue
        if token.chain_id != sell_token.chain_id:
            continue
        seen.add(token.key)
        result.append(token)
    return result


def enumerate_paths(
    sell_token: Token,
    buy_token: Token,
    allowed_intermediates: Iterable[Token],
    max_hops: int,
    registry: VenueRegistry,
) -> list[Path]:
    """Enumerate candidate paths from sell_token to buy_token.

    Args:
        sell_token: Token being sold
        buy_token: Token being bought
        allowed_intermediates: Tokens a two-hop path may pass through
        max_hops: Maximum hops per path (values above MAX_HOPS are capped)
        registry: Venues to draw hops from

    Returns:
        Direct paths (one per venue/pool that supports the pair), followed by
        two-hop paths (one per intermediate and venue combination)
    """
    if sell_token.key == buy_token.key or max_hops < 1:
        return []

    paths = [
        Path((Hop(venue, sell_token, buy_token, pool),))
        for venue, pool in registry.candidate_hops(sell_token, buy_token)
    ]

    if min(max_hops, MAX_HOPS) < 2:
        return paths

    for intermediate in _unique_intermediates(sell_token, buy_token, allowed_intermediates):
        first_legs = registry.candidate_hops(sell_token, intermediate)
        if not first_legs:
            continue
        second_legs = registry.candidate_hops(intermediate, buy_token)
        for venue_a, pool_a in first_legs:
            for venue_b, pool_b in second_legs:
                paths.append(
                    Path(
                        (
                            Hop(venue_a, sell_token, intermediate, pool_a),
                            Hop(venue_b, intermediate, buy_token, pool_b),
                        )
                    )
                )

    return paths


__all__ = ["enumerate_paths"]
