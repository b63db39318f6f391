"""Route deduplication and ranking.

Two quotes are the same route when they execute the same ordered sequence of
(venue, token_in, token_out) hops, whichever adapter found them. Only the
better of the two survives. Survivors are ordered by normalized effective
price, then by hop count. Every comparison falls back to a total order on
the route description, so the result depends only on the set of quotes and
never on the order they arrived in.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from aggregator.math.decimal_utils import ratio
from aggregator.models.route import Quote, RankedRoute, SwapMode
from aggregator.models.types import format_units

if TYPE_CHECKING:
    from collections.abc import Iterable

    from aggregator.tokens.decimals import DecimalResolution


def _quality_key(quote: Quote, mode: SwapMode) -> tuple[int, int, str, str]:
    """Sort key where smaller is better, for choosing between duplicates."""
    primary = -quote.amount_out if mode == SwapMode.EXACT_IN else quote.amount_in
    return (primary, quote.hop_count, quote.source_label, quote.path.describe())


def deduplicate(quotes: Iterable[Quote], mode: SwapMode) -> list[Quote]:
    """Collapse quotes with identical hop sequences, keeping the better one."""
    best: dict[tuple, Quote] = {}
    for quote in quotes:
        key = quote.route_key
        current = best.get(key)
        if current is None or _quality_key(quote, mode) < _quality_key(current, mode):
            best[key] = quote
    return list(best.values())


def effective_price(quote: Quote, mode: SwapMode, decimals: DecimalResolution) -> Decimal:
    """Output per unit input (EXACT_IN) or input per unit output (EXACT_OUT), in display units."""
    sell_decimals = decimals[quote.path.sell_token]
    buy_decimals = decimals[quote.path.buy_token]
    if mode == SwapMode.EXACT_IN:
        return ratio(quote.amount_out, buy_decimals, quote.amount_in, sell_decimals)
    return ratio(quote.amount_in, sell_decimals, quote.amount_out, buy_decimals)


def rank_routes(
    quotes: Iterable[Quote],
    mode: SwapMode,
    decimals: DecimalResolution,
) -> list[RankedRoute]:
    """Deduplicate and rank quotes, best first.

    Args:
        quotes: Quotes that passed the sanity filter
        mode: Which side is fixed
        decimals: Decimals resolved for this query

    Returns:
        RankedRoutes with rank 1 for the best route
    """
    priced = [
        (effective_price(quote, mode, decimals), quote)
        for quote in deduplicate(quotes, mode)
    ]

    def sort_key(item: tuple[Decimal, Quote]) -> tuple:
        price, quote = item
        # Higher output per input is better for EXACT_IN, lower input per output for EXACT_OUT
        ordered_price = -price if mode == SwapMode.EXACT_IN else price
        return (ordered_price, quote.hop_count, quote.source_label, quote.path.describe())

    priced.sort(key=sort_key)

    return [
        RankedRoute(
            quote=quote,
            effective_price=price,
            rank=rank,
            amount_in_display=format_units(quote.amount_in, decimals[quote.path.sell_token]),
            amount_out_display=format_units(quote.amount_out, decimals[quote.path.buy_token]),
        )
        for rank, (price, quote) in enumerate(priced, start=1)
    ]


__all__ = ["deduplicate", "effective_price", "rank_routes"]
