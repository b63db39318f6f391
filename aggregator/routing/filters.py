"""Numeric plausibility filter for completed quotes.

Guards against venues returning silently wrong amounts, such as an EXACT_OUT
quote whose required input is 1000x too small because the venue mixed up
decimal bases for one fee tier.

Amounts are compared in display units. The output is priced in input-token
terms at the median rate quoted by the *other* routes of the same query, and
a quote is rejected when its required input is less than 1/ratio of that
priced output. Only peers that clear the absolute input floors take part in
the reference, and each distinct route counts once. Without such a peer the
floors decide on their own: a required input below `min_input`, or below
`large_output_min_input` for an output above `large_output`, is rejected.
Tiny outputs (below `min_output` display units) are never checked.
"""

from __future__ import annotations

import decimal
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING

import structlog

from aggregator.math.decimal_utils import DECIMAL_HIGH_PREC_CONTEXT, median, to_display
from aggregator.models.route import RejectedPath, RejectReason, SwapMode

if TYPE_CHECKING:
    from collections.abc import Sequence

    from aggregator.models.route import Quote
    from aggregator.tokens.decimals import DecimalResolution

logger = structlog.get_logger()


@dataclass
class FilterResult:
    """Quotes that passed, in input order, and the rejections."""

    kept: list[Quote] = field(default_factory=list)
    rejected: list[RejectedPath] = field(default_factory=list)


class SanityFilter:
    """Rejects EXACT_OUT quotes whose required input is implausibly small.

    Args:
        ratio: Reject when input < priced output / ratio
        min_output: Output magnitude (display units) below which quotes are not checked
        min_input: Input floor (display units) used when no trusted peer exists
        large_output: Output magnitude above which `large_output_min_input` applies
        large_output_min_input: Input floor for large outputs when no trusted peer exists
    """

    def __init__(
        self,
        ratio: int = 100,
        min_output: Decimal = Decimal(100),
        min_input: Decimal = Decimal("0.01"),
        large_output: Decimal = Decimal(1000),
        large_output_min_input: Decimal = Decimal("0.5"),
    ) -> None:
        self.ratio = ratio
        self.min_output = min_output
        self.min_input = min_input
        self.large_output = large_output
        self.large_output_min_input = large_output_min_input

    def filter_valid(
        self,
        quotes: Sequence[Quote],
        mode: SwapMode,
        decimals: DecimalResolution,
    ) -> FilterResult:
        """Split quotes into plausible and rejected.

        Only EXACT_OUT quotes are checked; EXACT_IN quotes all pass.
        """
        result = FilterResult()
        if mode != SwapMode.EXACT_OUT:
            result.kept.extend(quotes)
            return result

        with decimal.localcontext(DECIMAL_HIGH_PREC_CONTEXT):
            displays = [self._display_amounts(quote, decimals) for quote in quotes]
            rates = [amount_in / amount_out for amount_in, amount_out in displays]
            below_floor = [self._below_floor(amount_in, amount_out) for amount_in, amount_out in displays]

            for index, quote in enumerate(quotes):
                amount_in, amount_out = displays[index]
                if amount_out <= self.min_output:
                    result.kept.append(quote)
                    continue

                reference_rate = self._reference_rate(index, quotes, rates, below_floor)
                if reference_rate is None:
                    if not below_floor[index]:
                        result.kept.append(quote)
                        continue
                    expected_in = None
                    detail = f"input {amount_in} below plausibility floor for output {amount_out}"
                else:
                    expected_in = amount_out * reference_rate
                    if amount_in * self.ratio >= expected_in:
                        result.kept.append(quote)
                        continue
                    detail = f"input {amount_in} < {expected_in} / {self.ratio} for output {amount_out}"

                logger.warning(
                    "sanity_rejected",
                    venue=quote.source_label,
                    path=quote.path.describe(),
                    amount_in=quote.amount_in,
                    amount_out=quote.amount_out,
                    expected_in=None if expected_in is None else str(expected_in),
                    ratio=self.ratio,
                )
                result.rejected.append(
                    RejectedPath(
                        path=quote.path,
                        reason=RejectReason.SANITY_INPUT_TOO_SMALL,
                        source_label=quote.source_label,
                        detail=detail,
                    )
                )

        return result

    def _below_floor(self, amount_in: Decimal, amount_out: Decimal) -> bool:
        if amount_in < self.min_input:
            return True
        return amount_out > self.large_output and amount_in < self.large_output_min_input

    @staticmethod
    def _reference_rate(
        index: int,
        quotes: Sequence[Quote],
        rates: list[Decimal],
        below_floor: list[bool],
    ) -> Decimal | None:
        """Median input-per-output rate of the trusted peers of quotes[index].

        Peers below the absolute floors are left out, and quotes sharing a
        route key are first reduced to their own median so a route found by
        several adapters is counted once.
        """
        by_route: dict[tuple, list[Decimal]] = {}
        for other, quote in enumerate(quotes):
            if other == index or below_floor[other]:
                continue
            by_route.setdefault(quote.route_key, []).append(rates[other])
        if not by_route:
            return None
        return median([median(route_rates) for route_rates in by_route.values()])

    @staticmethod
    def _display_amounts(quote: Quote, decimals: DecimalResolution) -> tuple[Decimal, Decimal]:
        sell_decimals = decimals[quote.path.sell_token]
        buy_decimals = decimals[quote.path.buy_token]
        return (
            to_display(quote.amount_in, sell_decimals),
            to_display(quote.amount_out, buy_decimals),
        )


__all__ = ["FilterResult", "SanityFilter"]
