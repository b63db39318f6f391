"""Venue registry: the ordered set of adapters a query fans out to.

Registration order is significant: the path enumerator walks adapters in
this order, which keeps its output order-stable.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from aggregator.models.token import Token
    from aggregator.venues.base import PoolId, VenueAdapter

logger = structlog.get_logger()


class VenueRegistry:
    """Registry of venue adapters keyed by venue id."""

    def __init__(self, adapters: list[VenueAdapter] | None = None) -> None:
        self._adapters: dict[str, VenueAdapter] = {}
        for adapter in adapters or []:
            self.add(adapter)

    def add(self, adapter: VenueAdapter) -> None:
        """Register an adapter.

        Raises:
            ValueError: If an adapter with the same venue id is already registered
        """
        if not adapter.venue:
            raise ValueError(f"Adapter {adapter!r} has no venue id")
        if adapter.venue in self._adapters:
            raise ValueError(f"Venue already registered: {adapter.venue}")
        self._adapters[adapter.venue] = adapter
        logger.debug("venue_registered", venue=adapter.venue)

    def get(self, venue: str) -> VenueAdapter | None:
        return self._adapters.get(venue)

    @property
    def adapters(self) -> tuple[VenueAdapter, ...]:
        return tuple(self._adapters.values())

    @property
    def venues(self) -> tuple[str, ...]:
        return tuple(self._adapters)

    def candidate_hops(self, token_in: Token, token_out: Token) -> list[tuple[str, PoolId]]:
        """(venue, pool) pairs that plausibly trade token_in for token_out."""
        return [
            (adapter.venue, pool)
            for adapter in self._adapters.values()
            for pool in adapter.pools_for(token_in, token_out)
        ]

    def __len__(self) -> int:
        return len(self._adapters)

    def __contains__(self, venue: object) -> bool:
        return venue in self._adapters
