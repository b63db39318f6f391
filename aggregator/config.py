"""Routing configuration for the aggregator."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from aggregator.constants import DEFAULT_INTERMEDIATES, MAX_HOPS


def _env_decimal(env: Mapping[str, str], name: str) -> Decimal:
    raw = env[name]
    try:
        return Decimal(raw)
    except InvalidOperation as err:
        raise ValueError(f"{name} is not a number: {raw!r}") from err


@dataclass(frozen=True)
class RouterConfig:
    """Centralized configuration for route discovery.

    Attributes:
        hop_timeout_seconds: Timeout for a single adapter call
        query_timeout_seconds: Deadline for the whole query, including
            decimal resolution
        max_hops: Default path length cap (never above MAX_HOPS)
        max_concurrency: Maximum outstanding adapter calls per query
        sanity_ratio: EXACT_OUT quotes whose input is this many times smaller
            than the priced output are rejected
        sanity_min_output: Output magnitude (display units) below which the
            sanity check is skipped to avoid flagging dust
        sanity_min_input: Without a trusted peer price, EXACT_OUT quotes
            needing less input than this (display units) are rejected
        sanity_large_output: Output magnitude (display units) above which
            `sanity_large_output_min_input` applies
        sanity_large_output_min_input: Without a trusted peer price, the
            smallest plausible input for a large output
        default_intermediates: Intermediate token addresses used when the
            request names none
    """

    hop_timeout_seconds: float = 2.0
    query_timeout_seconds: float = 8.0
    max_hops: int = MAX_HOPS
    max_concurrency: int = 16
    sanity_ratio: int = 100
    sanity_min_output: Decimal = Decimal(100)
    sanity_min_input: Decimal = Decimal("0.01")
    sanity_large_output: Decimal = Decimal(1000)
    sanity_large_output_min_input: Decimal = Decimal("0.5")
    default_intermediates: tuple[str, ...] = field(default=DEFAULT_INTERMEDIATES)

    def __post_init__(self) -> None:
        if self.hop_timeout_seconds <= 0:
            raise ValueError(f"hop_timeout_seconds must be positive: {self.hop_timeout_seconds}")
        if self.query_timeout_seconds < self.hop_timeout_seconds:
            raise ValueError(
                f"query_timeout_seconds ({self.query_timeout_seconds}) must be >= "
                f"hop_timeout_seconds ({self.hop_timeout_seconds})"
            )
        if not 1 <= self.max_hops <= MAX_HOPS:
            raise ValueError(f"max_hops must be between 1 and {MAX_HOPS}: {self.max_hops}")
        if self.max_concurrency < 1:
            raise ValueError(f"max_concurrency must be at least 1: {self.max_concurrency}")
        if self.sanity_ratio < 1:
            raise ValueError(f"sanity_ratio must be at least 1: {self.sanity_ratio}")
        for name in (
            "sanity_min_output",
            "sanity_min_input",
            "sanity_large_output",
            "sanity_large_output_min_input",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative: {getattr(self, name)}")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> RouterConfig:
        """Build a config from AGGREGATOR_* environment variables.

        Unset variables keep their defaults.

        Raises:
            ValueError: If a variable is set to an unparseable value
        """
        env = os.environ if environ is None else environ
        kwargs: dict[str, object] = {}

        if "AGGREGATOR_HOP_TIMEOUT" in env:
            kwargs["hop_timeout_seconds"] = float(env["AGGREGATOR_HOP_TIMEOUT"])
        if "AGGREGATOR_QUERY_TIMEOUT" in env:
            kwargs["query_timeout_seconds"] = float(env["AGGREGATOR_QUERY_TIMEOUT"])
        if "AGGREGATOR_MAX_CONCURRENCY" in env:
            kwargs["max_concurrency"] = int(env["AGGREGATOR_MAX_CONCURRENCY"])
        if "AGGREGATOR_SANITY_RATIO" in env:
            kwargs["sanity_ratio"] = int(env["AGGREGATOR_SANITY_RATIO"])
        if "AGGREGATOR_SANITY_MIN_OUTPUT" in env:
            kwargs["sanity_min_output"] = _env_decimal(env, "AGGREGATOR_SANITY_MIN_OUTPUT")
        if "AGGREGATOR_SANITY_MIN_INPUT" in env:
            kwargs["sanity_min_input"] = _env_decimal(env, "AGGREGATOR_SANITY_MIN_INPUT")

        return cls(**kwargs)  # type: ignore[arg-type]


# Default configuration instance
DEFAULT_ROUTER_CONFIG = RouterConfig()
