"""structlog setup shared by the CLI and the HTTP server."""

import logging

import structlog


def configure_logging(verbose: bool = False) -> None:
    """Configure structlog with ISO timestamps and a level filter.

    Args:
        verbose: Emit debug events (adapter misses, timeouts) when True
    """
    log_level = logging.DEBUG if verbose else logging.INFO
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
    )
