"""Structured logging setup for the progression engine.

Request-scoped values (actor, candidate) are bound through
``structlog.contextvars`` by the service layer, so every event emitted while
handling one operation carries them.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog


def _stderr_logger(*args: Any) -> structlog.PrintLogger:
    # looked up per logger so a replaced sys.stderr is picked up
    return structlog.PrintLogger(file=sys.stderr)


def configure_logging(level: str = "INFO") -> None:
    """Configure structlog with JSON output on stderr; stdout is reserved for command output."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(level=log_level, format="%(message)s", stream=sys.stderr)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.add_log_level,
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )
