"""Structured logging for dynattr.

Events are snake_case with keyword context and go to stderr, so command
output on stdout stays machine readable.  Every logger carries the
``component`` that emitted it:

    log = get_logger("entity_store")
    log.info("entities_written", operation="create", count=2)
    # {"operation": "create", "count": 2, "component": "entity_store", "event": "entities_written", ...}
"""

from __future__ import annotations

import logging
import sys
from typing import IO

import structlog

from dynattr.config import LogLevel


def _stderr_logger(*args: object) -> structlog.PrintLogger:
    # resolved per logger so a redirected sys.stderr is picked up
    return structlog.PrintLogger(sys.stderr)


def _renderer(stream: IO[str]) -> structlog.typing.Processor:
    if stream.isatty():
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer(sort_keys=True)


def setup_logging(level: str | LogLevel = LogLevel.INFO) -> None:
    """Route structlog events at ``level`` and above to stderr."""
    name = level.value if isinstance(level, LogLevel) else str(level).upper()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            _renderer(sys.stderr),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, name, logging.INFO)),
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )


def get_logger(component: str | None = None) -> structlog.stdlib.BoundLogger:
    """Lazy logger; ``component`` is bound into every event it emits."""
    if component is None:
        return structlog.get_logger()  # type: ignore[return-value]
    return structlog.get_logger(component=component)  # type: ignore[return-value]
