"""structlog setup for the API process.

Development gets the colored console renderer (which prints tracebacks
itself). Every other environment emits one JSON object per line, with
exceptions rendered as structured ``exception`` lists so failed cascade
attempts and unhandled errors stay machine-readable.
"""

from __future__ import annotations

import logging

import structlog

from skinrank.config import settings


def _level_for(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def _renderer_chain(environment: str) -> list[structlog.types.Processor]:
    if environment == "development":
        return [structlog.dev.ConsoleRenderer()]
    return [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]


def configure_logging(environment: str | None = None, log_level: str | None = None) -> None:
    """Configure structlog from settings; arguments override ENVIRONMENT / LOG_LEVEL."""
    environment = environment or settings.environment
    level = _level_for(log_level or settings.log_level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            *_renderer_chain(environment),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
