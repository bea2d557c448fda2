"""Structured logging via structlog.

Configure once at startup with :func:`configure_logging`. Modules get their
logger with ``structlog.get_logger(__name__)`` and log key/value events.

Renderer selection:
  json=False  ``ConsoleRenderer`` for local development.
  json=True   ``JSONRenderer`` for machine-parseable production logs.
"""
from __future__ import annotations

import logging
import sys

import structlog

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def level_from_name(name: str) -> int:
    """Map a level name (case-insensitive) to a stdlib level, default INFO."""
    return _LEVELS.get(name.strip().lower(), logging.INFO)


def configure_logging(level: str = "info", json: bool = False) -> None:
    """Configure structlog for the process lifetime.

    Calling multiple times is safe; the last call wins.
    """
    numeric_level = level_from_name(level)
    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if json:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.WriteLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )

    # Route stdlib logging (httpx, uvicorn) to the same stream and level.
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=numeric_level,
        force=True,
    )
