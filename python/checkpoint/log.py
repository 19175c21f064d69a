"""Structured logging setup."""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

SENSITIVE_KEYS = frozenset({"password", "passwd", "pwd", "secret", "token"})


def _redact(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for key in event_dict:
        if key.lower() in SENSITIVE_KEYS:
            event_dict[key] = "***"
    return event_dict


def configure_logging(level: str = "WARNING", format: str = "console", stream: Any = None) -> None:
    """Configure structlog for the process.

    Args:
        level: Minimum level to emit
        format: "console" for humans, "json" for machines
        stream: Output stream (default: sys.stderr)

    Raises:
        ValueError: If level or format is invalid
    """
    level = level.upper()
    if level not in LEVELS:
        raise ValueError(f"Invalid log level: {level}. Must be one of: {', '.join(LEVELS)}")
    if format not in ("console", "json"):
        raise ValueError(f"Invalid format: {format}. Must be 'json' or 'console'")

    renderer: Any
    if format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _redact,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream or sys.stderr),
        cache_logger_on_first_use=False,
    )
