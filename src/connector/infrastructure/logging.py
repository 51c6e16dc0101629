"""Structlog configuration for write jobs.

Write jobs usually run inside executors whose output is collected by a
log shipper, so JSON is the default whenever stdout is not a terminal.
"""

from __future__ import annotations

import logging
import os
import sys

import structlog

from infrastructure.settings import LoggingSettings, get_logging_settings

_TRUTHY = ("1", "true", "yes")


def _use_console(log_format: str) -> bool:
    if log_format != "auto":
        return log_format == "console"
    # FORCE_COLOR=1 keeps console output in non-TTY environments (like Docker)
    if os.environ.get("FORCE_COLOR", "").lower() in _TRUTHY:
        return True
    return sys.stdout.isatty()


def _level_number(level: str) -> int:
    try:
        return logging.getLevelNamesMapping()[level.upper()]
    except KeyError:
        raise ValueError(f"Unknown log level '{level}'") from None


def build_processors(console: bool) -> list[structlog.types.Processor]:
    """Processor chain ending in a console or JSON renderer."""
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if console:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    else:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    return processors


def configure_logging(settings: LoggingSettings | None = None) -> None:
    """Configure structlog for the current process.

    Args:
        settings: Log level and format; read from the environment when omitted

    Raises:
        ValueError: If the configured level is not a stdlib level name
    """
    settings = settings or get_logging_settings()
    structlog.configure(
        processors=build_processors(_use_console(settings.format)),
        wrapper_class=structlog.make_filtering_bound_logger(
            _level_number(settings.level)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
