"""Structured logging configuration."""

import logging
import sys
from collections.abc import MutableMapping
from typing import Any, Final

import structlog

# Staged images travel as base64 data URLs; keep log lines readable
DATA_URL_PREVIEW_CHARS: Final = 32


def shorten_data_urls(
    _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Replace inline ``data:`` URL values with a short preview and their length."""
    for key, value in event_dict.items():
        if isinstance(value, str) and value.startswith("data:") and (
            len(value) > DATA_URL_PREVIEW_CHARS
        ):
            event_dict[key] = f"{value[:DATA_URL_PREVIEW_CHARS]}... ({len(value)} chars)"
    return event_dict


def configure_logging(*, json_output: bool = False, level: int = logging.INFO) -> None:
    """Configure structlog for the pipeline.

    Args:
        json_output: JSON lines for log shippers. Otherwise, pretty console output.
        level: Logging level (default: INFO).
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ExtraAdder(),
        shorten_data_urls,
    ]

    if json_output:
        processors: list[structlog.types.Processor] = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ]

    # stdout carries command output (plans, batch status), logs go to stderr
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger instance."""
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger
