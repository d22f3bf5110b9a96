"""Structured logging for the MCP News Server.

structlog renders to stderr, keeping stdout free for ``--meta``.
Error text attached to an event is sanitized before rendering.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from shared.sanitize import sanitize_error

# Event keys that may carry upstream error text
REDACTED_KEYS = ("error", "detail")
LOGGED_ERROR_LENGTH = 500


def redact_errors(_logger: Any, _method_name: str, event_dict: EventDict) -> EventDict:
    """structlog processor: sanitize error-bearing fields."""
    for key in REDACTED_KEYS:
        if isinstance(event_dict.get(key), str):
            event_dict[key] = sanitize_error(event_dict[key], max_length=LOGGED_ERROR_LENGTH)
    return event_dict


def setup_logging(log_level: str = "INFO", json_output: bool = False) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        json_output: JSON lines instead of the colored console renderer
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        redact_errors,
    ]
    if json_output:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)


def get_logger(name: str | None = None, **initial_context: Any) -> structlog.BoundLogger:
    """Logger for a module, optionally with bound context."""
    logger = structlog.get_logger(name)
    return logger.bind(**initial_context) if initial_context else logger


def bind_request_context(**context: Any) -> None:
    """Bind request-scoped values to every logger in the current task."""
    structlog.contextvars.bind_contextvars(**context)


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()
