"""
Logging configuration.

Provides a single entry point for wiring stdlib logging and structlog so
that query records render consistently whichever sink produced them:

- ``LoggingSink`` records go through stdlib handlers; their attributes are
  lifted into the event dict by ``add_record_attributes``.
- ``StructlogSink`` records (and querylog's own diagnostics) go through the
  structlog chain and end up in the same handler.

Configuration is read from environment variables when arguments are omitted:
- QUERYLOG_LOG_LEVEL: DEBUG | INFO | WARNING | ERROR (default: INFO)
- QUERYLOG_LOG_FORMAT: json | console (default: console)

Usage:
    from querylog.logging import configure_logging
    configure_logging()

    # Or with explicit settings
    configure_logging(level="DEBUG", json_format=True)
"""

import logging
import os
import sys
from datetime import timedelta
from typing import Any, TextIO

import structlog
from structlog.types import EventDict, Processor

from querylog.record import format_duration

# Track if logging has been configured
_configured = False


def get_logger(name: str | None = None) -> Any:
    """Get a structlog logger (lazy proxy, picks up later configuration)."""
    return structlog.get_logger(name)


def add_record_attributes(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Copy query attributes from a stdlib ``LogRecord`` into the event dict.

    Only foreign (non-structlog) records carry them; keys already present
    in the event dict are left alone.
    """
    record = event_dict.get("_record")
    attributes = getattr(record, "attributes", None)
    if attributes:
        for key, value in attributes.items():
            event_dict.setdefault(key, value)
    return event_dict


def render_query_values(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Render durations and exceptions as readable strings."""
    for key, value in event_dict.items():
        if isinstance(value, timedelta):
            event_dict[key] = format_duration(value)
        elif isinstance(value, BaseException):
            event_dict[key] = str(value)
    return event_dict


def configure_logging(
    level: str | None = None,
    json_format: bool | None = None,
    stream: TextIO | None = None,
    force: bool = False,
) -> None:
    """
    Configure stdlib logging and structlog for query logs.

    Subsequent calls are no-ops unless force=True.

    Args:
        level: Log level (overrides QUERYLOG_LOG_LEVEL env var)
        json_format: JSON output (overrides QUERYLOG_LOG_FORMAT env var)
        stream: Output stream (default: stderr)
        force: Reconfigure even if already configured
    """
    global _configured

    if _configured and not force:
        return

    log_level = (level or os.environ.get("QUERYLOG_LOG_LEVEL", "INFO")).upper()
    if json_format is None:
        json_format = os.environ.get("QUERYLOG_LOG_FORMAT", "console").lower() == "json"

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    renderer: Processor
    if json_format:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=True,
            exception_formatter=structlog.dev.plain_traceback,
        )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[add_record_attributes, *shared_processors],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            render_query_values,
            renderer,
        ],
    )

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(formatter)

    logging.basicConfig(
        handlers=[handler],
        level=getattr(logging, log_level),
        force=True,  # Override any existing config
    )

    _configured = True


def is_configured() -> bool:
    """Check if logging has been configured."""
    return _configured


def reset_logging() -> None:
    """Undo configure_logging (used by tests)."""
    global _configured
    structlog.reset_defaults()
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    root.setLevel(logging.WARNING)
    _configured = False
