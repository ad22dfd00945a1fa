"""
Logging sinks.

A sink is the structured-logging backend a ``QueryLogger`` writes to. It
answers one question (is this level enabled for this context?) and accepts
finished records. Two backends ship with the package:

- ``LoggingSink``: stdlib ``logging``. Records keep their call-site, so
  ``%(pathname)s:%(lineno)d`` in a formatter points at the application code
  that ran the query, and attributes are available both flattened on the
  ``LogRecord`` and as ``record.attributes``.
- ``StructlogSink``: any structlog logger (filtering bound loggers, the
  stdlib ``BoundLogger``, lazy proxies from ``structlog.get_logger()``).
  Attributes become event-dict keys.

Anything else that implements ``enabled``/``handle`` can be passed with
``with_sink``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from querylog.context import Context
from querylog.record import Record


@runtime_checkable
class Sink(Protocol):
    """Backend that receives finished records."""

    def enabled(self, context: Context, level: int) -> bool: ...

    def handle(self, context: Context, record: Record) -> None: ...


# Attribute names that cannot be set on a LogRecord through ``extra``
_RESERVED_RECORD_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__
) | {"message", "asctime", "attributes"}


class LoggingSink:
    """Sink backed by a stdlib ``logging.Logger``.

    *extra* holds constant attributes (a ``LoggerAdapter``'s ``extra``) that
    every record carries; record attributes win on a name clash.
    """

    def __init__(self, logger: logging.Logger, extra: Mapping[str, Any] | None = None):
        self.logger = logger
        self.extra = dict(extra or {})

    def __repr__(self) -> str:
        return f"LoggingSink({self.logger.name!r})"

    def __eq__(self, other: object) -> bool:
        return (
            isinstance(other, LoggingSink)
            and other.logger is self.logger
            and other.extra == self.extra
        )

    def __hash__(self) -> int:
        return hash(("LoggingSink", id(self.logger)))

    def enabled(self, context: Context, level: int) -> bool:
        return self.logger.isEnabledFor(level)

    def handle(self, context: Context, record: Record) -> None:
        attributes = {**self.extra, **record.to_dict()}
        extra: dict[str, Any] = {
            key: value
            for key, value in attributes.items()
            if key not in _RESERVED_RECORD_ATTRS
        }
        extra["attributes"] = attributes

        site = record.callsite
        log_record = self.logger.makeRecord(
            self.logger.name,
            record.level,
            site.filename,
            site.lineno,
            record.message,
            (),
            None,
            func=site.function,
            extra=extra,
        )
        created = record.timestamp.timestamp()
        log_record.created = created
        log_record.msecs = (created - int(created)) * 1000
        self.logger.handle(log_record)


_STANDARD_LEVELS = (
    logging.CRITICAL,
    logging.ERROR,
    logging.WARNING,
    logging.INFO,
    logging.DEBUG,
)


def standard_level(level: int) -> int:
    """Map a custom numeric level to the closest standard level at or below it."""
    for candidate in _STANDARD_LEVELS:
        if level >= candidate:
            return candidate
    return logging.DEBUG


# Names taken by ``BoundLogger.log(level, event, ...)`` and its proxy call
_RESERVED_EVENT_KEYS = frozenset({"level", "event", "method_name", "attributes"})


class StructlogSink:
    """Sink backed by a structlog logger.

    Attributes whose names collide with the logging call's own parameters
    are nested under ``attributes``.
    """

    def __init__(self, logger: Any):
        self.logger = logger

    def __repr__(self) -> str:
        return f"StructlogSink({self.logger!r})"

    def enabled(self, context: Context, level: int) -> bool:
        check = getattr(self.logger, "is_enabled_for", None)
        if check is None:
            check = getattr(self.logger, "isEnabledFor", None)
        if check is None:
            return True
        return bool(check(level))

    def handle(self, context: Context, record: Record) -> None:
        fields: dict[str, Any] = {}
        nested: dict[str, Any] = {}
        for key, value in record.to_dict().items():
            if key in _RESERVED_EVENT_KEYS:
                nested[key] = value
            else:
                fields[key] = value
        if nested:
            fields["attributes"] = nested
        fields.setdefault("callsite", str(record.callsite))
        self.logger.log(standard_level(record.level), record.message, **fields)


def sink_for(logger: Any) -> Sink:
    """Wrap a stdlib or structlog logger in the matching sink.

    A ``LoggerAdapter`` is unwrapped; its ``extra`` becomes constant record
    attributes.
    """
    if isinstance(logger, logging.Logger):
        return LoggingSink(logger)
    if isinstance(logger, logging.LoggerAdapter):
        return LoggingSink(logger.logger, extra=logger.extra)
    return StructlogSink(logger)


def default_sink() -> Sink:
    """Process-wide default: the stdlib root logger."""
    return LoggingSink(logging.getLogger())


__all__ = [
    "Sink",
    "LoggingSink",
    "StructlogSink",
    "default_sink",
    "sink_for",
    "standard_level",
]
