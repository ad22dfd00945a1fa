"""
Query logger: classifies traced statements and emits leveled records.

A traced call falls into at most one category, checked in priority order:

    ┌─────────────┬──────────────────────────────────────┬──────────────┐
    │ category    │ condition                            │ default level│
    ├─────────────┼──────────────────────────────────────┼──────────────┤
    │ sql_error   │ error, unless an ignored not-found   │ ERROR        │
    │ slow_query  │ threshold set and elapsed > threshold│ WARNING      │
    │ default     │ trace-all enabled                    │ INFO         │
    └─────────────┴──────────────────────────────────────┴──────────────┘

No match means no record, and the lazy ``(sql, rows)`` provider is never
called. Free-form ``info``/``warn``/``error`` calls skip classification and
check the sink's enabled level before building anything.

Usage:
    from querylog import new, with_slow_threshold, with_context_value

    qlog = new(
        with_logger(logging.getLogger("app.sql")),
        with_slow_threshold(timedelta(milliseconds=200)),
        with_context_value("request_id", "request_id"),
    )

    begin = time.perf_counter()
    rows = cursor.execute(sql).rowcount
    qlog.trace(ctx, begin, lambda: (sql, rows), None)
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import timedelta
from typing import Any

from querylog.context import Context, context_attributes, ensure_context
from querylog.errors import is_record_not_found
from querylog.logging import get_logger
from querylog.options import Config, Option, build_config
from querylog.record import (
    DURATION_FIELD,
    QUERY_FIELD,
    ROWS_FIELD,
    SLOW_QUERY_FIELD,
    Attribute,
    LogType,
    Record,
    format_duration,
)

SQLProvider = Callable[[], tuple[str, int]]

log = get_logger(__name__)


def _format_message(message: str, args: tuple[Any, ...]) -> str:
    """``message % args``; a mismatch keeps the raw text and appends the args."""
    try:
        return message % args
    except (TypeError, ValueError):
        log.warning("message.format_failed", template=message, args=repr(args))
        return f"{message} {args!r}"


class QueryLogger:
    """Routes query events and free-form messages to a sink."""

    def __init__(self, config: Config):
        if config.sink is None:
            raise ValueError("QueryLogger needs a configured sink; use new() or build_config()")
        self.config = config

    def __repr__(self) -> str:
        return f"QueryLogger(sink={self.config.sink!r})"

    # --- database layer hooks ---

    def log_mode(self, level: Any = None) -> QueryLogger:
        """Accepted for access-layer compatibility; severity filtering belongs to the sink."""
        return self

    def trace(
        self,
        context: Context | None,
        begin: float,
        provider: SQLProvider,
        err: BaseException | None = None,
    ) -> None:
        """
        Log one executed statement.

        Args:
            context: Ambient call context, ``None`` for none
            begin: ``time.perf_counter()`` reading taken before execution
            provider: Returns ``(sql, rows_affected)``; called at most once
            err: Exception raised by the statement, if any
        """
        config = self.config
        if config.ignore_trace:
            return

        ctx = ensure_context(context)
        elapsed = timedelta(seconds=time.perf_counter() - begin)

        if err is not None and (
            not config.ignore_record_not_found or not is_record_not_found(err)
        ):
            sql, rows = provider()
            attributes: list[Attribute] = [
                (config.error_field, err),
                *self._query_attributes(sql, elapsed, rows),
            ]
            self._emit(ctx, config.level_for(LogType.ERROR), str(err), attributes)

        elif config.slow_threshold and elapsed > config.slow_threshold:
            sql, rows = provider()
            attributes = [
                (SLOW_QUERY_FIELD, True),
                *self._query_attributes(sql, elapsed, rows),
            ]
            message = (
                f"slow sql query [{format_duration(elapsed)} >= "
                f"{format_duration(config.slow_threshold)}]"
            )
            self._emit(ctx, config.level_for(LogType.SLOW_QUERY), message, attributes)

        elif config.trace_all:
            sql, rows = provider()
            attributes = self._query_attributes(sql, elapsed, rows)
            message = f"SQL query executed [{format_duration(elapsed)}]"
            self._emit(ctx, config.level_for(LogType.DEFAULT), message, attributes)

    # --- free-form logging ---

    def info(self, context: Context | None, message: str, *args: Any) -> None:
        self._log(context, logging.INFO, message, args)

    def warn(self, context: Context | None, message: str, *args: Any) -> None:
        self._log(context, logging.WARNING, message, args)

    warning = warn

    def error(self, context: Context | None, message: str, *args: Any) -> None:
        self._log(context, logging.ERROR, message, args)

    def log(self, context: Context | None, level: int, message: str, *args: Any) -> None:
        """Log *message* at an arbitrary numeric level."""
        self._log(context, level, message, args)

    # --- internals ---

    def _query_attributes(self, sql: str, elapsed: timedelta, rows: int) -> list[Attribute]:
        return [
            (QUERY_FIELD, sql),
            (DURATION_FIELD, elapsed),
            (ROWS_FIELD, rows),
            (self.config.source_field, str(self.config.resolve_caller())),
        ]

    def _log(self, context: Context | None, level: int, message: str, args: tuple[Any, ...]) -> None:
        ctx = ensure_context(context)
        if not self.config.sink.enabled(ctx, level):
            return
        if args:
            message = _format_message(message, args)
        self._handle(ctx, level, message, context_attributes(self.config.extractors, ctx))

    def _emit(self, ctx: Context, level: int, message: str, attributes: list[Attribute]) -> None:
        if not self.config.sink.enabled(ctx, level):
            return
        self._handle(ctx, level, message, context_attributes(self.config.extractors, ctx, attributes))

    def _handle(self, ctx: Context, level: int, message: str, attributes: list[Attribute]) -> None:
        record = Record(
            level=level,
            message=message,
            callsite=self.config.resolve_caller(),
            attributes=tuple(attributes),
        )
        try:
            self.config.sink.handle(ctx, record)
        except Exception:
            log.warning("sink.handle_failed", sink=repr(self.config.sink), exc_info=True)


def new(*options: Option) -> QueryLogger:
    """Create a query logger from options (see ``querylog.options``)."""
    return QueryLogger(build_config(*options))


__all__ = ["QueryLogger", "SQLProvider", "new"]
