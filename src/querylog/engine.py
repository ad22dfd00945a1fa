"""SQLAlchemy integration.

Hooks a ``QueryLogger`` into an ``Engine`` through core events so every
cursor execution is traced:

* ``before_cursor_execute`` stores a ``perf_counter`` reading on the
  statement's execution context.
* ``after_cursor_execute`` traces the statement with ``cursor.rowcount``.
* ``handle_error`` traces the failed statement with the DBAPI exception.

The statement text is handed over lazily; nothing is rendered unless the
logger picks a category for the event.

ORM-level conditions that never reach the cursor (``Result.one()`` raising
``NoResultFound``) can be traced with ``trace_query``.

Usage:
    engine = create_engine("sqlite://")
    remove = instrument_engine(engine, new(with_trace_all()))

    with engine.connect() as conn:
        conn.execute(
            text("SELECT 1"),
            execution_options={"log_context": {"request_id": "abc"}},
        )

    remove()
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import Connection, Engine, ExceptionContext

from querylog.context import Context, ambient_context
from querylog.logger import QueryLogger
from querylog.logging import get_logger

log = get_logger(__name__)

START_KEY = "querylog.start"
START_ATTR = "_querylog_start"
LOG_CONTEXT_OPTION = "log_context"

ContextFactory = Callable[[Connection | None, Mapping[str, Any]], Context]


def engine_context(conn: Connection | None, execution_options: Mapping[str, Any]) -> Context:
    """
    Default context for engine events.

    structlog contextvars, overridden by the statement's
    ``execution_options["log_context"]`` mapping.
    """
    ctx = dict(ambient_context())
    ctx.update(execution_options.get(LOG_CONTEXT_OPTION) or {})
    return ctx


def _push_start(conn: Connection, execution_context: Any) -> None:
    now = time.perf_counter()
    if execution_context is not None:
        setattr(execution_context, START_ATTR, now)
    else:
        conn.info.setdefault(START_KEY, []).append(now)


def _pop_start(conn: Connection | None, execution_context: Any) -> float:
    if execution_context is not None:
        begin = execution_context.__dict__.pop(START_ATTR, None)
        if begin is not None:
            return begin
    elif conn is not None:
        starts = conn.info.get(START_KEY)
        if starts:
            return starts.pop()
    return time.perf_counter()


def _execution_options(execution_context: Any) -> Mapping[str, Any]:
    return getattr(execution_context, "execution_options", None) or {}


def instrument_engine(
    engine: Engine,
    qlog: QueryLogger,
    context_factory: ContextFactory = engine_context,
) -> Callable[[], None]:
    """
    Trace every statement *engine* executes.

    Returns a callable that removes the listeners again.
    """

    def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        _push_start(conn, context)

    def after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        begin = _pop_start(conn, context)
        try:
            rows = cursor.rowcount if cursor is not None else -1
            qlog.trace(
                context_factory(conn, _execution_options(context)),
                begin,
                lambda: (statement, rows),
                None,
            )
        except Exception:
            log.warning("engine.trace_failed", event_name="after_cursor_execute", exc_info=True)

    def handle_error(exception_context: ExceptionContext):
        execution_context = exception_context.execution_context
        begin = _pop_start(None, execution_context)
        try:
            statement = exception_context.statement or ""
            cursor = getattr(execution_context, "cursor", None)
            rows = getattr(cursor, "rowcount", -1) if cursor is not None else -1
            err = exception_context.original_exception or exception_context.sqlalchemy_exception
            qlog.trace(
                context_factory(exception_context.connection, _execution_options(execution_context)),
                begin,
                lambda: (statement, rows),
                err,
            )
        except Exception:
            # the statement's own exception must reach the caller
            log.warning("engine.trace_failed", event_name="handle_error", exc_info=True)

    listeners = (
        ("before_cursor_execute", before_cursor_execute),
        ("after_cursor_execute", after_cursor_execute),
        ("handle_error", handle_error),
    )
    for name, fn in listeners:
        event.listen(engine, name, fn)

    log.debug("engine.instrumented", url=engine.url.render_as_string(hide_password=True))

    def remove() -> None:
        for name, fn in listeners:
            if event.contains(engine, name, fn):
                event.remove(engine, name, fn)
        log.debug("engine.uninstrumented", url=engine.url.render_as_string(hide_password=True))

    return remove


@dataclass
class QueryTiming:
    """Timing handle yielded by ``trace_query``."""

    sql: str
    rows: int = 0
    started_at: float = field(default_factory=time.perf_counter)

    def provider(self) -> tuple[str, int]:
        return self.sql, self.rows

    @property
    def duration_ms(self) -> float:
        return (time.perf_counter() - self.started_at) * 1000


@contextmanager
def trace_query(
    qlog: QueryLogger,
    sql: str,
    context: Context | None = None,
    rows: int = 0,
) -> Iterator[QueryTiming]:
    """
    Trace a block as one query.

    Exceptions raised inside the block are traced and re-raised.

    Usage:
        with trace_query(qlog, "load user", ctx) as q:
            user = session.execute(stmt).scalar_one()
            q.rows = 1
    """
    timing = QueryTiming(sql=sql, rows=rows)
    try:
        yield timing
    except Exception as e:
        qlog.trace(context, timing.started_at, timing.provider, e)
        raise
    qlog.trace(context, timing.started_at, timing.provider, None)


__all__ = [
    "ContextFactory",
    "QueryTiming",
    "engine_context",
    "instrument_engine",
    "trace_query",
]
