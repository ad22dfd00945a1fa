"""
querylog - structured logging for database query execution.

This package provides:
- Classification of executed statements into error / slow / trace records
- Context-derived attributes (request ids, tenants, ...) on every record
- stdlib logging and structlog sinks
- SQLAlchemy engine instrumentation
- Environment-based configuration

Usage:
    from querylog import new, with_slow_threshold, with_context_value, instrument_engine

    qlog = new(
        with_slow_threshold(0.2),
        with_context_value("request_id", "request_id"),
    )
    instrument_engine(engine, qlog)
"""

from querylog.callsite import CallSite, caller_resolver, resolve_caller
from querylog.context import ContextFunc, ContextValue, ambient_context, context_attributes
from querylog.engine import QueryTiming, instrument_engine, trace_query
from querylog.errors import RecordNotFoundError, is_record_not_found
from querylog.logger import QueryLogger, new
from querylog.logging import configure_logging, get_logger
from querylog.options import (
    Config,
    Option,
    build_config,
    set_log_level,
    with_caller_resolver,
    with_context_func,
    with_context_value,
    with_error_field,
    with_ignore_trace,
    with_logger,
    with_record_not_found_error,
    with_sink,
    with_slow_threshold,
    with_source_field,
    with_trace_all,
)
from querylog.record import (
    DURATION_FIELD,
    ERROR_FIELD,
    QUERY_FIELD,
    ROWS_FIELD,
    SLOW_QUERY_FIELD,
    SOURCE_FIELD,
    LogType,
    Record,
    format_duration,
)
from querylog.sinks import LoggingSink, Sink, StructlogSink, default_sink

__version__ = "0.1.0"

__all__ = [
    # Logger
    "QueryLogger",
    "new",
    # Configuration
    "Config",
    "Option",
    "build_config",
    "with_trace_all",
    "with_error_field",
    "with_source_field",
    "with_record_not_found_error",
    "with_ignore_trace",
    "with_slow_threshold",
    "set_log_level",
    "with_logger",
    "with_sink",
    "with_context_value",
    "with_context_func",
    "with_caller_resolver",
    # Records
    "LogType",
    "Record",
    "format_duration",
    "SOURCE_FIELD",
    "ERROR_FIELD",
    "QUERY_FIELD",
    "DURATION_FIELD",
    "SLOW_QUERY_FIELD",
    "ROWS_FIELD",
    # Context
    "ContextValue",
    "ContextFunc",
    "ambient_context",
    "context_attributes",
    # Call-site
    "CallSite",
    "resolve_caller",
    "caller_resolver",
    # Sinks
    "Sink",
    "LoggingSink",
    "StructlogSink",
    "default_sink",
    # Errors
    "RecordNotFoundError",
    "is_record_not_found",
    # SQLAlchemy
    "instrument_engine",
    "trace_query",
    "QueryTiming",
    # Logging setup
    "configure_logging",
    "get_logger",
]
