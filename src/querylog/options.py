"""
Query logger configuration.

``Config`` is a frozen dataclass; options are pure functions
``Config -> Config`` applied left to right by ``build_config``. Each option
sets exactly one concern, later options win, and none of them can fail.

Defaults:
    - record-not-found errors are ignored
    - only errors are traced (no slow threshold, trace-all off)
    - levels: errors at ERROR, slow queries at WARNING, the rest at INFO
    - attribute names ``error`` and ``file``
    - sink: the stdlib root logger, resolved once at the end of
      ``build_config`` when no sink option was given

Usage:
    from querylog.options import build_config, with_slow_threshold, with_trace_all

    config = build_config(
        with_slow_threshold(timedelta(milliseconds=200)),
        with_context_value("request_id", "request_id"),
    )
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Hashable, Mapping
from dataclasses import dataclass, field, replace
from datetime import timedelta
from types import MappingProxyType
from typing import Any

from querylog.callsite import CallerResolver, resolve_caller
from querylog.context import (
    Context,
    ContextExtractor,
    ContextFunc,
    ContextValue,
    register,
)
from querylog.record import ERROR_FIELD, SOURCE_FIELD, LogType
from querylog.sinks import Sink, default_sink, sink_for

DEFAULT_LEVELS: Mapping[LogType, int] = MappingProxyType(
    {
        LogType.ERROR: logging.ERROR,
        LogType.SLOW_QUERY: logging.WARNING,
        LogType.DEFAULT: logging.INFO,
    }
)


@dataclass(frozen=True)
class Config:
    """Immutable query logger settings."""

    ignore_record_not_found: bool = True
    trace_all: bool = False
    ignore_trace: bool = False
    slow_threshold: timedelta = timedelta(0)
    levels: Mapping[LogType, int] = field(default_factory=lambda: DEFAULT_LEVELS)
    error_field: str = ERROR_FIELD
    source_field: str = SOURCE_FIELD
    extractors: tuple[ContextExtractor, ...] = ()
    sink: Sink | None = None
    resolve_caller: CallerResolver = field(default=resolve_caller, compare=False)

    def level_for(self, log_type: LogType) -> int:
        """Configured level for a trace category."""
        return self.levels.get(log_type, DEFAULT_LEVELS[log_type])


Option = Callable[[Config], Config]


def build_config(*options: Option) -> Config:
    """Apply *options* to the defaults; fill in the default sink if none was set."""
    config = Config()
    for option in options:
        config = option(config)
    if config.sink is None:
        config = replace(config, sink=default_sink())
    return config


def with_trace_all() -> Option:
    """Trace every query, not only errors and slow ones."""

    def _apply(config: Config) -> Config:
        return replace(config, trace_all=True)

    return _apply


def with_error_field(name: str) -> Option:
    """Attribute name for the error value (default ``error``)."""

    def _apply(config: Config) -> Config:
        return replace(config, error_field=name)

    return _apply


def with_source_field(name: str) -> Option:
    """Attribute name for the query source location (default ``file``)."""

    def _apply(config: Config) -> Config:
        return replace(config, source_field=name)

    return _apply


def with_record_not_found_error() -> Option:
    """Log record-not-found errors instead of ignoring them."""

    def _apply(config: Config) -> Config:
        return replace(config, ignore_record_not_found=False)

    return _apply


def with_ignore_trace() -> Option:
    """Silence query tracing entirely (free-form logging still works)."""

    def _apply(config: Config) -> Config:
        return replace(config, ignore_trace=True)

    return _apply


def with_slow_threshold(threshold: timedelta | float) -> Option:
    """
    Queries running longer than *threshold* are logged as slow.

    Numbers are taken as seconds. A zero threshold disables slow-query logging.
    """
    if not isinstance(threshold, timedelta):
        threshold = timedelta(seconds=threshold)

    def _apply(config: Config) -> Config:
        return replace(config, slow_threshold=threshold)

    return _apply


def set_log_level(log_type: LogType, level: int) -> Option:
    """Override the level of one trace category."""

    def _apply(config: Config) -> Config:
        levels = dict(config.levels)
        levels[LogType(log_type)] = level
        return replace(config, levels=MappingProxyType(levels))

    return _apply


def with_logger(logger: Any) -> Option:
    """
    Write to a stdlib or structlog logger.

    ``None`` keeps whatever sink was configured before.
    """

    def _apply(config: Config) -> Config:
        if logger is None:
            return config
        return replace(config, sink=sink_for(logger))

    return _apply


def with_sink(sink: Sink | None) -> Option:
    """Write to a custom sink. ``None`` keeps the previous sink."""

    def _apply(config: Config) -> Config:
        if sink is None:
            return config
        return replace(config, sink=sink)

    return _apply


def with_context_value(name: str, key: Hashable) -> Option:
    """Add attribute *name* from ``context[key]`` when present."""

    def _apply(config: Config) -> Config:
        return replace(config, extractors=register(config.extractors, ContextValue(name, key)))

    return _apply


def with_context_func(name: str, func: Callable[[Context], tuple[Any, bool]]) -> Option:
    """Add attribute *name* computed by ``func(context) -> (value, present)``."""

    def _apply(config: Config) -> Config:
        return replace(config, extractors=register(config.extractors, ContextFunc(name, func)))

    return _apply


def with_caller_resolver(resolver: CallerResolver) -> Option:
    """Replace the call-site resolution strategy."""

    def _apply(config: Config) -> Config:
        return replace(config, resolve_caller=resolver)

    return _apply


__all__ = [
    "Config",
    "Option",
    "DEFAULT_LEVELS",
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
]
