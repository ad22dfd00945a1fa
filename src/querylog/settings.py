"""Environment-driven settings for the query logger.

Every option that makes sense outside code can be set through
``QUERYLOG_``-prefixed environment variables (or a ``.env`` file):

    QUERYLOG_TRACE_ALL=true
    QUERYLOG_SLOW_THRESHOLD_MS=250
    QUERYLOG_SLOW_QUERY_LEVEL=ERROR
    QUERYLOG_CONTEXT_KEYS='{"request_id": "request_id"}'

Sinks, context functions and caller resolvers are code, so they are passed
as extra options to ``from_env``.

Requires ``pydantic-settings``.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from querylog.logger import QueryLogger, new
from querylog.options import (
    Option,
    set_log_level,
    with_context_value,
    with_error_field,
    with_ignore_trace,
    with_record_not_found_error,
    with_slow_threshold,
    with_source_field,
    with_trace_all,
)
from querylog.record import ERROR_FIELD, SOURCE_FIELD, LogType


def _parse_level(value: int | str) -> int:
    if isinstance(value, int):
        return value
    text = value.strip()
    if text.lstrip("-").isdigit():
        return int(text)
    level = logging.getLevelName(text.upper())
    if not isinstance(level, int):
        raise ValueError(f"unknown log level: {value!r}")
    return level


class QueryLogSettings(BaseSettings):
    """Query logger settings read from ``QUERYLOG_*`` variables.

    Fields
    ──────
    trace_all                : Log every statement at the default level
    ignore_trace             : Disable query tracing entirely
    ignore_record_not_found  : Drop "no rows" errors (default on)
    slow_threshold_ms        : Slow-query threshold, 0 disables
    error_field/source_field : Attribute names
    *_level                  : Level name or number per category
    context_keys             : attribute name -> context key
    """

    model_config = SettingsConfigDict(
        env_prefix="QUERYLOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Classification ───────────────────────────────────────────
    trace_all: bool = False
    ignore_trace: bool = False
    ignore_record_not_found: bool = True
    slow_threshold_ms: float = Field(default=0, ge=0)

    # ── Attributes ───────────────────────────────────────────────
    error_field: str = ERROR_FIELD
    source_field: str = SOURCE_FIELD
    context_keys: dict[str, str] = Field(default_factory=dict)

    # ── Levels ───────────────────────────────────────────────────
    error_level: int = logging.ERROR
    slow_query_level: int = logging.WARNING
    default_level: int = logging.INFO

    @field_validator("error_level", "slow_query_level", "default_level", mode="before")
    @classmethod
    def _validate_level(cls, value: int | str) -> int:
        return _parse_level(value)

    @property
    def slow_threshold(self) -> timedelta:
        return timedelta(milliseconds=self.slow_threshold_ms)

    def options(self) -> list[Option]:
        """Translate the settings into logger options."""
        opts: list[Option] = [
            with_error_field(self.error_field),
            with_source_field(self.source_field),
            with_slow_threshold(self.slow_threshold),
            set_log_level(LogType.ERROR, self.error_level),
            set_log_level(LogType.SLOW_QUERY, self.slow_query_level),
            set_log_level(LogType.DEFAULT, self.default_level),
        ]
        if self.trace_all:
            opts.append(with_trace_all())
        if self.ignore_trace:
            opts.append(with_ignore_trace())
        if not self.ignore_record_not_found:
            opts.append(with_record_not_found_error())
        for name, key in self.context_keys.items():
            opts.append(with_context_value(name, key))
        return opts


def from_env(*extra: Option, settings: QueryLogSettings | None = None) -> QueryLogger:
    """Build a logger from the environment; *extra* options are applied last."""
    settings = settings or QueryLogSettings()
    return new(*settings.options(), *extra)
