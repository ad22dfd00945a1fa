"""
Shared pytest fixtures for querylog tests.

This module provides:
- CaptureSink: an in-memory sink recording every handled record
- Logger factories wired to the capture sink
- Context and logging-state cleanup

Usage:
    def test_something(capture_logger):
        sink, qlog = capture_logger(with_trace_all())
        qlog.trace(None, time.perf_counter() - 1, lambda: ("SELECT 1", 1))
        assert sink.last.message.startswith("SQL query executed")
"""

import sys
from pathlib import Path
from typing import Any

import pytest
import structlog

# Ensure querylog package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from querylog import new, with_sink
from querylog.logging import reset_logging
from querylog.record import Record


class CaptureSink:
    """Sink that keeps records in memory; levels below ``min_level`` are disabled."""

    def __init__(self, min_level: int = 0):
        self.min_level = min_level
        self.records: list[Record] = []
        self.contexts: list[Any] = []
        self.enabled_calls: list[int] = []

    def enabled(self, context, level: int) -> bool:
        self.enabled_calls.append(level)
        return level >= self.min_level

    def handle(self, context, record: Record) -> None:
        self.contexts.append(context)
        self.records.append(record)

    @property
    def last(self) -> Record | None:
        return self.records[-1] if self.records else None

    def reset(self) -> None:
        self.records.clear()
        self.contexts.clear()
        self.enabled_calls.clear()


class CountingProvider:
    """Lazy SQL provider that counts its calls."""

    def __init__(self, sql: str = "SELECT * FROM user", rows: int = 1):
        self.sql = sql
        self.rows = rows
        self.calls = 0

    def __call__(self) -> tuple[str, int]:
        self.calls += 1
        return self.sql, self.rows


@pytest.fixture
def capture_sink() -> CaptureSink:
    return CaptureSink()


@pytest.fixture
def capture_logger():
    """Factory returning ``(sink, logger)`` for the given options."""

    def _make(*options, min_level: int = 0):
        sink = CaptureSink(min_level=min_level)
        return sink, new(*options, with_sink(sink))

    return _make


@pytest.fixture
def provider() -> CountingProvider:
    return CountingProvider()


@pytest.fixture(autouse=True)
def _clean_state():
    """Ensure structlog contextvars and logging config are reset around every test."""
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()
    reset_logging()
