"""
Log record model for traced queries.

A ``Record`` is the finished, emission-ready unit handed to a sink:
level, message, timestamp, call-site and an ordered attribute list.
``LogType`` names the three trace categories whose levels are configurable.

Usage:
    from querylog.record import LogType, Record, format_duration

    format_duration(timedelta(seconds=2))   # "2s"
    format_duration(timedelta(milliseconds=150))  # "150ms"
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

from querylog.callsite import UNKNOWN_CALLSITE, CallSite


class LogType(str, Enum):
    """Trace categories, in priority order."""

    ERROR = "sql_error"
    SLOW_QUERY = "slow_query"
    DEFAULT = "default"


SOURCE_FIELD = "file"
ERROR_FIELD = "error"
QUERY_FIELD = "query"
DURATION_FIELD = "duration"
SLOW_QUERY_FIELD = "slow_query"
ROWS_FIELD = "rows"


Attribute = tuple[str, Any]


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(UTC)


@dataclass(frozen=True)
class Record:
    """One log entry ready for a sink."""

    level: int
    message: str
    timestamp: datetime = field(default_factory=utcnow)
    callsite: CallSite = UNKNOWN_CALLSITE
    attributes: tuple[Attribute, ...] = ()

    def attrs(self) -> Iterator[Attribute]:
        """Iterate attributes in emission order."""
        return iter(self.attributes)

    def get(self, key: str, default: Any = None) -> Any:
        """Return the first attribute value stored under *key*."""
        for name, value in self.attributes:
            if name == key:
                return value
        return default

    def to_dict(self) -> dict[str, Any]:
        """Attributes as a dict (later duplicates win)."""
        return dict(self.attributes)


# Unit table used by format_duration, largest sub-second unit first
_SUBSECOND_UNITS = (
    (1_000, "ms"),
    (1, "µs"),
)


def _trim(value: str) -> str:
    if "." in value:
        value = value.rstrip("0").rstrip(".")
    return value


def format_duration(value: timedelta) -> str:
    """
    Render a duration the compact way query logs show it.

    Examples: ``0s``, ``850µs``, ``12.5ms``, ``2s``, ``1.25s``, ``1m30s``,
    ``2h0m5s``. Negative durations carry a leading ``-``.
    """
    micros = (value.days * 86_400 + value.seconds) * 1_000_000 + value.microseconds
    if micros == 0:
        return "0s"

    sign = "-" if micros < 0 else ""
    micros = abs(micros)

    if micros < 1_000_000:
        for size, unit in _SUBSECOND_UNITS:
            if micros >= size:
                return f"{sign}{_trim(f'{micros / size:.6f}')}{unit}"

    total_seconds, frac = divmod(micros, 1_000_000)
    hours, rest = divmod(total_seconds, 3_600)
    minutes, seconds = divmod(rest, 60)

    secs = _trim(f"{seconds}.{frac:06d}")
    if hours:
        return f"{sign}{hours}h{minutes}m{secs}s"
    if minutes:
        return f"{sign}{minutes}m{secs}s"
    return f"{sign}{secs}s"
