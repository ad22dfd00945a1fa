"""
Error types recognised by the query logger.

The only error the logger treats specially is "record not found": a query
that succeeded but matched no rows. By default it is filtered out of the
error branch, so it behaves like no error at all.

Recognised sentinels:
    - ``sqlalchemy.exc.NoResultFound`` (raised by ``Result.one()`` and
      ``Session.get_one()``)
    - ``RecordNotFoundError`` for access layers not built on SQLAlchemy
    - any exception whose ``__cause__`` chain contains one of the above

Usage:
    from querylog.errors import RecordNotFoundError, is_record_not_found

    try:
        repo.fetch(user_id)
    except LookupError as e:
        raise RecordNotFoundError(f"user {user_id}") from e
"""

from __future__ import annotations

from sqlalchemy.exc import NoResultFound


class QueryLogError(Exception):
    """Base class for querylog errors."""


class RecordNotFoundError(QueryLogError):
    """A query matched no rows."""

    def __init__(self, message: str = "record not found"):
        super().__init__(message)


RECORD_NOT_FOUND_TYPES: tuple[type[BaseException], ...] = (
    NoResultFound,
    RecordNotFoundError,
)


def is_record_not_found(error: BaseException | None) -> bool:
    """Check whether *error* (or anything it was raised from) is a not-found sentinel."""
    seen: set[int] = set()
    current = error
    while current is not None and id(current) not in seen:
        if isinstance(current, RECORD_NOT_FOUND_TYPES):
            return True
        seen.add(id(current))
        current = current.__cause__
    return False


__all__ = [
    "QueryLogError",
    "RecordNotFoundError",
    "RECORD_NOT_FOUND_TYPES",
    "is_record_not_found",
]
