"""
Context-derived log attributes.

An extractor pulls one attribute out of the ambient call context. The
context is a read-only mapping supplied by the database layer; ``None``
means an empty context. Two extraction rules exist:

- ``ContextValue(name, key)``: direct key lookup, emitted when the value
  is not ``None``.
- ``ContextFunc(name, func)``: ``func(context)`` returns ``(value, present)``,
  emitted only when ``present``.

``ambient_context()`` snapshots structlog's contextvars so values bound with
``structlog.contextvars.bind_contextvars`` (request ids, user ids, ...) are
visible to extractors without passing them around explicitly.

Usage:
    extractors = (
        ContextValue("request_id", "request_id"),
        ContextFunc("tenant", lambda ctx: (ctx.get("tenant"), "tenant" in ctx)),
    )
    attrs = context_attributes(extractors, {"request_id": "abc"})
    # [("request_id", "abc")]
"""

from __future__ import annotations

from collections.abc import Callable, Hashable, Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

import structlog

from querylog.record import Attribute

Context = Mapping[Any, Any]

EMPTY_CONTEXT: Context = MappingProxyType({})


@dataclass(frozen=True)
class ContextValue:
    """Emit ``context[key]`` as attribute *name* when present."""

    name: str
    key: Hashable


@dataclass(frozen=True)
class ContextFunc:
    """Emit the value computed by *func* as attribute *name* when it reports presence."""

    name: str
    func: Callable[[Context], tuple[Any, bool]]


ContextExtractor = ContextValue | ContextFunc


def ensure_context(context: Context | None) -> Context:
    """Substitute an empty context for ``None``."""
    return EMPTY_CONTEXT if context is None else context


def extract(extractor: ContextExtractor, context: Context) -> tuple[Any, bool]:
    """Evaluate one extractor against *context*."""
    match extractor:
        case ContextValue(key=key):
            value = context.get(key)
            return value, value is not None
        case ContextFunc(func=func):
            value, present = func(context)
            return value, bool(present)
    raise TypeError(f"unsupported context extractor: {extractor!r}")


def context_attributes(
    extractors: Iterable[ContextExtractor],
    context: Context | None,
    attributes: list[Attribute] | None = None,
) -> list[Attribute]:
    """
    Append context-derived attributes to *attributes*.

    Fixed attributes already in the list stay first; extractor output
    follows in registration order. Absent values contribute nothing.
    """
    result = [] if attributes is None else attributes
    ctx = ensure_context(context)
    for extractor in extractors:
        value, present = extract(extractor, ctx)
        if present:
            result.append((extractor.name, value))
    return result


def register(
    extractors: tuple[ContextExtractor, ...],
    extractor: ContextExtractor,
) -> tuple[ContextExtractor, ...]:
    """Add *extractor*, replacing (in place) one registered under the same name."""
    replaced = False
    updated: list[ContextExtractor] = []
    for existing in extractors:
        if existing.name == extractor.name:
            updated.append(extractor)
            replaced = True
        else:
            updated.append(existing)
    if not replaced:
        updated.append(extractor)
    return tuple(updated)


def ambient_context() -> dict[str, Any]:
    """Snapshot of the values bound through structlog's contextvars."""
    return structlog.contextvars.get_contextvars()
