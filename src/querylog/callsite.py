"""
Call-site resolution.

Finds the first stack frame that belongs to application code, skipping
frames inside ``querylog`` itself, SQLAlchemy and ``contextlib``. The
result identifies where a traced statement (or a free-form log call)
came from.

The resolver is a plain ``Callable[[], CallSite]`` so a logger can be
configured with a different strategy (see ``with_caller_resolver``).
"""

from __future__ import annotations

import contextlib
import os
import sys
from collections.abc import Callable
from dataclasses import dataclass

import sqlalchemy


@dataclass(frozen=True)
class CallSite:
    """Source location of a log call."""

    filename: str
    lineno: int
    function: str = ""

    def __str__(self) -> str:
        return f"{self.filename}:{self.lineno}"


UNKNOWN_CALLSITE = CallSite("(unknown file)", 0, "(unknown function)")

CallerResolver = Callable[[], CallSite]


def _package_dir(module_file: str) -> str:
    return os.path.normcase(os.path.dirname(os.path.abspath(module_file))) + os.sep


_QUERYLOG_DIR = _package_dir(__file__)
_SQLALCHEMY_DIR = _package_dir(sqlalchemy.__file__)
_CONTEXTLIB_FILE = os.path.normcase(os.path.abspath(contextlib.__file__))

DEFAULT_SKIP_DIRS: tuple[str, ...] = (_QUERYLOG_DIR, _SQLALCHEMY_DIR)


def _is_skipped(filename: str, skip_dirs: tuple[str, ...]) -> bool:
    normalized = os.path.normcase(os.path.abspath(filename))
    if normalized == _CONTEXTLIB_FILE:
        return True
    return normalized.startswith(skip_dirs)


def resolve_caller(skip_dirs: tuple[str, ...] = DEFAULT_SKIP_DIRS) -> CallSite:
    """
    Return the first frame outside *skip_dirs*.

    Falls back to ``UNKNOWN_CALLSITE`` when every frame on the stack is
    skipped (e.g. a call made from inside SQLAlchemy's own threads).
    """
    frame = sys._getframe(1)
    while frame is not None:
        code = frame.f_code
        if not _is_skipped(code.co_filename, skip_dirs):
            return CallSite(code.co_filename, frame.f_lineno, code.co_name)
        frame = frame.f_back
    return UNKNOWN_CALLSITE


def caller_resolver(*extra_dirs: str) -> CallerResolver:
    """
    Build a resolver that also skips *extra_dirs*.

    Useful when a repository layer wraps the session and its own frames
    should not show up as the query source:

        with_caller_resolver(caller_resolver("/app/myproject/repositories"))
    """
    skip = DEFAULT_SKIP_DIRS + tuple(
        os.path.normcase(os.path.abspath(d)).rstrip(os.sep) + os.sep for d in extra_dirs
    )

    def _resolve() -> CallSite:
        return resolve_caller(skip)

    return _resolve
