"""Propagation of request trace identifiers through the execution context."""

from __future__ import annotations

import re
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

NO_TRACE_ID = -1

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_DECIMAL = re.compile(r"[+-]?[0-9]+")

_TRACE_ID: ContextVar[object] = ContextVar("gatewaykit_trace_id", default=None)


@contextmanager
def trace_context(trace_id: object) -> Iterator[object]:
    """Make ``trace_id`` the current trace identifier inside the block."""
    token = _TRACE_ID.set(trace_id)
    try:
        yield trace_id
    finally:
        _TRACE_ID.reset(token)


def get_trace_id() -> int:
    """Return the current trace identifier, or -1 when none is usable."""
    value = _TRACE_ID.get()
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return NO_TRACE_ID


def parse_trace_id(value: str | None) -> int:
    """Parse a decimal 64-bit trace identifier, returning -1 on failure."""
    if not value or not _DECIMAL.fullmatch(value):
        return NO_TRACE_ID
    parsed = int(value)
    if not _INT64_MIN <= parsed <= _INT64_MAX:
        return NO_TRACE_ID
    return parsed