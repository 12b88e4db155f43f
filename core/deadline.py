"""
core/deadline.py -- Per-request deadlines propagated through contextvars.

The API middleware opens a request_deadline() scope around every request. The
storage engine calls check_deadline() before each SQL statement, so a request
whose budget has run out stops issuing queries instead of holding a pooled
connection for work nobody is waiting for.

ContextVar (not a thread-local) because FastAPI copies the request context
into the worker thread that runs a sync route handler.

Layer rule: core/ is the kernel. No imports from api/, auth/, services/, or
storage/.
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

from core.errors import ErrorKind, SSOError

# Absolute time.monotonic() value, or None when no deadline is active.
_deadline: ContextVar[float | None] = ContextVar("sso_request_deadline", default=None)


@contextmanager
def request_deadline(seconds: float) -> Iterator[float]:
    """Run the enclosed block under a deadline `seconds` from now.

    Nested scopes can only tighten the deadline, never extend it.
    """
    proposed = time.monotonic() + seconds
    current = _deadline.get()
    effective = proposed if current is None else min(current, proposed)
    token = _deadline.set(effective)
    try:
        yield effective
    finally:
        _deadline.reset(token)


def remaining() -> float | None:
    """Seconds left before the active deadline, or None if there is none."""
    deadline = _deadline.get()
    if deadline is None:
        return None
    return deadline - time.monotonic()


def check_deadline() -> None:
    """Raise SSOError(DEADLINE_EXCEEDED) if the active deadline has passed."""
    left = remaining()
    if left is not None and left <= 0:
        raise SSOError(ErrorKind.DEADLINE_EXCEEDED)
