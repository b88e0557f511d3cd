"""
Per-operation deadlines for store calls.

An operation that makes several store calls (check-then-insert, check-then-merge)
opens one ``deadline`` and every call inside it gets only the time that is left.
Outside a deadline each call falls back to the store's own timeout.
"""

import time
from contextlib import contextmanager
from contextvars import ContextVar
from functools import wraps
from typing import Callable, Iterator, Optional

from establishment.errors import StoreTimeoutError


class Deadline:
    """A fixed point in time, read through an injectable clock."""

    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self.expires_at = clock() + seconds

    def remaining(self) -> float:
        left = self.expires_at - self.clock()
        if left <= 0:
            raise StoreTimeoutError("Operation deadline exceeded")
        return left


_current: ContextVar[Optional[Deadline]] = ContextVar("store_deadline", default=None)


@contextmanager
def deadline(seconds: float, clock: Callable[[], float] = time.monotonic) -> Iterator[Deadline]:
    """Share one time budget across all store calls in the block. Nested blocks keep the outer one."""
    current = _current.get()
    if current is not None:
        yield current
        return

    token = _current.set(Deadline(seconds, clock))
    try:
        yield _current.get()
    finally:
        _current.reset(token)


def time_left(default: float) -> float:
    """Seconds the next store call may take; raises StoreTimeoutError once the deadline has passed."""
    current = _current.get()
    if current is None:
        return default
    return min(default, current.remaining())


def within_deadline(method):
    """Run a service method under one deadline of ``self.store.timeout`` seconds, read from ``self.clock``."""

    @wraps(method)
    def wrapper(self, *args, **kwargs):
        with deadline(self.store.timeout, self.clock):
            return method(self, *args, **kwargs)

    return wrapper
