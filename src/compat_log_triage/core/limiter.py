"""Global intake gate bounding concurrent analysis runs."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager

from .errors import IntakeRejected
from .settings import default_concurrency

REJECTION_MESSAGE = "Log processing is rate limited, try again a bit later"


class IntakeLimiter:
    """Counting gate with zero-wait admission.

    Runs that find every slot busy are rejected immediately instead of being
    queued, so latency stays predictable under bursts.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._capacity = capacity
        self._in_use = 0
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def in_use(self) -> int:
        return self._in_use

    def try_acquire(self) -> bool:
        with self._lock:
            if self._in_use >= self._capacity:
                return False
            self._in_use += 1
            return True

    def release(self) -> None:
        with self._lock:
            if self._in_use == 0:
                raise RuntimeError("release() without a matching acquire")
            self._in_use -= 1

    @contextmanager
    def admit(self) -> Iterator[None]:
        """Hold one slot for the duration of the block or raise IntakeRejected."""
        if not self.try_acquire():
            raise IntakeRejected(REJECTION_MESSAGE)
        try:
            yield
        finally:
            self.release()


_limiter: IntakeLimiter | None = None
_limiter_lock = threading.Lock()


def get_intake_limiter(capacity: int | None = None) -> IntakeLimiter:
    """Return the process-wide limiter, creating it on first use.

    ``capacity`` only matters for the first call; the gate is never resized.
    """
    global _limiter
    with _limiter_lock:
        if _limiter is None:
            _limiter = IntakeLimiter(capacity or default_concurrency())
        return _limiter
