"""Token-bucket throttle for expensive render requests."""

from __future__ import annotations

import asyncio
import threading
import time
from typing import Callable


class TokenBucket:
    """Token bucket that makes callers wait rather than rejecting them.

    Args:
        capacity: Maximum number of tokens held by the bucket.
        rate: Tokens added per second.

    ``take`` reserves tokens immediately, letting the balance go negative,
    and returns how long the caller must wait before using them. Waiters are
    therefore served in the order they asked.
    """

    def __init__(
        self,
        capacity: int = 10,
        rate: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if capacity <= 0 or rate <= 0:
            raise ValueError("capacity and rate must be positive")
        self.capacity = capacity
        self.rate = rate
        self._clock = clock
        self._tokens = float(capacity)
        self._last = clock()
        self._lock = threading.Lock()

    def _refill(self, now: float) -> None:
        elapsed = now - self._last
        if elapsed > 0:
            self._tokens = min(self.capacity, self._tokens + elapsed * self.rate)
            self._last = now

    def take(self, count: int = 1) -> float:
        """Reserve ``count`` tokens and return the wait in seconds."""
        with self._lock:
            self._refill(self._clock())
            self._tokens -= count
            if self._tokens >= 0:
                return 0.0
            return -self._tokens / self.rate

    def refund(self, count: int = 1) -> None:
        """Return tokens reserved by a caller that gave up waiting."""
        with self._lock:
            self._tokens = min(self.capacity, self._tokens + count)

    async def acquire(self, count: int = 1) -> None:
        delay = self.take(count)
        if delay > 0:
            try:
                await asyncio.sleep(delay)
            except asyncio.CancelledError:
                self.refund(count)
                raise

