"""In-memory counter store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state, which makes increment and
  expiry refresh one atomic unit from the caller's point of view.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable

from app.adapters.rate_limit.base import AbstractCounterStore, validate_ttl


@dataclass
class _CounterState:
    count: int
    expires_at: float


class InMemoryCounterStore(AbstractCounterStore):
    """Counter store keeping counters in a process-local dict.

    Mirrors Redis INCR + EXPIRE semantics: an expired counter behaves as if
    it had been deleted, and every increment pushes the expiry a full TTL
    into the future.

    Important:
        This store is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker will enforce its
        own independent limits. Use the Redis store for shared limits.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.monotonic,
        sweep_every: int = 1024,
    ) -> None:
        """Initialize the in-memory store.

        Args:
            clock: Time source function returning seconds.
            sweep_every: Number of increments between full sweeps of
                expired counters belonging to other keys.
        """
        if sweep_every < 1:
            raise ValueError("sweep_every must be >= 1")

        self._clock = clock
        self._sweep_every = sweep_every
        self._lock = threading.RLock()
        self._counters: dict[str, _CounterState] = {}
        self._calls_since_sweep = 0

    def _sweep_expired(self, now: float) -> None:
        """Drop every counter whose expiry has elapsed. Caller holds the lock."""
        expired = [k for k, state in self._counters.items() if state.expires_at <= now]
        for key in expired:
            del self._counters[key]
        self._calls_since_sweep = 0

    async def incr_with_expiry(self, key: str, ttl_seconds: int) -> int:
        validate_ttl(ttl_seconds)
        now = self._clock()

        with self._lock:
            self._calls_since_sweep += 1
            if self._calls_since_sweep >= self._sweep_every:
                self._sweep_expired(now)

            state = self._counters.get(key)
            if state is None or state.expires_at <= now:
                state = _CounterState(count=0, expires_at=now)
                self._counters[key] = state

            state.count += 1
            state.expires_at = now + ttl_seconds
            return state.count

    # Inspection helpers for diagnostics and tests; the rate limiter never
    # reads counters outside incr_with_expiry.

    def get_count(self, key: str) -> int:
        """Return the live counter value for key, or 0 when missing/expired."""
        now = self._clock()
        with self._lock:
            state = self._counters.get(key)
            if state is None or state.expires_at <= now:
                return 0
            return state.count

    def __len__(self) -> int:
        """Return the number of live counters, sweeping expired ones first."""
        now = self._clock()
        with self._lock:
            self._sweep_expired(now)
            return len(self._counters)
