"""Counter store interface.

The rate limiter depends on this abstraction only. A store owns every window
counter; the process keeps no copy of counter values between calls.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from app.core.errors import ConfigurationAppError


class AbstractCounterStore(ABC):
    """Interface for shared counter stores with atomic increment-with-expiry."""

    @abstractmethod
    async def incr_with_expiry(self, key: str, ttl_seconds: int) -> int:
        """Increment a counter and (re)set its time-to-live in one atomic unit.

        The counter is created at zero when missing or expired. Every call
        resets the TTL to the full ``ttl_seconds`` from now, regardless of when
        the counter was created. No other caller can observe the counter
        between the increment and the expiry update, and a failure never
        leaves the counter incremented without an expiry.

        Args:
            key: Counter name (unprefixed; stores apply their own namespace).
            ttl_seconds: Time-to-live applied after the increment.

        Returns:
            int: Post-increment counter value.

        Raises:
            CounterStoreAppError: If the store cannot complete the operation.
        """
        raise NotImplementedError

    async def close(self) -> None:
        """Release connections held by the store. No-op by default."""
        return None


def validate_ttl(ttl_seconds: int) -> int:
    """Ensure a TTL is a positive whole number of seconds.

    Redis EXPIRE only accepts integers; a fractional TTL would be rejected
    inside MULTI/EXEC after INCR already applied, leaving a counter without
    expiry. Every backend applies the same check so they agree.

    Raises:
        ConfigurationAppError: If ttl_seconds is not a positive int.
    """
    if isinstance(ttl_seconds, bool) or not isinstance(ttl_seconds, int) or ttl_seconds <= 0:
        raise ConfigurationAppError(
            code="invalid_ttl",
            message="ttl_seconds must be a positive whole number of seconds",
            details={"field": "ttl_seconds", "actual_value": ttl_seconds},
        )
    return ttl_seconds
