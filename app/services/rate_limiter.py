"""Fixed-window rate decision engine.

Each decision is a single atomic increment-with-expiry against the counter
store followed by a comparison with the configured limit. All mutable state
lives in the store, so any number of engine instances (workers, replicas)
sharing one store enforce one combined limit.

Window semantics: the store refreshes the TTL to a full window on every
increment. A client that keeps sending more than one request per window keeps
its counter alive and stays denied until it slows down.
"""

from __future__ import annotations

import asyncio
import logging

from app.adapters.rate_limit.base import AbstractCounterStore
from app.core.errors import ConfigurationAppError, CounterStoreAppError
from app.core.logging import hash_key

logger = logging.getLogger(__name__)


class FixedWindowRateLimiter:
    """Decide admit/deny per client key using a shared counter store.

    Attributes:
        limit: Maximum admitted requests per window.
        window_seconds: Window length, re-applied on every request.
    """

    def __init__(
        self,
        store: AbstractCounterStore,
        *,
        limit: int,
        window_seconds: int,
        timeout_seconds: float = 1.0,
    ) -> None:
        """Initialize the engine with an immutable rate policy.

        Args:
            store: Counter store providing atomic increment-with-expiry.
            limit: Maximum number of admitted requests per window.
            window_seconds: Window length in seconds.
            timeout_seconds: Deadline for one store round trip.

        Raises:
            ConfigurationAppError: If any policy value is not positive, or limit
                or window_seconds is not a whole number.
        """
        _require_positive_int("limit", limit)
        _require_positive_int("window_seconds", window_seconds)
        _require_positive("timeout_seconds", timeout_seconds)

        self._store = store
        self._limit = limit
        self._window_seconds = window_seconds
        self._timeout_seconds = timeout_seconds

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> int:
        return self._window_seconds

    async def allow(self, key: str) -> bool:
        """Count one request for key and report whether it is admitted.

        Fails closed: when the store errors out or misses the deadline the
        request is denied and the error is logged, never raised.

        Args:
            key: Non-empty client key.

        Returns:
            bool: True if the post-increment count is within the limit.
        """
        try:
            count = await asyncio.wait_for(
                self._store.incr_with_expiry(key, self._window_seconds),
                timeout=self._timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error(
                "rate_limit.store_timeout",
                extra={
                    "key_hash": hash_key(key),
                    "timeout_seconds": self._timeout_seconds,
                },
            )
            return False
        except CounterStoreAppError as exc:
            logger.error(
                "rate_limit.store_error",
                extra={
                    "key_hash": hash_key(key),
                    "error_code": exc.code,
                    "error_message": exc.message,
                    "error_type": type(exc.__cause__).__name__ if exc.__cause__ else None,
                },
            )
            return False
        except Exception:
            logger.exception(
                "rate_limit.store_unexpected_error",
                extra={"key_hash": hash_key(key)},
            )
            return False

        return count <= self._limit


def _require_positive(name: str, value: float) -> None:
    """Reject non-positive policy values at construction time."""
    if value <= 0:
        raise ConfigurationAppError(
            code="invalid_rate_policy",
            message=f"{name} must be > 0",
            details={"field": name, "actual_value": value},
        )


def _require_positive_int(name: str, value: int) -> None:
    """Reject policy values that are not positive whole numbers."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationAppError(
            code="invalid_rate_policy",
            message=f"{name} must be a whole number",
            details={"field": name, "actual_value": value},
        )
    _require_positive(name, value)
