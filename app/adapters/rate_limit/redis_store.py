"""Redis-backed counter store.

INCR and EXPIRE are queued on a transactional pipeline and sent as one
MULTI/EXEC block, so Redis applies both or neither and no other client can
interleave between them. Counters are shared by every worker and replica
connected to the same Redis, which makes the configured limit global.
"""

from __future__ import annotations

import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from app.adapters.rate_limit.base import AbstractCounterStore, validate_ttl
from app.core.errors import CounterStoreAppError

logger = logging.getLogger(__name__)


class RedisCounterStore(AbstractCounterStore):
    """Counter store using a Redis MULTI/EXEC pipeline."""

    def __init__(
        self,
        client: redis.Redis,
        *,
        key_prefix: str = "rate_limit:",
    ) -> None:
        """Initialize the store around an existing client.

        Args:
            client: ``redis.asyncio`` client (owns the connection pool).
            key_prefix: Namespace prepended to every counter key.
        """
        self._redis = client
        self._key_prefix = key_prefix

    @classmethod
    def from_url(
        cls,
        redis_url: str,
        *,
        key_prefix: str = "rate_limit:",
        socket_timeout: float | None = None,
        socket_connect_timeout: float | None = None,
    ) -> "RedisCounterStore":
        """Build a store with its own connection pool.

        The client is created lazily connected; the first command opens the
        connection, so an unreachable Redis surfaces as a per-request store
        error instead of a startup crash.
        """
        client = redis.from_url(
            redis_url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_connect_timeout,
            health_check_interval=30,
        )
        return cls(client, key_prefix=key_prefix)

    def _make_key(self, key: str) -> str:
        """Generate the namespaced Redis key."""
        return f"{self._key_prefix}{key}"

    async def incr_with_expiry(self, key: str, ttl_seconds: int) -> int:
        validate_ttl(ttl_seconds)
        redis_key = self._make_key(key)

        try:
            async with self._redis.pipeline(transaction=True) as pipeline:
                pipeline.incr(redis_key)
                pipeline.expire(redis_key, ttl_seconds)
                count, expired = await pipeline.execute(raise_on_error=False)
        except RedisError as exc:
            raise CounterStoreAppError(
                code="counter_store_unavailable",
                message="Counter store operation failed",
                details={"backend": "redis", "error_type": type(exc).__name__},
            ) from exc

        # EXEC does not roll back: a failed command leaves the other applied
        for result in (count, expired):
            if isinstance(result, Exception):
                raise CounterStoreAppError(
                    code="counter_store_command_failed",
                    message="Counter store rejected part of the transaction",
                    details={"backend": "redis", "error_type": type(result).__name__},
                ) from result
        if not expired:
            raise CounterStoreAppError(
                code="counter_store_expiry_not_set",
                message="Counter store did not apply the expiry",
                details={"backend": "redis"},
            )

        return int(count)

    async def close(self) -> None:
        await self._redis.aclose()
        logger.info("store.closed", extra={"backend": "redis"})
