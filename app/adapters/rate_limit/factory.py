"""Factory pattern for creating counter store instances."""

from app.adapters.rate_limit.base import AbstractCounterStore
from app.adapters.rate_limit.in_memory import InMemoryCounterStore
from app.adapters.rate_limit.redis_store import RedisCounterStore
from app.core.config import StoreSettings, settings
from app.core.errors import ConfigurationAppError


def create_counter_store(store_settings: StoreSettings | None = None) -> AbstractCounterStore:
    """Factory function to instantiate the configured counter store.

    Reads configuration from app.core.config.settings (Pydantic Settings)
    unless explicit settings are passed.

    Returns:
        AbstractCounterStore: Configured store instance.

    Raises:
        ConfigurationAppError: If the backend is unknown.
    """
    cfg = store_settings or settings.store
    backend = cfg.backend.lower()

    if backend == "redis":
        return RedisCounterStore.from_url(
            cfg.redis_url,
            key_prefix=cfg.key_prefix,
            socket_timeout=cfg.timeout_seconds,
            socket_connect_timeout=cfg.connect_timeout_seconds,
        )

    # Single-process only; counters are not shared across workers
    if backend == "memory":
        return InMemoryCounterStore()

    raise ConfigurationAppError(
        code="store_unknown_backend",
        message=(
            f"Unknown counter store backend: '{backend}'. Supported backends: redis, memory"
        ),
        details={"field": "STORE_BACKEND"},
    )
