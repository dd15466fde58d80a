"""Application factory for the FastAPI app.

Centralizes app construction (store, rate limiter, middleware, handlers,
routers) to improve testability: tests build isolated apps around their own
counter store instead of sharing the module-level instance.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.adapters.rate_limit.base import AbstractCounterStore
from app.adapters.rate_limit.factory import create_counter_store
from app.api.routes import health_router, root_router
from app.core.config import Settings, parse_path_list, settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.openapi import apply_openapi_customizations
from app.core.rate_limit import build_admission_middleware
from app.services.rate_limiter import FixedWindowRateLimiter

logger = logging.getLogger(__name__)


def create_app(
    *,
    store: AbstractCounterStore | None = None,
    app_settings: Settings | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        store: Counter store to use; built from settings when omitted.
        app_settings: Settings override; defaults to the global settings.

    Returns:
        Configured FastAPI app with the admission gate in front of all routes.

    Raises:
        ConfigurationAppError: If the rate policy or store backend is invalid.
    """
    cfg = app_settings or settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    counter_store = store if store is not None else create_counter_store(cfg.store)
    limiter = FixedWindowRateLimiter(
        counter_store,
        limit=cfg.app.rate_limit_requests,
        window_seconds=cfg.app.rate_limit_window_seconds,
        timeout_seconds=cfg.store.timeout_seconds,
    )
    exempt_paths = parse_path_list(cfg.app.rate_limit_exempt_paths)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "app.startup",
            extra={
                "store_backend": type(counter_store).__name__,
                "limit": limiter.limit,
                "window_s": limiter.window_seconds,
            },
        )
        try:
            yield
        finally:
            await counter_store.close()

    app = FastAPI(
        title="Request Admission Gate",
        description=(
            "Fixed-window rate limiting per client address, backed by a shared "
            "counter store. Requests over the limit receive HTTP 429."
        ),
        version="0.1.0",
        debug=cfg.app.debug,
        lifespan=lifespan,
    )

    # Middleware: the last registered runs first, so request ids are bound
    # before the admission gate logs or rejects.
    app.middleware("http")(
        build_admission_middleware(
            limiter,
            fallback_key=cfg.app.rate_limit_fallback_key,
            exempt_paths=exempt_paths,
            include_headers=cfg.app.rate_limit_include_headers,
        )
    )
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(root_router)
    app.include_router(health_router)

    apply_openapi_customizations(app, exempt_paths=exempt_paths)

    return app
