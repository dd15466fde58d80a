"""Admission middleware for the HTTP layer.

This module wires the rate decision engine in front of every route.

Design goals:
- Generic: attaches to any FastAPI/Starlette app via ``app.middleware("http")``
  and defines no routes of its own.
- Stateless: all counting happens in the engine's store.
- Fail closed: a degraded store produces the same 429 as a real limit breach.

Key strategy:
- One global fixed-window counter per client network address (port stripped).
- When the origin address is unavailable, every such request shares a single
  fallback key, so unidentifiable clients are throttled together rather than
  exempted.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Iterable

from fastapi import Request, Response, status
from fastapi.responses import PlainTextResponse

from app.core.errors import KeyExtractionAppError
from app.core.logging import hash_key
from app.services.rate_limiter import FixedWindowRateLimiter

logger = logging.getLogger(__name__)

RATE_LIMIT_EXCEEDED_DETAIL = "Rate limit exceeded"

CallNext = Callable[[Request], Awaitable[Response]]
HttpMiddleware = Callable[[Request, CallNext], Awaitable[Response]]


def strip_port(address: str) -> str:
    """Remove a trailing port from a network address.

    Examples:
        >>> strip_port("1.2.3.4:5678")
        '1.2.3.4'
        >>> strip_port("[2001:db8::1]:443")
        '2001:db8::1'
        >>> strip_port("2001:db8::1")
        '2001:db8::1'
    """
    address = address.strip()
    if address.startswith("["):
        end = address.find("]")
        if end != -1:
            return address[1:end]
    # Bare IPv6 addresses contain several colons and no port
    if address.count(":") == 1:
        return address.split(":", 1)[0]
    return address


def client_key_from_request(request: Request) -> str:
    """Derive the rate limit key from the request's origin address.

    Args:
        request: Incoming request.

    Returns:
        str: Client address without port.

    Raises:
        KeyExtractionAppError: If the ASGI server did not report a usable
            client address.
    """
    client = request.client
    host = strip_port(client.host) if client and client.host else ""
    if not host:
        raise KeyExtractionAppError(
            code="client_address_unavailable",
            message="Request has no client address",
        )
    return host


def build_admission_middleware(
    limiter: FixedWindowRateLimiter,
    *,
    fallback_key: str = "unknown",
    exempt_paths: Iterable[str] = (),
    include_headers: bool = True,
) -> HttpMiddleware:
    """Build an HTTP middleware enforcing the limiter on every request.

    Args:
        limiter: Decision engine shared by all requests.
        fallback_key: Key used when the client address cannot be determined.
        exempt_paths: Exact paths forwarded without consulting the limiter.
        include_headers: Attach ``Retry-After`` to 429 responses.

    Returns:
        An async ``(request, call_next)`` callable.

    Usage:
        app.middleware("http")(build_admission_middleware(limiter))
    """

    exempt = frozenset(exempt_paths)

    async def admission_middleware(request: Request, call_next: CallNext) -> Response:
        if request.url.path in exempt:
            return await call_next(request)

        try:
            key = client_key_from_request(request)
        except KeyExtractionAppError as exc:
            logger.warning(
                "rate_limit.key_fallback",
                extra={"reason": exc.code, "request_path": request.url.path},
            )
            key = fallback_key

        if await limiter.allow(key):
            logger.debug("rate_limit.allowed", extra={"key_hash": hash_key(key)})
            return await call_next(request)

        logger.warning(
            "rate_limit.exceeded",
            extra={
                "key_hash": hash_key(key),
                "decision": "deny",
                "limit": limiter.limit,
                "window_s": limiter.window_seconds,
            },
        )

        headers = {"Retry-After": str(limiter.window_seconds)} if include_headers else None
        return PlainTextResponse(
            RATE_LIMIT_EXCEEDED_DETAIL,
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            headers=headers,
        )

    return admission_middleware
