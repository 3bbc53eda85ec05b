"""Rate limiting dependency for FastAPI routes.

This module wires the rate limiting adapter into the HTTP layer.

Design goals:
- Minimal coupling: API routes depend on a dependency function only.
- Swap-friendly: the counter backend (Redis or memory) lives behind an
  abstract interface and is owned by the application lifespan.
- Explicit failure policy: counter backend errors either fail open or
  propagate as 503, depending on settings.

Rate limiting strategy:
- Sliding-window approximation over two fixed windows, per API key.
- If API key is missing, fall back to client IP.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Annotated

from fastapi import Header, HTTPException, Request, status

from httprate_redis.adapters.rate_limit.sliding_window import SlidingWindowRateLimiter
from httprate_redis.core.config import settings
from httprate_redis.core.errors import BackendAppError, ConfigurationAppError

logger = logging.getLogger(__name__)


def get_rate_limiter(request: Request) -> SlidingWindowRateLimiter:
    """Return the limiter created by the application lifespan.

    Raises:
        ConfigurationAppError: If the app was started without a limiter.
    """

    limiter = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        raise ConfigurationAppError(
            code="rate_limit_not_initialized",
            message="Rate limiter is not initialized",
        )
    return limiter


def build_rate_limit_key(request: Request, x_api_key: str | None) -> str:
    """Build the limiter key for the current request.

    Args:
        request: FastAPI request.
        x_api_key: API key value from the X-API-Key header.

    Returns:
        str: Namespaced limiter key.
    """

    if x_api_key:
        return f"api_key:{x_api_key}"

    client_host = request.client.host if request.client else "unknown"
    return f"ip:{client_host}"


def hash_limiter_key(key: str) -> str:
    """Hash the rate limit key for logging without exposing secrets."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


async def enforce_rate_limit(
    request: Request,
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """FastAPI dependency enforcing rate limits.

    When enabled, counts one request against the requester's budget. If the
    requester exceeds the configured rate, raises HTTP 429.

    Args:
        request: FastAPI request.
        x_api_key: API key from X-API-Key header.

    Raises:
        HTTPException: 429 Too Many Requests when rate limit is exceeded.
        BackendAppError: When the counter fails and fail-open is disabled.
    """

    if not settings.app.rate_limit_enabled:
        return

    limiter = get_rate_limiter(request)
    key = build_rate_limit_key(request, x_api_key)
    key_hash = hash_limiter_key(key)
    key_type = "api_key" if x_api_key else "ip"

    try:
        result = await limiter.consume(key)
    except BackendAppError as exc:
        if not settings.app.rate_limit_fail_open:
            raise
        logger.warning(
            "rate_limit.fail_open",
            extra={
                "key_type": key_type,
                "key_hash": key_hash,
                "error_code": exc.code,
                "phase": exc.phase,
            },
        )
        return

    if result.allowed:
        logger.info(
            "rate_limit.allowed",
            extra={
                "key_type": key_type,
                "key_hash": key_hash,
                "limit": result.limit,
                "remaining": result.remaining,
                "window_s": limiter.window_seconds,
            },
        )
        return

    retry_after = result.retry_after_seconds or 0
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "key_type": key_type,
            "key_hash": key_hash,
            "limit": result.limit,
            "remaining": result.remaining,
            "window_s": limiter.window_seconds,
            "retry_after_s": retry_after,
        },
    )

    headers: dict[str, str] = {}
    if settings.app.rate_limit_include_headers:
        headers["Retry-After"] = str(retry_after)
        headers["X-RateLimit-Limit"] = str(result.limit)
        headers["X-RateLimit-Remaining"] = str(result.remaining)
        headers["X-RateLimit-Reset"] = str(result.reset_at)

    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail="Rate limit exceeded. Try again later.",
        headers=headers or None,
    )
