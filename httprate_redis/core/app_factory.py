"""Application factory for the FastAPI app.

Centralizes app construction (lifespan, middleware, handlers, routers) to
improve testability. The limit counter is opened when the app starts and
closed when it shuts down; it lives on ``app.state`` rather than in a module
global so several apps (or tests) can run side by side.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from httprate_redis.adapters.rate_limit.base import LimitCounter
from httprate_redis.adapters.rate_limit.factory import create_limit_counter, create_rate_limiter
from httprate_redis.api.routes import health_router, rate_limit_router
from httprate_redis.core.config import settings
from httprate_redis.core.exception_handlers import setup_exception_handlers
from httprate_redis.core.logging import configure_logging
from httprate_redis.core.middleware import request_id_middleware

logger = logging.getLogger(__name__)


def create_app(counter: LimitCounter | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        counter: Pre-built counter to use instead of the one named in
            settings. The app takes ownership and closes it on shutdown.

    Returns:
        Configured FastAPI app with lifespan, middleware, handlers and routers.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        limit_counter = counter if counter is not None else await create_limit_counter(settings)
        app.state.rate_limiter = create_rate_limiter(limit_counter, settings)
        logger.info(
            "rate_limit.counter_ready",
            extra={
                "counter": type(limit_counter).__name__,
                "limit": settings.app.rate_limit_requests,
                "window_s": settings.app.rate_limit_window_seconds,
            },
        )
        try:
            yield
        finally:
            app.state.rate_limiter = None
            await limit_counter.aclose()

    app = FastAPI(
        title="httprate-redis",
        description=(
            "Sliding-window request rate limiting shared across processes "
            "through Redis."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(rate_limit_router, prefix="/v1")
    app.include_router(health_router)

    return app
