from __future__ import annotations

from fastapi import APIRouter, Request

from httprate_redis.core.config import settings
from httprate_redis.core.rate_limit import get_rate_limiter
from httprate_redis.schemas.rate_limit import ReadinessResponse

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness check.

    Returns:
        dict: A dictionary with a single "status" key set to "ok".
    """

    return {"status": "ok"}


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check(request: Request) -> ReadinessResponse:
    """Readiness check: the counter backend must answer a ping.

    A failing backend surfaces as BackendAppError, rendered as 503 by the
    global exception handler.
    """

    limiter = get_rate_limiter(request)
    await limiter.counter.ping(timeout=settings.redis.timeout_seconds)
    return ReadinessResponse(status="ok", backend=settings.app.rate_limit_backend.lower())
