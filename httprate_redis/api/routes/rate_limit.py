from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Header, Request

from httprate_redis.core.rate_limit import build_rate_limit_key, enforce_rate_limit, get_rate_limiter
from httprate_redis.schemas.rate_limit import RateLimitStatusResponse

router = APIRouter(tags=["Rate limit"])


@router.get(
    "/rate-limit/status",
    response_model=RateLimitStatusResponse,
    dependencies=[Depends(enforce_rate_limit)],
)
async def rate_limit_status(
    request: Request,
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> RateLimitStatusResponse:
    """Report the caller's counts for the current and previous window.

    The endpoint is itself rate limited, so the current count includes this
    request.
    """

    limiter = get_rate_limiter(request)
    current, previous = await limiter.status(build_rate_limit_key(request, x_api_key))
    return RateLimitStatusResponse(
        key_type="api_key" if x_api_key else "ip",
        limit=limiter.limit,
        window_seconds=limiter.window_seconds,
        current_window_count=current,
        previous_window_count=previous,
    )
