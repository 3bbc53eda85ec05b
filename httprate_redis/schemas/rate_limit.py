"""Pydantic schemas for rate limit endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field


class RateLimitStatusResponse(BaseModel):
    """Caller's view of its own rate limit budget."""

    key_type: str = Field(..., description="What the caller is limited by: 'api_key' or 'ip'.")
    limit: int = Field(..., description="Maximum requests per window.")
    window_seconds: int = Field(..., description="Window length in seconds.")
    current_window_count: int = Field(
        ..., description="Requests counted in the current fixed window (this one included)."
    )
    previous_window_count: int = Field(
        ..., description="Requests counted in the previous fixed window."
    )


class ReadinessResponse(BaseModel):
    """Readiness probe payload."""

    status: str = Field(..., description="'ok' when the counter backend answered.")
    backend: str = Field(..., description="Configured counter backend.")
