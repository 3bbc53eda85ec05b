"""Rate limiter and limit counter interfaces.

The HTTP layer depends on these abstractions (not the concrete
implementations) so the counter storage can be swapped between Redis and an
in-process map without touching the API layer.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import timedelta

from httprate_redis.adapters.rate_limit.keys import Instant, WindowLength, window_seconds as to_seconds

# Buckets outlive their window so the previous window stays readable while
# the current one is being written.
TTL_WINDOW_MULTIPLIER = 3

DEFAULT_WINDOW_SECONDS = 60


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit check/consume operation.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window.
        remaining: Remaining requests in the current window (0 when blocked).
        reset_at: UNIX epoch seconds when the current window resets.
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    async def consume(self, key: str) -> RateLimitResult:
        """Consume one unit of rate limit budget for a given key.

        Args:
            key: Unique identifier (e.g., API key, IP address).

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError


class LimitCounter(ABC):
    """Per-window request counter shared by every process of the service.

    Implementations keep no counts in process beyond what their storage
    needs; each call is one independent interaction with the backend.
    """

    def __init__(self, *, window_length: WindowLength = DEFAULT_WINDOW_SECONDS) -> None:
        self._request_limit: int | None = None
        self._window_seconds = to_seconds(window_length)

    @property
    def window_seconds(self) -> float:
        return self._window_seconds

    @property
    def window_length(self) -> timedelta:
        return timedelta(seconds=self._window_seconds)

    @property
    def request_limit(self) -> int | None:
        return self._request_limit

    @property
    def ttl_seconds(self) -> int:
        """Bucket time-to-live in whole seconds (truncated, at least 1)."""

        return max(1, int(self._window_seconds * TTL_WINDOW_MULTIPLIER))

    def configure(self, request_limit: int, window_length: WindowLength) -> None:
        """Set the window length used for bucket keys and expiry.

        ``request_limit`` is only recorded; enforcing it is the caller's job.
        Buckets written before the change keep their expiry.

        Raises:
            ValueError: If the window length is not positive.
        """

        self._window_seconds = to_seconds(window_length)
        self._request_limit = request_limit

    @abstractmethod
    async def increment(
        self,
        key: str,
        current_window: Instant,
        *,
        timeout: float | None = None,
    ) -> None:
        """Add one request to the bucket of ``current_window``.

        Raises:
            BackendAppError: If any step failed; the outcome is then unknown.
        """
        raise NotImplementedError

    @abstractmethod
    async def get(
        self,
        key: str,
        current_window: Instant,
        previous_window: Instant,
        *,
        timeout: float | None = None,
    ) -> tuple[int, int]:
        """Return (current_count, previous_count); absent buckets count as 0.

        Raises:
            BackendAppError: If the backend failed to serve either read.
        """
        raise NotImplementedError

    async def ping(self, *, timeout: float | None = None) -> None:
        """Check that the backend is reachable."""

    async def aclose(self) -> None:
        """Release backend resources."""
