"""Sliding-window rate limiter built on a :class:`LimitCounter`.

Approximates a true sliding window with two fixed windows: the previous
window's count is weighted by how much of it still overlaps the sliding
window ending now, then added to the current window's count.

    rate = previous * (window - elapsed) / window + current
"""

from __future__ import annotations

import math
import time
from typing import Callable

from httprate_redis.adapters.rate_limit.base import AbstractRateLimiter, LimitCounter, RateLimitResult
from httprate_redis.adapters.rate_limit.keys import epoch_seconds, window_bounds
from httprate_redis.core.errors import ValidationAppError


class SlidingWindowRateLimiter(AbstractRateLimiter):
    """Allow ``limit`` requests per sliding ``window_seconds`` per key.

    The counter is configured with the limit and window on construction, so
    one counter instance should back one limiter. Backend errors raised by
    the counter propagate unchanged; deciding to fail open or closed is the
    caller's business.
    """

    def __init__(
        self,
        counter: LimitCounter,
        *,
        limit: int,
        window_seconds: int,
        timeout_seconds: float | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            counter: Shared counter storing per-window counts.
            limit: Maximum number of requests per window.
            window_seconds: Size of the window in seconds.
            timeout_seconds: Deadline passed to each counter call.
            clock: Time source returning UNIX time in seconds.

        Raises:
            ValueError: If limit or window_seconds are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

        self._counter = counter
        self._limit = limit
        self._window_seconds = window_seconds
        self._timeout_seconds = timeout_seconds
        self._clock = clock
        counter.configure(limit, window_seconds)

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> int:
        return self._window_seconds

    @property
    def counter(self) -> LimitCounter:
        return self._counter

    def _weighted_rate(self, current: int, previous: int, elapsed: float) -> float:
        overlap = max(0.0, self._window_seconds - elapsed) / self._window_seconds
        return previous * overlap + current

    async def consume(self, key: str) -> RateLimitResult:
        """Count one request for ``key`` unless it would exceed the limit.

        Raises:
            ValidationAppError: If key is empty.
            BackendAppError: If the counter backend failed.
        """
        if not key:
            raise ValidationAppError(
                code="invalid_rate_limit_key",
                message="Rate limit key must be a non-empty string",
            )

        now = self._clock()
        current_window, previous_window = window_bounds(now, self._window_seconds)
        window_start = epoch_seconds(current_window)
        reset_at = int(window_start + self._window_seconds)

        current, previous = await self._counter.get(
            key, current_window, previous_window, timeout=self._timeout_seconds
        )
        rate = self._weighted_rate(current, previous, now - window_start)

        if rate >= self._limit:
            return RateLimitResult(
                allowed=False,
                limit=self._limit,
                remaining=0,
                reset_at=reset_at,
                retry_after_seconds=max(1, int(math.ceil(reset_at - now))),
            )

        await self._counter.increment(key, current_window, timeout=self._timeout_seconds)
        remaining = max(0, self._limit - int(math.floor(rate)) - 1)
        return RateLimitResult(
            allowed=True,
            limit=self._limit,
            remaining=remaining,
            reset_at=reset_at,
            retry_after_seconds=None,
        )

    async def status(self, key: str) -> tuple[int, int]:
        """Return the caller's (current, previous) window counts without counting."""

        current_window, previous_window = window_bounds(self._clock(), self._window_seconds)
        return await self._counter.get(
            key, current_window, previous_window, timeout=self._timeout_seconds
        )
