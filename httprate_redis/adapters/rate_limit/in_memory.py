"""In-memory limit counter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- Buckets expire after the same TTL the Redis counter applies; expired
  buckets are evicted on every increment.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

from httprate_redis.adapters.rate_limit.base import DEFAULT_WINDOW_SECONDS, LimitCounter
from httprate_redis.adapters.rate_limit.keys import (
    DEFAULT_KEY_PREFIX,
    Instant,
    WindowLength,
    derive_window_key,
)

logger = logging.getLogger(__name__)


@dataclass
class _Bucket:
    count: int
    expires_at: float


class InMemoryLimitCounter(LimitCounter):
    """Limit counter keeping buckets in a process-local dict.

    Mirrors the Redis counter: same bucket keys, same TTL, absent or expired
    buckets read as zero. Useful for development and as a test double.

    Important:
        Counts are not shared between workers.
    """

    def __init__(
        self,
        *,
        window_length: WindowLength = DEFAULT_WINDOW_SECONDS,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the in-memory counter.

        Args:
            window_length: Size of each fixed window.
            key_prefix: Namespace for bucket keys.
            clock: Time source used for bucket expiry (UNIX seconds).
        """
        super().__init__(window_length=window_length)
        self._key_prefix = key_prefix
        self._clock = clock
        self._lock = threading.RLock()
        self._buckets: dict[str, _Bucket] = {}

    def stats(self) -> dict[str, int | float]:
        """Return bucket metrics without touching counts or expiry."""

        with self._lock:
            return {
                "window_seconds": self.window_seconds,
                "ttl_seconds": self.ttl_seconds,
                "buckets": len(self._buckets),
            }

    def _bucket_key(self, key: str, window: Instant) -> str:
        return derive_window_key(key, window, self.window_seconds, prefix=self._key_prefix)

    def _live_bucket_locked(self, bucket_key: str, now: float) -> _Bucket | None:
        bucket = self._buckets.get(bucket_key)
        if bucket is not None and bucket.expires_at <= now:
            del self._buckets[bucket_key]
            return None
        return bucket

    def _evict_expired_locked(self, now: float) -> None:
        expired = [k for k, b in self._buckets.items() if b.expires_at <= now]
        for bucket_key in expired:
            del self._buckets[bucket_key]

    async def increment(
        self,
        key: str,
        current_window: Instant,
        *,
        timeout: float | None = None,
    ) -> None:
        bucket_key = self._bucket_key(key, current_window)
        with self._lock:
            now = self._clock()
            self._evict_expired_locked(now)
            bucket = self._live_bucket_locked(bucket_key, now)
            if bucket is None:
                bucket = _Bucket(count=0, expires_at=0.0)
                self._buckets[bucket_key] = bucket
            bucket.count += 1
            bucket.expires_at = now + self.ttl_seconds
            count = bucket.count

        logger.debug(
            "memory_counter.incremented",
            extra={"bucket_key": bucket_key, "count": count},
        )

    async def get(
        self,
        key: str,
        current_window: Instant,
        previous_window: Instant,
        *,
        timeout: float | None = None,
    ) -> tuple[int, int]:
        current_key = self._bucket_key(key, current_window)
        previous_key = self._bucket_key(key, previous_window)
        with self._lock:
            now = self._clock()
            current = self._live_bucket_locked(current_key, now)
            previous = self._live_bucket_locked(previous_key, now)
            return (
                current.count if current else 0,
                previous.count if previous else 0,
            )

    async def aclose(self) -> None:
        with self._lock:
            self._buckets.clear()
