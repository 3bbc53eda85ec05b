"""Factory for limit counter and limiter instances."""

from __future__ import annotations

from httprate_redis.adapters.rate_limit.base import LimitCounter
from httprate_redis.adapters.rate_limit.in_memory import InMemoryLimitCounter
from httprate_redis.adapters.rate_limit.redis_counter import RedisCounterConfig, RedisLimitCounter
from httprate_redis.adapters.rate_limit.sliding_window import SlidingWindowRateLimiter
from httprate_redis.core.config import Settings, settings as default_settings
from httprate_redis.core.errors import ConfigurationAppError


async def create_limit_counter(settings: Settings | None = None) -> LimitCounter:
    """Instantiate the counter backend named in settings.

    Reads configuration from httprate_redis.core.config.settings unless
    explicit settings are given. The Redis variant connects eagerly so an
    unreachable server fails here rather than on the first request.

    Returns:
        LimitCounter: Connected counter configured with the app's window.

    Raises:
        ConfigurationAppError: If the backend is unknown or cannot be reached.
    """
    settings = settings or default_settings
    backend = settings.app.rate_limit_backend.lower()
    window_seconds = settings.app.rate_limit_window_seconds

    if backend == "memory":
        counter: LimitCounter = InMemoryLimitCounter(
            window_length=window_seconds,
            key_prefix=settings.redis.key_prefix,
        )
    elif backend == "redis":
        config = RedisCounterConfig(
            addresses=settings.redis.address_list(),
            password=settings.redis.password,
            db_index=settings.redis.db_index,
            key_prefix=settings.redis.key_prefix,
            timeout_seconds=settings.redis.timeout_seconds,
        )
        counter = await RedisLimitCounter.connect(config, window_length=window_seconds)
    else:
        raise ConfigurationAppError(
            code="rate_limit_unknown_backend",
            message=(
                f"Unknown rate limit backend: '{backend}'. Supported backends: memory, redis"
            ),
            details={"backend": backend},
        )

    counter.configure(settings.app.rate_limit_requests, window_seconds)
    return counter


def create_rate_limiter(counter: LimitCounter, settings: Settings | None = None) -> SlidingWindowRateLimiter:
    """Wrap a counter in the sliding-window limiter configured by settings."""

    settings = settings or default_settings
    return SlidingWindowRateLimiter(
        counter,
        limit=settings.app.rate_limit_requests,
        window_seconds=settings.app.rate_limit_window_seconds,
        timeout_seconds=settings.redis.timeout_seconds,
    )
