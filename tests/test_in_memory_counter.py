"""Unit tests for the in-memory limit counter."""

import asyncio
from datetime import datetime, timezone

import pytest

from httprate_redis.adapters.rate_limit.in_memory import InMemoryLimitCounter

UTC = timezone.utc


@pytest.mark.asyncio
async def test_two_window_scenario(fake_time) -> None:
    counter = InMemoryLimitCounter(window_length=60, clock=fake_time)
    t = datetime(2024, 1, 1, 0, 0, 10, tzinfo=UTC)
    fake_time.current = t.timestamp()

    for _ in range(3):
        await counter.increment("user1", t)

    assert await counter.get("user1", t, datetime(2023, 12, 31, 23, 59, 10, tzinfo=UTC)) == (3, 0)

    fake_time.advance(55)
    later = datetime(2024, 1, 1, 0, 1, 5, tzinfo=UTC)
    assert await counter.get("user1", later, datetime(2024, 1, 1, 0, 0, 5, tzinfo=UTC)) == (0, 3)


@pytest.mark.asyncio
async def test_never_incremented_reads_zero() -> None:
    counter = InMemoryLimitCounter()

    assert await counter.get("nobody", 1000.0, 940.0) == (0, 0)


@pytest.mark.asyncio
async def test_bucket_expires_after_three_windows(fake_time) -> None:
    counter = InMemoryLimitCounter(window_length=10, clock=fake_time)
    await counter.increment("k", 1000.0)

    fake_time.advance(29)
    assert await counter.get("k", 1000.0, 990.0) == (1, 0)

    fake_time.advance(1)
    assert await counter.get("k", 1000.0, 990.0) == (0, 0)
    assert counter.stats()["buckets"] == 0


@pytest.mark.asyncio
async def test_increment_refreshes_expiry(fake_time) -> None:
    counter = InMemoryLimitCounter(window_length=10, clock=fake_time)
    await counter.increment("k", 1000.0)
    fake_time.advance(20)
    await counter.increment("k", 1000.0)
    fake_time.advance(20)

    assert await counter.get("k", 1000.0, 990.0) == (2, 0)


@pytest.mark.asyncio
async def test_increment_evicts_buckets_that_are_never_read(fake_time) -> None:
    counter = InMemoryLimitCounter(window_length=60, clock=fake_time)

    for _ in range(100):
        await counter.increment("k", fake_time())
        fake_time.advance(60)

    assert counter.stats()["buckets"] <= 3


@pytest.mark.asyncio
async def test_stats_do_not_evict(fake_time) -> None:
    counter = InMemoryLimitCounter(window_length=10, clock=fake_time)
    await counter.increment("k", 1000.0)
    fake_time.advance(30)

    assert counter.stats() == {"window_seconds": 10.0, "ttl_seconds": 30, "buckets": 1}


@pytest.mark.asyncio
async def test_concurrent_increments_are_all_counted() -> None:
    counter = InMemoryLimitCounter()

    await asyncio.gather(*(counter.increment("k", 1000.0) for _ in range(100)))

    current, _ = await counter.get("k", 1000.0, 940.0)
    assert current == 100


@pytest.mark.asyncio
async def test_keys_are_isolated() -> None:
    counter = InMemoryLimitCounter()
    await counter.increment("k1", 1000.0)

    assert await counter.get("k2", 1000.0, 940.0) == (0, 0)


def test_configure_updates_window_and_ttl() -> None:
    counter = InMemoryLimitCounter()
    assert counter.ttl_seconds == 180

    counter.configure(10, 5)
    assert counter.window_seconds == 5
    assert counter.request_limit == 10
    assert counter.ttl_seconds == 15


def test_configure_rejects_non_positive_window() -> None:
    counter = InMemoryLimitCounter()

    with pytest.raises(ValueError):
        counter.configure(10, 0)
