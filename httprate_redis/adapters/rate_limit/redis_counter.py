"""Redis-backed limit counter.

Counts live in Redis as self-expiring integer keys, one per (rate-limit key,
window index). Concurrent increments from any number of processes are
linearized by Redis ``INCR``; no client-side locking is involved.

Each call is one pipelined round trip:
- increment: ``INCR bucket`` + ``EXPIRE bucket 3*window``
- get: ``GET current`` + ``GET previous``

Every per-command outcome of a batch is inspected, so a partial failure is
always reported to the caller.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Any

from redis.asyncio import Redis, RedisCluster
from redis.asyncio.cluster import ClusterNode
from redis.exceptions import RedisClusterException, RedisError

from httprate_redis.adapters.rate_limit.base import DEFAULT_WINDOW_SECONDS, LimitCounter
from httprate_redis.adapters.rate_limit.keys import (
    DEFAULT_KEY_PREFIX,
    DEFAULT_REDIS_ADDRESS,
    Instant,
    WindowLength,
    derive_window_key,
)
from httprate_redis.core.errors import BackendAppError, ConfigurationAppError

logger = logging.getLogger(__name__)

DEFAULT_REDIS_PORT = 6379

RedisClient = Redis | RedisCluster

_BACKEND_FAILURES = (asyncio.TimeoutError, RedisError, RedisClusterException, OSError)


@dataclass(frozen=True)
class RedisCounterConfig:
    """Connection settings for :class:`RedisLimitCounter`.

    Attributes:
        addresses: ``host:port`` entries. Empty means the local default.
            More than one address connects in cluster mode.
        password: Optional Redis password.
        db_index: Logical database (standalone mode only).
        key_prefix: Namespace for bucket keys.
        timeout_seconds: Default deadline for each round trip.
    """

    addresses: list[str] = field(default_factory=list)
    password: str | None = None
    db_index: int = 0
    key_prefix: str = DEFAULT_KEY_PREFIX
    timeout_seconds: float | None = None

    def resolved_addresses(self) -> list[str]:
        addresses = [a.strip() for a in self.addresses if a and a.strip()]
        return addresses or [DEFAULT_REDIS_ADDRESS]


def parse_address(address: str) -> tuple[str, int]:
    """Split ``host:port`` (``[v6]:port`` accepted); port defaults to 6379.

    Raises:
        ConfigurationAppError: If the host is empty or the port is invalid.
    """

    host, sep, port_text = address.strip().rpartition(":")
    if not sep or "]" in port_text:
        host, port_text = address.strip(), ""
    host = host.strip("[]")

    if not host:
        raise ConfigurationAppError(
            code="redis_invalid_address",
            message=f"Redis address has no host: '{address}'",
            details={"address": address},
        )
    if not port_text:
        return host, DEFAULT_REDIS_PORT

    try:
        port = int(port_text)
    except ValueError:
        port = -1
    if not 0 < port < 65536:
        raise ConfigurationAppError(
            code="redis_invalid_address",
            message=f"Redis address has an invalid port: '{address}'",
            details={"address": address},
        )
    return host, port


def build_redis_client(config: RedisCounterConfig) -> RedisClient:
    """Create (but do not connect) the client described by ``config``.

    Raises:
        ConfigurationAppError: If the configuration cannot be honoured.
    """

    if config.db_index < 0:
        raise ConfigurationAppError(
            code="redis_invalid_db_index",
            message="Redis db_index must be >= 0",
        )

    nodes = [parse_address(address) for address in config.resolved_addresses()]
    options: dict[str, Any] = {
        "password": config.password or None,
        "decode_responses": True,
        "socket_timeout": config.timeout_seconds,
        "socket_connect_timeout": config.timeout_seconds,
    }

    if len(nodes) == 1:
        host, port = nodes[0]
        return Redis(host=host, port=port, db=config.db_index, **options)

    if config.db_index != 0:
        raise ConfigurationAppError(
            code="redis_cluster_db_index",
            message="Redis cluster mode only supports db_index 0",
            details={"hint": "Use a single address to select another database"},
        )

    # Spread initial topology discovery across the seed nodes
    random.shuffle(nodes)
    return RedisCluster(
        startup_nodes=[ClusterNode(host, port) for host, port in nodes],
        **options,
    )


class RedisLimitCounter(LimitCounter):
    """Limit counter shared across processes through Redis.

    The client is owned by the counter: it is opened by :meth:`connect` and
    released by :meth:`aclose`. Any object exposing the ``redis.asyncio``
    ``pipeline``/``ping``/``aclose`` surface can be injected.
    """

    def __init__(
        self,
        client: Any,
        *,
        window_length: WindowLength = DEFAULT_WINDOW_SECONDS,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        timeout_seconds: float | None = None,
    ) -> None:
        super().__init__(window_length=window_length)
        self._client = client
        self._key_prefix = key_prefix
        self._timeout_seconds = timeout_seconds

    @classmethod
    async def connect(
        cls,
        config: RedisCounterConfig | None = None,
        *,
        window_length: WindowLength = DEFAULT_WINDOW_SECONDS,
    ) -> RedisLimitCounter:
        """Build a counter and verify the backend answers.

        Args:
            config: Connection settings; defaults to the local Redis.
            window_length: Initial window length.

        Returns:
            A ready-to-use counter.

        Raises:
            ConfigurationAppError: If the config is invalid or Redis is unreachable.
        """
        config = config or RedisCounterConfig()
        client = build_redis_client(config)
        counter = cls(
            client,
            window_length=window_length,
            key_prefix=config.key_prefix,
            timeout_seconds=config.timeout_seconds,
        )

        try:
            await counter.ping()
        except BackendAppError as exc:
            await counter.aclose()
            addresses = ",".join(config.resolved_addresses())
            raise ConfigurationAppError(
                code="redis_unreachable",
                message=f"Unable to connect to Redis at {addresses}",
                details={"address": addresses},
            ) from exc

        logger.info(
            "redis_counter.connected",
            extra={
                "addresses": config.resolved_addresses(),
                "db_index": config.db_index,
                "cluster": isinstance(client, RedisCluster),
            },
        )
        return counter

    def _bucket_key(self, key: str, window: Instant) -> str:
        return derive_window_key(key, window, self.window_seconds, prefix=self._key_prefix)

    def _backend_error(self, phase: str, bucket_key: str, exc: BaseException) -> BackendAppError:
        logger.warning(
            f"redis_counter.{phase}_failed",
            extra={
                "phase": phase,
                "bucket_key": bucket_key,
                "error_type": type(exc).__name__,
                "error_msg": str(exc),
            },
        )
        return BackendAppError(
            code=f"redis_{phase}_failed",
            message=f"Redis {phase} failed: {str(exc) or type(exc).__name__}",
            details={"phase": phase, "bucket_key": bucket_key, "backend": "redis"},
        )

    async def _execute(self, pipe: Any, *, phase: str, bucket_key: str, timeout: float | None) -> list[Any]:
        """Run a pipeline under the call deadline, collecting per-command outcomes."""

        deadline = timeout if timeout is not None else self._timeout_seconds
        try:
            return await asyncio.wait_for(pipe.execute(raise_on_error=False), deadline)
        except _BACKEND_FAILURES as exc:
            raise self._backend_error(phase, bucket_key, exc) from exc

    async def increment(
        self,
        key: str,
        current_window: Instant,
        *,
        timeout: float | None = None,
    ) -> None:
        bucket_key = self._bucket_key(key, current_window)

        async with self._client.pipeline(transaction=False) as pipe:
            pipe.incr(bucket_key)
            pipe.expire(bucket_key, self.ttl_seconds)
            results = await self._execute(pipe, phase="increment", bucket_key=bucket_key, timeout=timeout)

        for phase, outcome in zip(("increment", "expire"), results):
            if isinstance(outcome, Exception):
                raise self._backend_error(phase, bucket_key, outcome) from outcome

    def _parse_count(self, outcome: Any, bucket_key: str) -> int:
        if isinstance(outcome, Exception):
            raise self._backend_error("read", bucket_key, outcome) from outcome
        # Missing bucket: never incremented in that window, or expired
        if outcome is None:
            return 0
        try:
            count = int(outcome)
        except (TypeError, ValueError) as exc:
            raise self._backend_error("read", bucket_key, exc) from exc
        return max(0, count)

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

        async with self._client.pipeline(transaction=False) as pipe:
            pipe.get(current_key)
            pipe.get(previous_key)
            results = await self._execute(pipe, phase="read", bucket_key=current_key, timeout=timeout)

        return (
            self._parse_count(results[0], current_key),
            self._parse_count(results[1], previous_key),
        )

    async def ping(self, *, timeout: float | None = None) -> None:
        deadline = timeout if timeout is not None else self._timeout_seconds
        try:
            await asyncio.wait_for(self._client.ping(), deadline)
        except _BACKEND_FAILURES as exc:
            raise self._backend_error("ping", "", exc) from exc

    async def aclose(self) -> None:
        await self._client.aclose()
