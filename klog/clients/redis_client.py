"""
Redis client backing the post cache and the file delete stream.

Command failures are logged and surface as ``redis.exceptions.ConnectionError``,
the one error type the cache manager and the delete queue handle.
"""

from collections.abc import AsyncGenerator, AsyncIterator, Awaitable
from contextlib import asynccontextmanager
from logging import getLogger
from typing import Any

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, ResponseError

from klog.clients.protocols import StreamMessage
from klog.configs import file_logger, pool_kwargs

logger = file_logger(getLogger(__name__))


async def _resolve(reply: Awaitable[Any] | Any) -> Any:
    # redis-py types some commands as returning either a value or an awaitable
    return await reply if isinstance(reply, Awaitable) else reply


@asynccontextmanager
async def _command(name: str, target: str, *, log: bool = True) -> AsyncIterator[None]:
    try:
        yield
    except RedisError as e:
        if log:
            logger.exception(f"Redis {name} failed for {target}")
        mssg = f"Redis {name} failed for {target}: {e}"
        raise RedisConnectionError(mssg) from e


class RedisClient:
    """Pooled async Redis connection exposing cache and stream commands."""

    def __init__(self, config: dict[str, Any] | None = None) -> None:
        self.config = config or pool_kwargs
        self._redis: Redis | None = None

    @property
    def client(self) -> Redis:
        if self._redis is None:
            mssg = "Redis client not initialized. Call connect() first."
            raise RuntimeError(mssg)
        return self._redis

    async def connect(self) -> None:
        """Open the pool and check the server answers."""
        address = f"{self.config.get('host')}:{self.config.get('port')}"
        self._redis = Redis(connection_pool=ConnectionPool(**self.config))
        try:
            alive = await _resolve(self._redis.ping())
        except RedisError as e:
            await self.disconnect()
            mssg = f"Cannot connect to Redis at {address}"
            raise RedisConnectionError(mssg) from e
        if not alive:
            await self.disconnect()
            mssg = f"Redis at {address} did not answer PING"
            raise RedisConnectionError(mssg)
        logger.info(f"Connected to Redis at {address}")

    async def disconnect(self) -> None:
        if self._redis is None:
            return
        await self._redis.aclose()
        self._redis = None
        logger.info("Redis connection closed.")

    async def ping(self) -> bool:
        async with _command("ping", "server", log=False):
            return bool(await _resolve(self.client.ping()))

    # Cache

    async def get(self, key: str) -> str | None:
        async with _command("get", key):
            return await self.client.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        async with _command("set", key):
            return bool(await self.client.set(key, value, ex=ex))

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        async with _command("delete", ", ".join(keys)):
            return await self.client.delete(*keys)

    async def scan_iter(self, pattern: str, count: int = 100) -> AsyncGenerator[str]:
        """Yield keys matching ``pattern`` one SCAN page at a time."""
        cursor = 0
        while True:
            async with _command("scan", pattern):
                cursor, keys = await self.client.scan(cursor, match=pattern, count=count)
            for key in keys:
                yield key.decode() if isinstance(key, bytes) else key
            if cursor == 0:
                return

    # Streams

    async def xadd(self, stream: str, fields: dict[str, str]) -> str:
        async with _command("xadd", stream):
            return await self.client.xadd(stream, fields)  # type: ignore[arg-type]

    async def ensure_group(self, stream: str, group: str) -> None:
        """Create ``group`` reading ``stream`` from its start; creates the stream too."""
        try:
            await self.client.xgroup_create(stream, group, id="0", mkstream=True)
        except ResponseError as e:
            if "BUSYGROUP" in str(e):
                return
            mssg = f"Redis xgroup_create failed for {stream}: {e}"
            raise RedisConnectionError(mssg) from e
        except RedisError as e:
            mssg = f"Redis xgroup_create failed for {stream}: {e}"
            raise RedisConnectionError(mssg) from e
        logger.info(f"Created consumer group {group} on {stream}")

    async def xreadgroup(
        self,
        stream: str,
        group: str,
        consumer: str,
        count: int,
        block_ms: int,
    ) -> list[StreamMessage]:
        """Up to ``count`` undelivered entries as ``(id, fields)``; empty on timeout."""
        # The consumer loop logs its own read failures with backoff
        async with _command("xreadgroup", stream, log=False):
            reply = await self.client.xreadgroup(
                group,
                consumer,
                {stream: ">"},
                count=count,
                block=block_ms,
            )
        if not reply:
            return []
        # RESP2 replies [[stream, entries]], RESP3 {stream: entries}
        per_stream = reply.values() if isinstance(reply, dict) else (item[1] for item in reply)
        return [(entry_id, dict(fields or {})) for entries in per_stream for entry_id, fields in entries]

    async def xack(self, stream: str, group: str, *message_ids: str) -> int:
        async with _command("xack", stream):
            return await self.client.xack(stream, group, *message_ids)
