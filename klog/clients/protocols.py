"""Protocol definitions for cache and stream broker clients."""

from collections.abc import AsyncIterator, Awaitable
from typing import Protocol, runtime_checkable

type StreamMessage = tuple[str, dict[str, str]]


@runtime_checkable
class CacheClientProtocol(Protocol):
    """
    Interface of a key/value cache client.

    ``RedisClient`` conforms to this protocol.
    """

    def get(self, key: str) -> Awaitable[str | None]:
        """Get a value from the cache."""
        ...

    def set(self, key: str, value: str, ex: int | None = None) -> Awaitable[bool]:
        """Set a value in the cache with optional TTL."""
        ...

    def delete(self, *keys: str) -> Awaitable[int]:
        """Delete one or more keys from the cache."""
        ...

    def scan_iter(self, pattern: str, count: int = 100) -> AsyncIterator[str]:
        """Iterate keys matching a glob pattern."""
        ...


@runtime_checkable
class StreamBrokerProtocol(Protocol):
    """
    Interface of a durable stream broker with consumer groups.

    ``RedisClient`` conforms to this protocol; tests use an in-memory double.
    Failures surface as ``redis.exceptions.ConnectionError``.
    """

    def xadd(self, stream: str, fields: dict[str, str]) -> Awaitable[str]:
        """Append an entry and return its id."""
        ...

    def ensure_group(self, stream: str, group: str) -> Awaitable[None]:
        """Create the consumer group if it does not exist."""
        ...

    def xreadgroup(
        self,
        stream: str,
        group: str,
        consumer: str,
        count: int,
        block_ms: int,
    ) -> Awaitable[list[StreamMessage]]:
        """Read up to ``count`` new entries, blocking up to ``block_ms``."""
        ...

    def xack(self, stream: str, group: str, *message_ids: str) -> Awaitable[int]:
        """Acknowledge entries."""
        ...
