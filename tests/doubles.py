# tests/doubles.py
"""In-memory stand-ins for the Redis-backed clients."""

from collections.abc import AsyncIterator
from fnmatch import fnmatch
from itertools import count

from klog.clients.protocols import StreamMessage


class MemoryStreamBroker:
    """
    In-memory stand-in for the Redis stream commands the queue uses.

    Entries are delivered once, in publish order; acknowledged ids are
    recorded so tests can check every entry was acked.
    """

    def __init__(self) -> None:
        self.entries: list[StreamMessage] = []
        self.groups: set[tuple[str, str]] = set()
        self.acked: list[str] = []
        self.fail_xadd = False
        self._ids = count(1)
        self._delivered = 0

    async def xadd(self, stream: str, fields: dict[str, str]) -> str:
        if self.fail_xadd:
            mssg = "broker down"
            raise ConnectionError(mssg)
        message_id = f"{next(self._ids)}-0"
        self.entries.append((message_id, dict(fields)))
        return message_id

    async def ensure_group(self, stream: str, group: str) -> None:
        self.groups.add((stream, group))

    async def xreadgroup(
        self,
        stream: str,
        group: str,
        consumer: str,
        count: int = 10,
        block_ms: int = 0,
    ) -> list[StreamMessage]:
        batch = self.entries[self._delivered : self._delivered + count]
        self._delivered += len(batch)
        return batch

    async def xack(self, stream: str, group: str, *message_ids: str) -> int:
        self.acked.extend(message_ids)
        return len(message_ids)

    @property
    def undelivered(self) -> int:
        return len(self.entries) - self._delivered


class MemoryCacheClient:
    """Dictionary-backed cache client."""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self.store.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self.store[key] = value
        return True

    async def delete(self, *keys: str) -> int:
        return sum(self.store.pop(key, None) is not None for key in keys)

    async def scan_iter(self, pattern: str, count: int = 100) -> AsyncIterator[str]:
        for key in list(self.store):
            if fnmatch(key, pattern):
                yield key
