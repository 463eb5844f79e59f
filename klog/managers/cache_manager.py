"""Optional Redis-backed cache for read paths."""

from logging import DEBUG, getLogger
from typing import Any

from orjson import JSONDecodeError, dumps, loads
from redis.exceptions import RedisError

from klog.clients.protocols import CacheClientProtocol
from klog.configs import file_logger, settings
from klog.errors import BASE_EXCEPTION

logger = file_logger(getLogger(__name__))

CACHE_ERRORS = (RedisError,) + BASE_EXCEPTION

DELETE_BATCH_SIZE = 1000


class CacheManager:
    """
    Cache manager over an optional cache client.

    Without a client every read misses and every write is a no-op, so callers
    always fall through to the datastore. Client failures are logged and
    treated the same way; the cache never fails a request.
    """

    def __init__(
        self,
        client: CacheClientProtocol | None = None,
        key_prefix: str = settings.CACHE_KEY_PREFIX,
    ) -> None:
        self._client = client
        self.key_prefix = key_prefix

    @property
    def enabled(self) -> bool:
        return self._client is not None

    def _build_key(self, key: str, namespace: str | None = None) -> str:
        """Build full cache key with prefix and namespace."""
        prefix = self.key_prefix
        return f"{prefix}:{namespace}:{key}" if namespace else f"{prefix}:{key}"

    async def get(self, key: str, namespace: str | None = None) -> Any | None:
        """Get a JSON value from cache, ``None`` on miss or failure."""
        if self._client is None:
            return None
        full_key = self._build_key(key, namespace)
        try:
            if logger.isEnabledFor(DEBUG):
                logger.debug("Getting from cache: %s", full_key)
            cached_value = await self._client.get(full_key)
            return None if cached_value is None else loads(cached_value)
        except CACHE_ERRORS + (JSONDecodeError,):
            logger.warning("Cache get failed for key %s", full_key, exc_info=True)
            return None

    async def set(
        self,
        key: str,
        value: Any,
        ttl: int | None = None,
        namespace: str | None = None,
    ) -> bool:
        """Store a JSON-serializable value."""
        if self._client is None:
            return False
        full_key = self._build_key(key, namespace)
        try:
            return await self._client.set(full_key, dumps(value).decode("utf-8"), ex=ttl)
        except CACHE_ERRORS + (TypeError,):
            logger.warning("Cache set failed for key %s", full_key, exc_info=True)
            return False

    async def delete(self, *keys: str, namespace: str | None = None) -> int:
        """Delete keys from cache."""
        if self._client is None or not keys:
            return 0
        full_keys = [self._build_key(key, namespace) for key in keys]
        try:
            return await self._client.delete(*full_keys)
        except CACHE_ERRORS:
            logger.warning("Cache delete failed for keys %s", full_keys, exc_info=True)
            return 0

    async def clear(self, namespace: str | None = None) -> int:
        """
        Delete every key of a namespace, scanning in batches.

        Returns:
            int: Number of keys deleted.
        """
        if self._client is None:
            return 0
        pattern = f"{self.key_prefix}:{namespace}:*" if namespace else f"{self.key_prefix}:*"
        deleted_total = 0
        keys_batch: list[str] = []
        try:
            async for key in self._client.scan_iter(pattern):
                keys_batch.append(key)
                if len(keys_batch) >= DELETE_BATCH_SIZE:
                    deleted_total += await self._client.delete(*keys_batch)
                    keys_batch = []
            if keys_batch:
                deleted_total += await self._client.delete(*keys_batch)
        except CACHE_ERRORS:
            logger.warning("Cache clear failed for pattern %s", pattern, exc_info=True)
        if deleted_total:
            logger.info("Cleared %d keys for pattern '%s'.", deleted_total, pattern)
        return deleted_total
