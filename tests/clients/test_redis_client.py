"""Tests for klog/clients/redis_client.py."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError

from klog.clients.redis_client import RedisClient


@pytest.fixture
def redis_mock() -> MagicMock:
    return MagicMock()


@pytest.fixture
def client(redis_mock: MagicMock) -> RedisClient:
    client = RedisClient()
    client._redis = redis_mock
    return client


class TestConnection:
    """Tests for client lifecycle."""

    def test_client_before_connect_raises(self) -> None:
        with pytest.raises(RuntimeError, match="not initialized"):
            _ = RedisClient().client

    @pytest.mark.asyncio
    async def test_disconnect_closes(self, client: RedisClient, redis_mock: MagicMock) -> None:
        redis_mock.aclose = AsyncMock()
        await client.disconnect()
        redis_mock.aclose.assert_awaited_once()
        assert client._redis is None


class TestStreams:
    """Tests for the stream commands."""

    @pytest.mark.asyncio
    async def test_xreadgroup_flattens_resp2_reply(
        self,
        client: RedisClient,
        redis_mock: MagicMock,
    ) -> None:
        redis_mock.xreadgroup = AsyncMock(
            return_value=[["files", [("1-0", {"task": "a"}), ("2-0", {"task": "b"})]]],
        )

        messages = await client.xreadgroup("files", "g", "c", 10, 100)

        assert messages == [("1-0", {"task": "a"}), ("2-0", {"task": "b"})]
        redis_mock.xreadgroup.assert_awaited_once_with(
            "g",
            "c",
            {"files": ">"},
            count=10,
            block=100,
        )

    @pytest.mark.asyncio
    async def test_xreadgroup_flattens_resp3_reply(
        self,
        client: RedisClient,
        redis_mock: MagicMock,
    ) -> None:
        redis_mock.xreadgroup = AsyncMock(return_value={"files": [["1-0", {"task": "a"}]]})
        assert await client.xreadgroup("files", "g", "c", 10, 100) == [("1-0", {"task": "a"})]

    @pytest.mark.asyncio
    async def test_xreadgroup_timeout_is_empty(
        self,
        client: RedisClient,
        redis_mock: MagicMock,
    ) -> None:
        redis_mock.xreadgroup = AsyncMock(return_value=None)
        assert await client.xreadgroup("files", "g", "c", 10, 100) == []

    @pytest.mark.asyncio
    async def test_ensure_group_ignores_existing_group(
        self,
        client: RedisClient,
        redis_mock: MagicMock,
    ) -> None:
        redis_mock.xgroup_create = AsyncMock(
            side_effect=ResponseError("BUSYGROUP Consumer Group name already exists"),
        )
        await client.ensure_group("files", "g")

    @pytest.mark.asyncio
    async def test_ensure_group_other_error(
        self,
        client: RedisClient,
        redis_mock: MagicMock,
    ) -> None:
        redis_mock.xgroup_create = AsyncMock(side_effect=ResponseError("WRONGTYPE"))
        with pytest.raises(RedisConnectionError):
            await client.ensure_group("files", "g")

    @pytest.mark.asyncio
    async def test_xadd_failure_is_wrapped(
        self,
        client: RedisClient,
        redis_mock: MagicMock,
    ) -> None:
        redis_mock.xadd = AsyncMock(side_effect=ResponseError("OOM"))
        with pytest.raises(RedisConnectionError, match="xadd failed"):
            await client.xadd("files", {"task": "{}"})


class TestCache:
    """Tests for the cache commands."""

    @pytest.mark.asyncio
    async def test_scan_iter_follows_cursor(
        self,
        client: RedisClient,
        redis_mock: MagicMock,
    ) -> None:
        redis_mock.scan = AsyncMock(side_effect=[(5, [b"a", "b"]), (0, ["c"])])
        assert [key async for key in client.scan_iter("*")] == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_delete_without_keys(self, client: RedisClient) -> None:
        assert await client.delete() == 0
