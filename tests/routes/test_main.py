# tests/routes/test_main.py
"""Tests for the application level endpoints."""

import pytest
from httpx import AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from klog.main import app


@pytest.mark.asyncio
async def test_health(client: AsyncClient) -> None:
    response = await client.get("/health")

    body = response.json()
    assert response.status_code == 200
    assert body["status"] == "ok"
    assert body["services"]["redis"] == "disabled"
    assert body["services"]["file_delete_fallback_pending"] == 0


@pytest.mark.asyncio
async def test_metrics_endpoint(client: AsyncClient) -> None:
    response = await client.get("/metrics")
    assert response.status_code == 200
    assert b"klog_file_delete_published_total" in response.content


@pytest.mark.asyncio
async def test_security_headers_and_request_id(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert "X-Request-ID" in response.headers


class _DownRedis:
    async def ping(self) -> bool:
        mssg = "connection refused"
        raise RedisConnectionError(mssg)


@pytest.mark.asyncio
async def test_health_reports_unreachable_redis(client: AsyncClient) -> None:
    state = app.state
    state.redis_client = _DownRedis()
    try:
        response = await client.get("/health")
    finally:
        state.redis_client = None

    assert response.status_code == 200
    assert response.json()["services"]["redis"] == "unreachable"
