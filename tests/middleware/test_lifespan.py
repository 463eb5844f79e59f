"""Tests for the application lifespan and scheduler wiring."""

from asyncio import Event, create_task

import pytest
from fastapi import FastAPI

from klog.managers import CacheManager, FileDeleteQueue, IPRateLimiter
from klog.middleware.middleware import _join_consumer, build_scheduler, connect_redis, lifespan


@pytest.mark.asyncio
async def test_connect_redis_disabled() -> None:
    assert await connect_redis() is None


def test_build_scheduler_registers_maintenance_jobs() -> None:
    scheduler = build_scheduler(Event(), IPRateLimiter())
    assert [job.name for job in scheduler.jobs] == ["orphan-sweep", "rate-limit-evict"]


@pytest.mark.asyncio
async def test_lifespan_without_redis_uses_fallback_queue() -> None:
    app = FastAPI()

    async with lifespan(app):
        assert app.state.redis_client is None
        assert isinstance(app.state.cache_manager, CacheManager)
        assert app.state.cache_manager.enabled is False
        assert isinstance(app.state.file_queue, FileDeleteQueue)
        assert app.state.file_queue.broker is None
        assert isinstance(app.state.rate_limiter, IPRateLimiter)


@pytest.mark.asyncio
async def test_join_consumer_logs_instead_of_raising() -> None:
    async def crashed() -> None:
        mssg = "embedded null byte"
        raise ValueError(mssg)

    await _join_consumer(create_task(crashed()))
