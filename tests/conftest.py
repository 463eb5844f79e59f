# tests/conftest.py
"""Root pytest configuration and shared fixtures."""

import os
from tempfile import mkdtemp

# Settings are read at import time, so the environment is set before klog loads
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["REDIS_ENABLED"] = "false"
os.environ["LOG_TO_FILE"] = "false"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["ENABLE_METRICS"] = "false"
os.environ["MEDIA_DIR"] = mkdtemp(prefix="klog-media-")
os.environ["SECRET_KEY"] = "test-secret-key-with-at-least-32-characters"
os.environ["FILE_DELETE_BASE_DELAY"] = "0"
os.environ["FILE_DELETE_MAX_DELAY"] = "0"

from collections.abc import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

import klog.models  # noqa: F401
from doubles import MemoryCacheClient, MemoryStreamBroker


@pytest.fixture
def broker() -> MemoryStreamBroker:
    return MemoryStreamBroker()


@pytest.fixture
def cache_client() -> MemoryCacheClient:
    return MemoryCacheClient()


@pytest.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine]:
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    async with session_factory() as s:
        yield s
