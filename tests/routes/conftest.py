# tests/routes/conftest.py
"""Pytest fixtures for route tests."""

from collections.abc import AsyncGenerator
from io import BytesIO
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from PIL import Image
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from doubles import MemoryStreamBroker
from klog.configs import settings
from klog.db import get_session
from klog.dependencies import FileQueueDep, SessionDep, get_media_service
from klog.main import app
from klog.managers.cache_manager import CacheManager
from klog.managers.file_queue import FileDeleteQueue, RetryPolicy
from klog.managers.rate_limiter import IPRateLimiter
from klog.managers.token_manager import create_access_token
from klog.repositories import MediaRepository
from klog.services import MediaService


@pytest.fixture
def media_root(tmp_path: Path) -> Path:
    root = tmp_path / "media"
    root.mkdir()
    return root


@pytest.fixture
def file_queue(broker: MemoryStreamBroker) -> FileDeleteQueue:
    return FileDeleteQueue(broker, stream="test:files", policy=RetryPolicy(3, 0, 0))


@pytest.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    file_queue: FileDeleteQueue,
    media_root: Path,
) -> AsyncGenerator[AsyncClient]:
    """
    HTTP client against the app with a test database and media root.

    The ASGI transport does not run the lifespan, so the state it would
    install is set here.
    """

    async def override_session() -> AsyncGenerator[AsyncSession]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    def override_media_service(session: SessionDep, queue: FileQueueDep) -> MediaService:
        return MediaService(MediaRepository(session), queue, media_root=media_root)

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_media_service] = override_media_service
    app.state.file_queue = file_queue
    app.state.cache_manager = CacheManager(None)
    app.state.rate_limiter = IPRateLimiter(rate=1000, burst=1000)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    for name in ("file_queue", "cache_manager", "rate_limiter"):
        if hasattr(app.state, name):
            delattr(app.state, name)


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(settings.ADMIN_USERNAME)}"}


@pytest.fixture
def png_bytes() -> bytes:
    buffer = BytesIO()
    Image.new("RGB", (8, 8), "green").save(buffer, format="PNG")
    return buffer.getvalue()
