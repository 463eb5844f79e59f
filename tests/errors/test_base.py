"""Tests for klog/errors/base.py."""

from logging import getLogger
from unittest.mock import MagicMock

import pytest
from orjson import loads

from klog.errors import (
    BaseAppError,
    CursorMismatchError,
    DatabaseConnectionError,
    RateLimitExceededError,
    create_exception_handler,
)


def _request() -> MagicMock:
    request = MagicMock()
    request.method = "GET"
    request.url.path = "/posts/cursor"
    request.client.host = "127.0.0.1"
    return request


class TestToContent:
    """Tests for error response bodies."""

    def test_public_attributes_are_included(self) -> None:
        content = CursorMismatchError("title", "view_count").to_content()
        assert content["code"] == "CURSOR_MISMATCH"
        assert content["cursor_field"] == "title"
        assert content["requested_field"] == "view_count"
        assert "status_code" not in content

    def test_defaults(self) -> None:
        assert BaseAppError().to_content() == {
            "detail": "Internal Server Error",
            "code": "INTERNAL_ERROR",
        }


class TestHandler:
    """Tests for the shared exception handler."""

    @pytest.mark.asyncio
    async def test_client_error_response(self) -> None:
        handler = create_exception_handler(getLogger("test"))
        response = await handler(_request(), RateLimitExceededError(retry_after=2.2))

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "3"
        assert loads(response.body)["retry_after"] == 2.2

    @pytest.mark.asyncio
    async def test_server_error_response(self) -> None:
        handler = create_exception_handler(getLogger("test"))
        response = await handler(_request(), DatabaseConnectionError())

        assert response.status_code == 503
        assert loads(response.body)["code"] == "DATABASE_UNAVAILABLE"

    @pytest.mark.asyncio
    async def test_foreign_exception_is_a_500(self) -> None:
        handler = create_exception_handler(getLogger("test"))
        response = await handler(_request(), ValueError("boom"))

        assert response.status_code == 500
        assert loads(response.body)["detail"] == "Internal Server Error"
