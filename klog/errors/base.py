"""
Base error type and the JSON error response shared by every handler.

Error bodies have the shape ``{"detail": ..., "code": ...}`` plus any public
attributes the concrete error sets, e.g. ``cursor_field`` on a cursor
mismatch.
"""

from collections.abc import Awaitable, Callable
from logging import Logger
from typing import Any

from fastapi import Request
from fastapi.responses import ORJSONResponse
from starlette.status import HTTP_500_INTERNAL_SERVER_ERROR

from klog.utils.helpers import host

# Failures of the process environment rather than of the request
BASE_EXCEPTION = (
    OSError,
    PermissionError,
    MemoryError,
    RuntimeError,
    ConnectionError,
    TimeoutError,
)


class BaseAppError(Exception):
    """
    Base exception class for application errors.

    Attributes:
        code: Stable machine-readable error code.
        detail: Human-readable message.
        status_code: HTTP status the error maps to.
    """

    code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        detail: str = "Internal Server Error",
        status_code: int = HTTP_500_INTERNAL_SERVER_ERROR,
    ) -> None:
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code

    def __str__(self) -> str:
        return self.detail

    @property
    def headers(self) -> dict[str, str] | None:
        """Extra response headers, none by default."""
        return None

    def to_content(self) -> dict[str, Any]:
        """Build the JSON error body."""
        content: dict[str, Any] = {"detail": self.detail, "code": self.code}
        content.update(
            (key, value)
            for key, value in vars(self).items()
            if key not in {"detail", "status_code"} and not key.startswith("_")
        )
        return content


def create_exception_handler(
    logger: Logger,
) -> Callable[[Request, Exception], Awaitable[ORJSONResponse]]:
    """
    Create the exception handler for one error family.

    Client errors are logged as warnings, server errors with their traceback.

    Args:
        logger: Logger of the module that owns the error family.

    Returns:
        A callable exception handler.
    """

    async def handler(request: Request, exc: Exception) -> ORJSONResponse:
        if not isinstance(exc, BaseAppError):
            exc = BaseAppError()

        where = f"{request.method} {request.url.path} from {host(request)}"
        if exc.status_code >= HTTP_500_INTERNAL_SERVER_ERROR:
            logger.error(f"{exc.code}: {exc.detail} on {where}", exc_info=exc)
        else:
            logger.warning(f"{exc.code}: {exc.detail} on {where}")

        return ORJSONResponse(
            content=exc.to_content(),
            status_code=exc.status_code,
            headers=exc.headers,
        )

    return handler
