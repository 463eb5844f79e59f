"""
Cursor pagination error classes.

Every error here is a client input error: it is reported synchronously with a
400 status and a stable machine-readable ``code``, and never retried.
"""

from logging import getLogger

from starlette.status import HTTP_400_BAD_REQUEST

from klog.configs import file_logger
from klog.errors.base import BaseAppError, create_exception_handler

logger = file_logger(getLogger(__name__))


class PaginationError(BaseAppError):
    """Base exception for cursor pagination errors."""

    code = "PAGINATION_ERROR"

    def __init__(
        self,
        detail: str = "Invalid pagination request",
        status_code: int = HTTP_400_BAD_REQUEST,
    ) -> None:
        super().__init__(detail, status_code)


class InvalidCursorError(PaginationError):
    """Raised when a cursor string cannot be decoded."""

    code = "INVALID_CURSOR"

    def __init__(self, detail: str = "Invalid cursor format") -> None:
        super().__init__(detail)


class CursorMismatchError(PaginationError):
    """Raised when a cursor is replayed under a different sort field."""

    code = "CURSOR_MISMATCH"

    def __init__(self, cursor_field: str, requested_field: str) -> None:
        super().__init__(
            f"Cursor was issued for sort field '{cursor_field}', "
            f"not '{requested_field}'",
        )
        self.cursor_field = cursor_field
        self.requested_field = requested_field


class UnsupportedSortFieldError(PaginationError):
    """Raised when a sort field has no canonical serialization."""

    code = "UNSUPPORTED_SORT_FIELD"

    def __init__(self, field: str) -> None:
        super().__init__(f"Unsupported sort field '{field}'")
        self.field = field


pagination_exception_handler = create_exception_handler(logger)
