"""Errors raised by the repositories and mapped to HTTP responses."""

from logging import getLogger

from starlette.status import (
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_503_SERVICE_UNAVAILABLE,
)

from klog.configs import file_logger
from klog.errors.base import BaseAppError, create_exception_handler

logger = file_logger(getLogger(__name__))


class DatabaseError(BaseAppError):
    """Base exception for database errors."""

    code = "DATABASE_ERROR"

    def __init__(
        self,
        detail: str = "Database Error",
        status_code: int = HTTP_500_INTERNAL_SERVER_ERROR,
    ) -> None:
        super().__init__(detail, status_code)


class DatabaseConnectionError(DatabaseError):
    """A statement could not be executed; the request may be retried."""

    code = "DATABASE_UNAVAILABLE"

    def __init__(self, detail: str = "The database is unavailable") -> None:
        super().__init__(detail, HTTP_503_SERVICE_UNAVAILABLE)


class DuplicateEntryError(DatabaseError):
    """A unique column, such as a post slug, already holds the value."""

    code = "DUPLICATE_ENTRY"

    def __init__(self, detail: str = "A record with this value already exists") -> None:
        super().__init__(detail, HTTP_409_CONFLICT)


class RecordNotFoundError(DatabaseError):
    code = "NOT_FOUND"

    def __init__(self, detail: str = "Record not found") -> None:
        super().__init__(detail, HTTP_404_NOT_FOUND)


database_exception_handler = create_exception_handler(logger)
