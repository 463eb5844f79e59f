from klog.errors.base import BASE_EXCEPTION, BaseAppError, create_exception_handler
from klog.errors.database import (
    DatabaseConnectionError,
    DatabaseError,
    DuplicateEntryError,
    RecordNotFoundError,
    database_exception_handler,
)
from klog.errors.media import (
    FileTooLargeError,
    InvalidFileNameError,
    InvalidFileTypeError,
    InvalidImageError,
    MediaAccessDeniedError,
    MediaError,
    MediaNotFoundError,
    media_exception_handler,
)
from klog.errors.pagination import (
    CursorMismatchError,
    InvalidCursorError,
    PaginationError,
    UnsupportedSortFieldError,
    pagination_exception_handler,
)
from klog.errors.rate_limit import RateLimitExceededError, rate_limit_exception_handler

__all__ = [
    "BASE_EXCEPTION",
    "BaseAppError",
    "create_exception_handler",
    "DatabaseConnectionError",
    "DatabaseError",
    "DuplicateEntryError",
    "RecordNotFoundError",
    "database_exception_handler",
    "FileTooLargeError",
    "InvalidFileNameError",
    "InvalidFileTypeError",
    "InvalidImageError",
    "MediaAccessDeniedError",
    "MediaError",
    "MediaNotFoundError",
    "media_exception_handler",
    "CursorMismatchError",
    "InvalidCursorError",
    "PaginationError",
    "UnsupportedSortFieldError",
    "pagination_exception_handler",
    "RateLimitExceededError",
    "rate_limit_exception_handler",
]
