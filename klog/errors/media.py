"""
Media-related error classes.

This module defines custom exceptions for media upload, lookup and
file access operations.
"""

from logging import getLogger

from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
    HTTP_413_REQUEST_ENTITY_TOO_LARGE,
    HTTP_415_UNSUPPORTED_MEDIA_TYPE,
    HTTP_500_INTERNAL_SERVER_ERROR,
)

from klog.configs import file_logger
from klog.errors.base import BaseAppError, create_exception_handler

logger = file_logger(getLogger(__name__))


class MediaError(BaseAppError):
    """Base exception for media errors."""

    code = "MEDIA_ERROR"

    def __init__(
        self,
        detail: str = "We couldn't process your file. Please try again.",
        status_code: int = HTTP_500_INTERNAL_SERVER_ERROR,
    ) -> None:
        super().__init__(detail=detail, status_code=status_code)


class MediaNotFoundError(MediaError):
    """Exception raised when a media record or file does not exist."""

    code = "MEDIA_NOT_FOUND"

    def __init__(self, detail: str = "Media file not found") -> None:
        super().__init__(detail=detail, status_code=HTTP_404_NOT_FOUND)


class InvalidFileTypeError(MediaError):
    """Exception raised when an uploaded file type is not allowed."""

    code = "INVALID_FILE_TYPE"

    def __init__(self, file_type: str, allowed_types: list[str] | None = None) -> None:
        super().__init__(
            detail=f"Unsupported file type: {file_type}",
            status_code=HTTP_415_UNSUPPORTED_MEDIA_TYPE,
        )
        self.file_type = file_type
        self.allowed_types = allowed_types or []


class FileTooLargeError(MediaError):
    """Exception raised when an uploaded file exceeds the size limit."""

    code = "FILE_TOO_LARGE"

    def __init__(self, max_size_mb: int, actual_size_mb: float | None = None) -> None:
        detail = f"File is too large. Please use a file smaller than {max_size_mb}MB."
        if actual_size_mb is not None:
            detail += f" Your file is {actual_size_mb:.1f}MB."
        super().__init__(detail=detail, status_code=HTTP_413_REQUEST_ENTITY_TOO_LARGE)
        self.max_size_mb = max_size_mb


class InvalidImageError(MediaError):
    """Exception raised when an image payload cannot be decoded."""

    code = "INVALID_IMAGE"

    def __init__(self, detail: str = "Invalid or corrupted image file") -> None:
        super().__init__(detail=detail, status_code=HTTP_400_BAD_REQUEST)


class InvalidFileNameError(MediaError):
    """Exception raised when a requested file name is not a plain name."""

    code = "INVALID_FILE_NAME"

    def __init__(self, detail: str = "Invalid file name") -> None:
        super().__init__(detail=detail, status_code=HTTP_400_BAD_REQUEST)


class MediaAccessDeniedError(MediaError):
    """Exception raised when a requested path escapes the media root."""

    code = "ACCESS_DENIED"

    def __init__(self, detail: str = "Access denied") -> None:
        super().__init__(detail=detail, status_code=HTTP_403_FORBIDDEN)


media_exception_handler = create_exception_handler(logger)
