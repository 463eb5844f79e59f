from logging import getLogger
from math import ceil

from starlette.status import HTTP_429_TOO_MANY_REQUESTS

from klog.configs import file_logger
from klog.errors.base import BaseAppError, create_exception_handler

logger = file_logger(getLogger(__name__))


class RateLimitExceededError(BaseAppError):
    """Raised when a client's token bucket is empty."""

    code = "RATE_LIMIT_EXCEEDED"

    def __init__(self, retry_after: float = 1.0) -> None:
        super().__init__("Too many requests, please retry later", HTTP_429_TOO_MANY_REQUESTS)
        self.retry_after = round(retry_after, 3)

    @property
    def headers(self) -> dict[str, str]:
        return {"Retry-After": str(max(ceil(self.retry_after), 1))}


rate_limit_exception_handler = create_exception_handler(logger)
