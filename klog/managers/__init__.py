"""Managers for background work, caching, rate limiting and tokens."""

from klog.managers.cache_manager import CacheManager
from klog.managers.file_consumer import FileDeleteConsumer
from klog.managers.file_queue import (
    DeleteTask,
    DeliveryMode,
    FileDeleteQueue,
    RetryPolicy,
    delete_file,
)
from klog.managers.rate_limiter import IPRateLimiter, RateDecision
from klog.managers.scheduler import Scheduler

__all__ = [
    "CacheManager",
    "DeleteTask",
    "DeliveryMode",
    "FileDeleteConsumer",
    "FileDeleteQueue",
    "IPRateLimiter",
    "RateDecision",
    "RetryPolicy",
    "Scheduler",
    "delete_file",
]
