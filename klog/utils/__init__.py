"""Cursor codec, patch presence values, cache keys and small helpers."""

from klog.utils.cache_keys import POSTS_NAMESPACE, post_slug_key
from klog.utils.helpers import host, time_taken, today_str

__all__ = ["POSTS_NAMESPACE", "host", "post_slug_key", "time_taken", "today_str"]
