"""
Monitoring and observability for the klog backend.

Usage
-----
>>> from klog.monitoring import configure_logging, metrics
>>> configure_logging()
>>> metrics.record_delete_published("queued")
"""

from klog.monitoring.logging import (
    bind_request_id,
    clear_context,
    configure_logging,
    get_logger,
    sanitize_headers,
    sanitize_log_message,
)
from klog.monitoring.prometheus import (
    generate_metrics_response,
    metrics,
    setup_prometheus,
)

__all__ = [
    "bind_request_id",
    "clear_context",
    "configure_logging",
    "get_logger",
    "sanitize_headers",
    "sanitize_log_message",
    "generate_metrics_response",
    "metrics",
    "setup_prometheus",
]
