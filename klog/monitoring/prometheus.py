"""
Prometheus metrics for the media cleanup pipeline.

HTTP request metrics come from prometheus-fastapi-instrumentator; the
counters below track the file deletion queue, its consumer and the orphan
sweep. Labels are bounded enums only, never paths or ids.

Examples
--------
>>> from klog.monitoring.prometheus import metrics
>>> metrics.record_delete_published("queued")
"""

from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest
from prometheus_fastapi_instrumentator import Instrumentator

from klog.configs import settings


class MetricsCollector:
    """
    Custom Prometheus metrics.

    Attributes
    ----------
    file_delete_published_total : Counter
        Delete tasks handed off, by delivery mode (queued, fallback)
    file_delete_outcomes_total : Counter
        Consumer outcomes per message (deleted, retried, dropped, malformed, failed)
    file_delete_terminal_failures_total : Counter
        Delete tasks dropped after exhausting retries
    orphan_sweep_files_total : Counter
        Files touched by the orphan sweep, by result
    rate_limit_hits_total : Counter
        Requests rejected by the rate limiter
    """

    def __init__(self) -> None:
        self.file_delete_published_total = Counter(
            "klog_file_delete_published_total",
            "Total number of file delete tasks published",
            ["mode"],
        )
        self.file_delete_outcomes_total = Counter(
            "klog_file_delete_outcomes_total",
            "Total number of file delete messages processed by outcome",
            ["outcome"],
        )
        self.file_delete_terminal_failures_total = Counter(
            "klog_file_delete_terminal_failures_total",
            "Total number of file delete tasks dropped after the retry cap",
        )
        self.orphan_sweep_files_total = Counter(
            "klog_orphan_sweep_files_total",
            "Total number of files handled by the orphan sweep",
            ["result"],
        )
        self.rate_limit_hits_total = Counter(
            "klog_rate_limit_hits_total",
            "Total number of rate limit hits",
        )

    def record_delete_published(self, mode: str) -> None:
        self.file_delete_published_total.labels(mode=mode).inc()

    def record_delete_outcome(self, outcome: str) -> None:
        self.file_delete_outcomes_total.labels(outcome=outcome).inc()

    def record_terminal_failure(self) -> None:
        """Record a delete task dropped after its last attempt."""
        self.file_delete_terminal_failures_total.inc()

    def record_sweep(self, *, deleted: int, failed: int, skipped_recent: int) -> None:
        """Record the file counts of one orphan sweep run."""
        for result, count in (
            ("deleted", deleted),
            ("failed", failed),
            ("skipped_recent", skipped_recent),
        ):
            if count:
                self.orphan_sweep_files_total.labels(result=result).inc(count)

    def record_rate_limit_hit(self) -> None:
        self.rate_limit_hits_total.inc()


# Global metrics collector instance
metrics = MetricsCollector()


def setup_prometheus(app: FastAPI) -> Instrumentator:
    """
    Set up Prometheus HTTP instrumentation for the FastAPI app.

    Args:
        app: The FastAPI application instance.

    Returns:
        Configured Instrumentator instance.
    """
    instrumentator = Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        should_respect_env_var=False,
        excluded_handlers=["/metrics", "/health"],
    )
    if settings.ENABLE_METRICS:
        instrumentator.instrument(app)
    return instrumentator


def generate_metrics_response() -> tuple[bytes, str]:
    """
    Generate Prometheus metrics response.

    Returns:
        Tuple of (metrics_bytes, content_type).
    """
    return generate_latest(), CONTENT_TYPE_LATEST
