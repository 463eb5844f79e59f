"""Tenacity-based retry decorator for async callables."""

from collections.abc import Awaitable, Callable
from logging import getLogger

from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from klog.configs import file_logger

logger = file_logger(getLogger(__name__))

RETRIABLE_EXCEPTIONS: tuple[type[Exception], ...] = (OSError,)


def _log_retry(max_attempts: int) -> Callable[[RetryCallState], None]:
    """Build a ``before_sleep`` hook that logs the failed attempt and the wait."""

    def hook(state: RetryCallState) -> None:
        error = state.outcome.exception() if state.outcome else None
        wait = state.next_action.sleep if state.next_action else 0.0
        name = getattr(state.fn, "__name__", "call")
        logger.warning(
            "%s failed (attempt %d of %d), next try in %.2fs: %r",
            name,
            state.attempt_number,
            max_attempts,
            wait,
            error,
        )

    return hook


def with_retry[**P, T](
    max_attempts: int = 4,
    base_delay: float = 1.0,
    max_delay: float = 8.0,
    exec_retry: tuple[type[Exception], ...] = RETRIABLE_EXCEPTIONS,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """
    Retry an async function on ``exec_retry`` errors with exponential backoff.

    ``max_attempts`` counts the first call. Retry ``n`` waits
    ``base_delay * 2 ** (n - 1)`` seconds, at most ``max_delay``; after the
    last attempt the original exception propagates.
    """
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=base_delay, min=base_delay, max=max_delay),
        retry=retry_if_exception_type(exec_retry),
        before_sleep=_log_retry(max_attempts),
        reraise=True,
    )
