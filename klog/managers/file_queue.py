"""
Deferred file deletion.

Deleting a media record must not wait on, or fail because of, removing its
file. The record is committed first; the file path is then handed to
:class:`FileDeleteQueue`, which appends a delete task to a Redis stream when
a broker is available and otherwise deletes the file in a background task
with the same retry policy. Publishing never raises: the worst outcome is an
orphaned file, which the periodic orphan sweep removes.
"""

from asyncio import Task, create_task, gather
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from enum import StrEnum
from logging import getLogger
from os import PathLike
from typing import Self

from anyio import Path
from orjson import JSONDecodeError, dumps, loads
from redis.exceptions import RedisError

from klog.clients.protocols import StreamBrokerProtocol
from klog.configs import file_logger, settings
from klog.decorators import with_retry
from klog.errors import BASE_EXCEPTION
from klog.monitoring.prometheus import metrics

logger = file_logger(getLogger(__name__))

TASK_FIELD = "task"


class DeliveryMode(StrEnum):
    """How a delete task was handed off."""

    QUEUED = "queued"
    FALLBACK = "fallback"


class MalformedTaskError(ValueError):
    """Raised when a stream entry does not hold a valid delete task."""


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """
    Retry limits shared by the stream consumer and the in-process fallback.

    A task is attempted once and retried up to ``max_retries`` times. The
    wait before retry ``n`` (1-based) is ``base_delay * 2 ** (n - 1)``,
    capped at ``max_delay``.
    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 8.0

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay_for(self, retry_count: int) -> float:
        """Seconds to wait before the attempt following ``retry_count`` failures."""
        return min(self.base_delay * 2 ** max(retry_count - 1, 0), self.max_delay)

    @classmethod
    def from_settings(cls) -> Self:
        return cls(
            max_retries=settings.FILE_DELETE_MAX_RETRIES,
            base_delay=settings.FILE_DELETE_BASE_DELAY,
            max_delay=settings.FILE_DELETE_MAX_DELAY,
        )


@dataclass(frozen=True, slots=True)
class DeleteTask:
    """
    A request to remove one file.

    Attributes
    ----------
        file_path: Filesystem path of the file.
        timestamp: When the task was first published.
        retry_count: Failed attempts so far.
    """

    file_path: str
    timestamp: datetime
    retry_count: int = 0

    @classmethod
    def new(cls, file_path: str | PathLike[str]) -> Self:
        return cls(file_path=str(file_path), timestamp=datetime.now(tz=UTC))

    def next_retry(self) -> "DeleteTask":
        return replace(self, retry_count=self.retry_count + 1)

    def to_fields(self) -> dict[str, str]:
        """Serialize into stream entry fields."""
        payload = {
            "file_path": self.file_path,
            "timestamp": self.timestamp.isoformat(),
            "retry_count": self.retry_count,
        }
        return {TASK_FIELD: dumps(payload).decode("utf-8")}

    @classmethod
    def from_fields(cls, fields: dict[str, str]) -> Self:
        """
        Parse stream entry fields.

        Raises:
            MalformedTaskError: If the entry is missing or holds invalid data.
        """
        raw = fields.get(TASK_FIELD)
        if raw is None:
            mssg = f"Missing '{TASK_FIELD}' field"
            raise MalformedTaskError(mssg)
        try:
            payload = loads(raw)
            file_path = payload["file_path"]
            retry_count = payload.get("retry_count", 0)
            timestamp = datetime.fromisoformat(payload["timestamp"])
        except (JSONDecodeError, KeyError, TypeError, ValueError) as e:
            mssg = f"Invalid delete task payload: {e}"
            raise MalformedTaskError(mssg) from e
        if not isinstance(file_path, str) or not file_path:
            mssg = "Delete task has no file path"
            raise MalformedTaskError(mssg)
        if "\x00" in file_path:
            mssg = f"Delete task file path contains a NUL byte: {file_path!r}"
            raise MalformedTaskError(mssg)
        if not isinstance(retry_count, int) or retry_count < 0:
            mssg = f"Invalid retry count: {retry_count!r}"
            raise MalformedTaskError(mssg)
        return cls(file_path=file_path, timestamp=timestamp, retry_count=retry_count)


async def delete_file(path: str | PathLike[str]) -> bool:
    """
    Remove a file. A missing file counts as success.

    Returns:
        bool: True if the file was removed, False if it did not exist.

    Raises:
        OSError: If the file exists but could not be removed.
        ValueError: If the path is not a valid filesystem path.
    """
    try:
        await Path(path).unlink()
    except FileNotFoundError:
        return False
    return True


class FileDeleteQueue:
    """
    Publisher of file delete tasks with an in-process fallback.

    Attributes:
        broker: Stream broker, ``None`` when Redis is not configured.
        stream: Stream the tasks are appended to.
        policy: Retry policy for the fallback path.
    """

    def __init__(
        self,
        broker: StreamBrokerProtocol | None = None,
        stream: str = settings.FILE_DELETE_STREAM,
        policy: RetryPolicy | None = None,
    ) -> None:
        self.broker = broker
        self.stream = stream
        self.policy = policy or RetryPolicy.from_settings()
        self._fallback_tasks: set[Task[bool]] = set()

    @property
    def pending(self) -> int:
        """Number of fallback deletions still running."""
        return len(self._fallback_tasks)

    async def publish(self, task: DeleteTask) -> str:
        """
        Append a task to the stream.

        Raises:
            RuntimeError: If no broker is configured.
            RedisError: If the broker rejects the entry.
        """
        if self.broker is None:
            mssg = "No stream broker configured"
            raise RuntimeError(mssg)
        return await self.broker.xadd(self.stream, task.to_fields())

    async def publish_delete_task(self, file_path: str | PathLike[str]) -> DeliveryMode:
        """
        Hand a file off for deletion. Never raises.

        Args:
            file_path: Filesystem path of the file to remove.

        Returns:
            DeliveryMode: ``QUEUED`` if the task reached the stream,
            ``FALLBACK`` if it is being deleted in-process instead.
        """
        task = DeleteTask.new(file_path)
        if self.broker is not None:
            try:
                message_id = await self.publish(task)
            except (RedisError,) + BASE_EXCEPTION:
                logger.exception(
                    f"Failed to publish delete task for {task.file_path}, deleting in-process",
                )
            else:
                logger.info(f"Delete task {message_id} queued for {task.file_path}")
                metrics.record_delete_published(DeliveryMode.QUEUED)
                return DeliveryMode.QUEUED

        self._start_fallback(task.file_path)
        metrics.record_delete_published(DeliveryMode.FALLBACK)
        return DeliveryMode.FALLBACK

    def _start_fallback(self, file_path: str) -> None:
        background = create_task(self._delete_with_retry(file_path))
        # The set holds a strong reference until the task finishes
        self._fallback_tasks.add(background)
        background.add_done_callback(self._fallback_tasks.discard)

    async def _delete_with_retry(self, file_path: str) -> bool:
        """Delete with the shared retry policy; log instead of raising."""
        retrying_delete = with_retry(
            max_attempts=self.policy.max_attempts,
            base_delay=self.policy.base_delay,
            max_delay=self.policy.max_delay,
        )(delete_file)
        try:
            deleted = await retrying_delete(file_path)
        except (OSError, ValueError):
            logger.exception(
                f"Giving up deleting {file_path} after {self.policy.max_attempts} attempts",
            )
            metrics.record_terminal_failure()
            return False
        logger.info(f"Deleted {file_path}" if deleted else f"Already gone: {file_path}")
        return True

    async def drain(self) -> None:
        """Wait for every in-flight fallback deletion to finish."""
        if self._fallback_tasks:
            await gather(*self._fallback_tasks)
