"""Redis stream consumer executing file delete tasks."""

from asyncio import Event, wait_for
from logging import getLogger
from os import getpid
from socket import gethostname

from redis.exceptions import RedisError

from klog.clients.protocols import StreamBrokerProtocol
from klog.configs import file_logger, settings
from klog.errors import BASE_EXCEPTION
from klog.managers.file_queue import (
    DeleteTask,
    FileDeleteQueue,
    MalformedTaskError,
    RetryPolicy,
    delete_file,
)
from klog.monitoring.prometheus import metrics

logger = file_logger(getLogger(__name__))

ERROR_BACKOFF_SECONDS = 1.0


def default_consumer_name() -> str:
    """Name unique per process, so several workers can share one group."""
    return f"{gethostname()}-{getpid()}"


async def sleep_or_stop(stop: Event, seconds: float) -> bool:
    """
    Sleep unless ``stop`` is set first.

    Returns:
        bool: True if the stop event fired during the wait.
    """
    if seconds <= 0:
        return stop.is_set()
    try:
        await wait_for(stop.wait(), timeout=seconds)
    except TimeoutError:
        return False
    return True


class FileDeleteConsumer:
    """
    Consumer-group reader of the file delete stream.

    Every entry is acknowledged exactly once, whatever its outcome:

    - malformed payload: logged and acknowledged
    - file removed (or already missing): acknowledged
    - removal failed with retries left: a copy with ``retry_count + 1`` is
      re-published after the backoff delay, then the original is acknowledged
    - removal failed on the last attempt: logged, counted as a terminal
      failure and acknowledged

    A file is therefore attempted at most ``policy.max_attempts`` times.
    """

    def __init__(
        self,
        broker: StreamBrokerProtocol,
        queue: FileDeleteQueue,
        *,
        group: str = settings.FILE_DELETE_GROUP,
        consumer_name: str | None = settings.FILE_DELETE_CONSUMER,
        batch_size: int = settings.FILE_DELETE_BATCH_SIZE,
        block_ms: int = settings.FILE_DELETE_BLOCK_MS,
        error_backoff: float = ERROR_BACKOFF_SECONDS,
        policy: RetryPolicy | None = None,
    ) -> None:
        self.broker = broker
        self.queue = queue
        self.stream = queue.stream
        self.group = group
        self.consumer_name = consumer_name or default_consumer_name()
        self.batch_size = batch_size
        self.block_ms = block_ms
        self.error_backoff = error_backoff
        self.policy = policy or queue.policy

    async def ensure_group(self) -> None:
        await self.broker.ensure_group(self.stream, self.group)

    async def run(self, stop: Event) -> None:
        """
        Consume until ``stop`` is set.

        Broker errors are logged and retried after a short backoff; an entry
        that fails unexpectedly is logged and acknowledged as ``failed``. Once
        ``stop`` is set no new batch is read; the batch in hand is finished,
        so the loop exits within one block interval.
        """
        logger.info(f"File delete consumer {self.consumer_name} starting on {self.stream}")
        while not stop.is_set():
            try:
                await self.ensure_group()
                break
            except (RedisError,) + BASE_EXCEPTION:
                logger.exception("Could not create consumer group, retrying")
                if await sleep_or_stop(stop, self.error_backoff):
                    return

        while not stop.is_set():
            try:
                messages = await self.broker.xreadgroup(
                    self.stream,
                    self.group,
                    self.consumer_name,
                    self.batch_size,
                    self.block_ms,
                )
            except (RedisError,) + BASE_EXCEPTION as e:
                logger.error(f"Failed to read delete tasks: {e}")
                await sleep_or_stop(stop, self.error_backoff)
                continue

            for message_id, fields in messages:
                await self._process_safely(message_id, fields, stop)

        logger.info(f"File delete consumer {self.consumer_name} stopped")

    async def process_message(
        self,
        message_id: str,
        fields: dict[str, str],
        stop: Event | None = None,
    ) -> str:
        """
        Handle one stream entry and acknowledge it.

        Args:
            message_id: Stream entry id.
            fields: Stream entry fields.
            stop: Shutdown signal; cuts the retry backoff short.

        Returns:
            str: Outcome label (deleted, retried, dropped, malformed).
        """
        try:
            task = DeleteTask.from_fields(fields)
        except MalformedTaskError as e:
            logger.error(f"Discarding malformed delete task {message_id}: {e}")
            return await self._finish(message_id, "malformed")

        try:
            await delete_file(task.file_path)
        except OSError as e:
            if task.retry_count >= self.policy.max_retries:
                logger.error(
                    f"Giving up deleting {task.file_path} after "
                    f"{task.retry_count + 1} attempts: {e}",
                )
                metrics.record_terminal_failure()
                return await self._finish(message_id, "dropped")

            retry = task.next_retry()
            logger.warning(
                f"Failed to delete {task.file_path} "
                f"(retry {retry.retry_count}/{self.policy.max_retries}): {e}",
            )
            await sleep_or_stop(stop or Event(), self.policy.delay_for(retry.retry_count))
            try:
                await self.queue.publish(retry)
            except (RedisError,) + BASE_EXCEPTION:
                logger.exception(f"Failed to re-publish delete task for {task.file_path}")
            return await self._finish(message_id, "retried")

        logger.info(f"Deleted file {task.file_path}")
        return await self._finish(message_id, "deleted")

    async def _process_safely(self, message_id: str, fields: dict[str, str], stop: Event) -> str:
        # One bad entry must not end the loop; it is logged and acknowledged
        try:
            return await self.process_message(message_id, fields, stop)
        except Exception:
            logger.exception(f"Unexpected error handling delete task {message_id}")
            return await self._finish(message_id, "failed")

    async def _finish(self, message_id: str, outcome: str) -> str:
        metrics.record_delete_outcome(outcome)
        try:
            await self.broker.xack(self.stream, self.group, message_id)
        except (RedisError,) + BASE_EXCEPTION:
            logger.exception(f"Failed to acknowledge delete task {message_id}")
        return outcome
