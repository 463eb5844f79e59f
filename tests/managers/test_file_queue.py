from datetime import UTC, datetime
from pathlib import Path
from os import PathLike
from unittest.mock import patch

import pytest
from orjson import loads
from prometheus_client import REGISTRY

from doubles import MemoryStreamBroker
from klog.managers.file_queue import (
    TASK_FIELD,
    DeleteTask,
    DeliveryMode,
    FileDeleteQueue,
    MalformedTaskError,
    RetryPolicy,
    delete_file,
)

NO_WAIT = RetryPolicy(max_retries=3, base_delay=0, max_delay=0)


def _terminal_failures() -> float:
    return REGISTRY.get_sample_value("klog_file_delete_terminal_failures_total") or 0.0


def test_retry_policy_delays_double_and_cap() -> None:
    policy = RetryPolicy(max_retries=5, base_delay=1.0, max_delay=8.0)
    assert policy.max_attempts == 6
    assert [policy.delay_for(n) for n in range(6)] == [1.0, 1.0, 2.0, 4.0, 8.0, 8.0]


def test_task_fields_round_trip() -> None:
    task = DeleteTask("/media/a.png", datetime(2024, 1, 1, tzinfo=UTC), retry_count=2)
    fields = task.to_fields()

    assert loads(fields[TASK_FIELD])["file_path"] == "/media/a.png"
    assert DeleteTask.from_fields(fields) == task
    assert task.next_retry().retry_count == 3


@pytest.mark.parametrize(
    "fields",
    [
        {},
        {TASK_FIELD: "not json"},
        {TASK_FIELD: '{"timestamp": "2024-01-01T00:00:00+00:00"}'},
        {TASK_FIELD: '{"file_path": "", "timestamp": "2024-01-01T00:00:00+00:00"}'},
        {TASK_FIELD: '{"file_path": "/a\\u0000b", "timestamp": "2024-01-01T00:00:00+00:00"}'},
        {TASK_FIELD: '{"file_path": "/a", "timestamp": "yesterday"}'},
        {TASK_FIELD: '{"file_path": "/a", "timestamp": "2024-01-01T00:00:00", "retry_count": -1}'},
    ],
)
def test_malformed_fields_are_rejected(fields: dict[str, str]) -> None:
    with pytest.raises(MalformedTaskError):
        DeleteTask.from_fields(fields)


async def test_delete_file_is_idempotent(tmp_path: Path) -> None:
    target = tmp_path / "a.png"
    target.write_bytes(b"x")

    assert await delete_file(target) is True
    assert not target.exists()
    assert await delete_file(target) is False


async def test_publish_queues_when_broker_accepts(
    broker: MemoryStreamBroker,
    tmp_path: Path,
) -> None:
    queue = FileDeleteQueue(broker, stream="test:stream", policy=NO_WAIT)

    mode = await queue.publish_delete_task(tmp_path / "a.png")

    assert mode == DeliveryMode.QUEUED
    assert len(broker.entries) == 1
    task = DeleteTask.from_fields(broker.entries[0][1])
    assert task.file_path == str(tmp_path / "a.png")
    assert task.retry_count == 0
    assert queue.pending == 0


async def test_publish_falls_back_without_broker(tmp_path: Path) -> None:
    target = tmp_path / "a.png"
    target.write_bytes(b"x")
    queue = FileDeleteQueue(None, policy=NO_WAIT)

    mode = await queue.publish_delete_task(target)
    await queue.drain()

    assert mode == DeliveryMode.FALLBACK
    assert not target.exists()
    assert queue.pending == 0


async def test_publish_falls_back_when_broker_fails(
    broker: MemoryStreamBroker,
    tmp_path: Path,
) -> None:
    target = tmp_path / "a.png"
    target.write_bytes(b"x")
    broker.fail_xadd = True
    queue = FileDeleteQueue(broker, policy=NO_WAIT)

    mode = await queue.publish_delete_task(target)
    await queue.drain()

    assert mode == DeliveryMode.FALLBACK
    assert broker.entries == []
    assert not target.exists()


async def test_fallback_gives_up_after_max_attempts(tmp_path: Path) -> None:
    queue = FileDeleteQueue(None, policy=NO_WAIT)
    attempts: list[str] = []

    async def always_fails(path: str | PathLike[str]) -> bool:
        attempts.append(str(path))
        mssg = "read-only"
        raise PermissionError(mssg)

    before = _terminal_failures()
    with patch("klog.managers.file_queue.delete_file", always_fails):
        mode = await queue.publish_delete_task(tmp_path / "locked.png")
        await queue.drain()

    assert mode == DeliveryMode.FALLBACK
    assert len(attempts) == NO_WAIT.max_attempts
    assert _terminal_failures() == before + 1


async def test_fallback_recovers_from_transient_failure(tmp_path: Path) -> None:
    queue = FileDeleteQueue(None, policy=NO_WAIT)
    attempts: list[str] = []

    async def fails_once(path: str | PathLike[str]) -> bool:
        attempts.append(str(path))
        if len(attempts) == 1:
            mssg = "busy"
            raise OSError(mssg)
        return True

    before = _terminal_failures()
    with patch("klog.managers.file_queue.delete_file", fails_once):
        await queue.publish_delete_task(tmp_path / "busy.png")
        await queue.drain()

    assert len(attempts) == 2
    assert _terminal_failures() == before


async def test_publish_without_broker_raises() -> None:
    queue = FileDeleteQueue(None, policy=NO_WAIT)
    with pytest.raises(RuntimeError):
        await queue.publish(DeleteTask.new("/a"))


async def test_fallback_with_invalid_path_is_a_terminal_failure(tmp_path: Path) -> None:
    queue = FileDeleteQueue(None, policy=NO_WAIT)
    before = _terminal_failures()

    mode = await queue.publish_delete_task(tmp_path / "bad\x00.png")
    await queue.drain()

    assert mode == DeliveryMode.FALLBACK
    assert queue.pending == 0
    assert _terminal_failures() == before + 1
