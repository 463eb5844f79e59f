from time import perf_counter
from unittest.mock import MagicMock

from klog.utils.helpers import host, time_taken, today_str


def test_host_with_and_without_client() -> None:
    request = MagicMock()
    request.client.host = "10.1.2.3"
    assert host(request) == "10.1.2.3"

    request.client = None
    assert host(request) == "unknown"


def test_time_taken_short_run() -> None:
    assert time_taken(perf_counter()).endswith("s")
    assert time_taken(perf_counter() - 125).startswith("2m ")


def test_today_str_has_offset() -> None:
    date, time, offset = today_str().split(" ")
    assert len(date) == 10
    assert len(time) == 8
    assert offset[0] in "+-"
