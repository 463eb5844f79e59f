"""Small request and clock helpers shared by logging, errors and jobs."""

from datetime import datetime
from time import perf_counter

from fastapi import Request

UNKNOWN_CLIENT = "unknown"


def host(request: Request) -> str:
    """Client address of a request, after proxy header rewriting."""
    client = request.client
    return client.host if client else UNKNOWN_CLIENT


def today_str() -> str:
    """Local wall-clock time with offset, e.g. ``2024-05-06 07:08:09 +0200``."""
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S %z")


def time_taken(start_time: float) -> str:
    """Elapsed time since a ``perf_counter`` reading, e.g. ``1m 05.2s``."""
    minutes, seconds = divmod(perf_counter() - start_time, 60)
    return f"{int(minutes)}m {seconds:04.1f}s" if minutes else f"{seconds:.1f}s"
