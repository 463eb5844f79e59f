#!/usr/bin/env python3
"""
Run Orphan Sweep Script.

Runs one orphan file sweep against the configured database and media root,
for hosts that schedule maintenance with cron instead of the in-process
scheduler.

Usage:
    uv run python auto/run_sweep.py
    uv run python auto/run_sweep.py --grace 0
"""

from argparse import ArgumentParser, Namespace
from asyncio import run as asyncio_run
from dataclasses import asdict
from logging import getLogger
from pathlib import Path
from sys import exit as sys_exit
from sys import path as sys_path

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys_path.insert(0, str(project_root))

from klog.configs import file_logger, settings  # noqa: E402
from klog.db import async_session_maker, close_db  # noqa: E402
from klog.monitoring import configure_logging  # noqa: E402
from klog.services import OrphanSweep  # noqa: E402

logger = file_logger(getLogger(__name__))


def parse_args() -> Namespace:
    parser = ArgumentParser(description="Delete unreferenced media files")
    parser.add_argument(
        "--grace",
        type=float,
        default=settings.MEDIA_ORPHAN_GRACE_SECONDS,
        help="Skip files modified within this many seconds",
    )
    return parser.parse_args()


async def run(grace: float) -> int:
    sweep = OrphanSweep(async_session_maker, grace_seconds=grace)
    try:
        stats = await sweep.execute()
    finally:
        await close_db()
    logger.info(f"Sweep stats: {asdict(stats)}")
    return 1 if stats.failed else 0


def main() -> None:
    configure_logging()
    args = parse_args()
    sys_exit(asyncio_run(run(args.grace)))


if __name__ == "__main__":
    main()
