"""
Orphan file sweep.

Removes files under the media root that no ``media`` record references. It
is the backstop for deletions whose delete task was lost or dropped, and for
uploads whose record was never committed.
"""

from asyncio import to_thread
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from logging import getLogger
from os import walk
from pathlib import Path
from time import time

from anyio import Path as AsyncPath
from sqlalchemy.ext.asyncio import AsyncSession

from klog.configs import file_logger, settings
from klog.managers.file_queue import delete_file
from klog.monitoring.prometheus import metrics
from klog.repositories import MediaRepository

logger = file_logger(getLogger(__name__))

type SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


@dataclass(slots=True)
class SweepStats:
    """Counters of one sweep run."""

    scanned: int = 0
    orphans_found: int = 0
    deleted: int = 0
    failed: int = 0
    skipped_recent: int = 0


def scan_files(root: Path) -> list[Path]:
    """
    List every regular file below ``root``.

    Unreadable directories are logged and skipped. A missing root yields
    no files.
    """

    def on_error(error: OSError) -> None:
        logger.warning(f"Cannot scan {error.filename}: {error.strerror}")

    files: list[Path] = []
    for dirpath, _dirnames, filenames in walk(root, onerror=on_error):
        files.extend(Path(dirpath) / name for name in filenames)
    return files


class OrphanSweep:
    """
    Deletes unreferenced files under the media root.

    Files modified less than ``grace_seconds`` ago are left alone, since
    their record may not be committed yet. A grace of 0 sweeps everything.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        media_root: Path | None = None,
        grace_seconds: float = settings.MEDIA_ORPHAN_GRACE_SECONDS,
    ) -> None:
        self.session_factory = session_factory
        self.media_root = Path(media_root or settings.MEDIA_DIR)
        self.grace_seconds = grace_seconds

    async def referenced_paths(self) -> set[str]:
        async with self.session_factory() as session:
            return await MediaRepository(session).get_all_file_paths()

    async def execute(self) -> SweepStats:
        """
        Run one sweep.

        Per-file failures are counted and the sweep moves on. A failure to
        read the referenced paths aborts the run before anything is deleted.

        Returns:
            SweepStats: What the run scanned, found and removed.
        """
        stats = SweepStats()
        if not await AsyncPath(self.media_root).is_dir():
            logger.warning(f"Media root {self.media_root} does not exist, nothing to sweep")
            return stats

        files = await to_thread(scan_files, self.media_root)
        stats.scanned = len(files)
        referenced = await self.referenced_paths()
        logger.info(f"Sweep scanned {stats.scanned} files, {len(referenced)} referenced")

        cutoff = time() - self.grace_seconds
        for path in files:
            relative = path.relative_to(self.media_root).as_posix()
            if relative in referenced:
                continue
            stats.orphans_found += 1
            await self._remove(path, relative, cutoff, stats)

        metrics.record_sweep(
            deleted=stats.deleted,
            failed=stats.failed,
            skipped_recent=stats.skipped_recent,
        )
        logger.info(
            f"Sweep finished: scanned={stats.scanned} orphans={stats.orphans_found} "
            f"deleted={stats.deleted} failed={stats.failed} "
            f"skipped_recent={stats.skipped_recent}",
        )
        return stats

    async def _remove(self, path: Path, relative: str, cutoff: float, stats: SweepStats) -> None:
        try:
            if self.grace_seconds > 0:
                modified = (await AsyncPath(path).stat()).st_mtime
                if modified > cutoff:
                    stats.skipped_recent += 1
                    return
            await delete_file(path)
        except OSError as e:
            logger.error(f"Failed to delete orphan {relative}: {e}")
            stats.failed += 1
            return
        logger.info(f"Deleted orphan {relative}")
        stats.deleted += 1
