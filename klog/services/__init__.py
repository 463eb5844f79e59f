from klog.services.media import FileData, MediaService
from klog.services.orphan_sweep import OrphanSweep, SweepStats
from klog.services.post import CursorPage, PostService

__all__ = ["CursorPage", "FileData", "MediaService", "OrphanSweep", "PostService", "SweepStats"]
