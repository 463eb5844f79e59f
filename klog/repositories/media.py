"""Media repository for database operations."""

from sqlalchemy import select

from klog.models import MediaDB
from klog.repositories.base import BaseRepository


class MediaRepository(BaseRepository[MediaDB]):
    """Repository for uploaded media records."""

    model = MediaDB

    async def get_by_hash(self, file_hash: str) -> MediaDB | None:
        """Find an existing upload with the same content hash."""
        result = await self.session.execute(
            select(MediaDB)
            .where(MediaDB.file_hash == file_hash)
            .order_by(MediaDB.id)
            .limit(1),
        )
        return result.scalar_one_or_none()

    async def get_all_file_paths(self) -> set[str]:
        """
        Return every referenced file path.

        Returns:
            set[str]: Paths relative to the media root, posix separators.
        """
        result = await self.session.execute(select(MediaDB.file_path))
        return set(result.scalars().all())
