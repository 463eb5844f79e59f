"""
Media upload service.

This module stores uploaded files under the media root, keeps one
``media`` record per distinct file content and hands file removal to the
delete queue when a record is deleted.
"""

from dataclasses import dataclass
from hashlib import md5
from io import BytesIO
from logging import getLogger
from pathlib import Path as SyncPath
from pathlib import PurePath
from uuid import uuid4

import aiofiles
from anyio import Path
from PIL import Image
from sqlalchemy.exc import SQLAlchemyError

from klog.configs import file_logger, settings
from klog.errors import (
    BASE_EXCEPTION,
    DatabaseError,
    FileTooLargeError,
    InvalidFileNameError,
    InvalidFileTypeError,
    InvalidImageError,
    MediaAccessDeniedError,
    MediaNotFoundError,
)
from klog.managers.file_queue import DeliveryMode, FileDeleteQueue, delete_file
from klog.models import MediaDB
from klog.repositories import MediaRepository
from klog.schemas.media import MediaResponse

logger = file_logger(getLogger(__name__))

MEDIA_URL_PREFIX = "/media/files"

# Formats Pillow cannot open
UNVERIFIABLE_TYPES = frozenset({"image/svg+xml"})

EXTENSION_ALIASES = {".jpeg": ".jpg"}


@dataclass(frozen=True, slots=True)
class FileData:
    """
    An uploaded file held in memory.

    Attributes
    ----------
        file_name: Name the client sent.
        content: File bytes.
        mime_type: Declared content type.
    """

    file_name: str
    content: bytes
    mime_type: str

    @property
    def size(self) -> int:
        return len(self.content)


def media_url(file_path: str) -> str:
    return f"{MEDIA_URL_PREFIX}/{file_path}"


def to_media_response(media: MediaDB) -> MediaResponse:
    """Convert a ``MediaDB`` row to its response model."""
    return MediaResponse(
        id=int(media.id),  # type: ignore[arg-type]
        file_name=media.file_name,
        file_path=media.file_path,
        url=media_url(media.file_path),
        file_hash=media.file_hash,
        mime_type=media.mime_type,
        size=media.size,
        created_at=media.created_at,
    )


class MediaService:
    """
    Service for managing uploaded media files.

    Handles validation, content de-duplication, storage on the local
    filesystem and deferred file removal.
    """

    def __init__(
        self,
        repo: MediaRepository,
        queue: FileDeleteQueue,
        media_root: SyncPath | None = None,
    ) -> None:
        """
        Initialize the media service.

        Args:
            repo: Media repository bound to the request session.
            queue: Delete queue used when a record is removed.
            media_root: Directory files are stored in, defaults to ``MEDIA_DIR``.
        """
        self.repo = repo
        self.queue = queue
        self.media_root = Path(media_root or settings.MEDIA_DIR)
        self.max_size_bytes = settings.MEDIA_MAX_FILE_SIZE_MB * 1024 * 1024
        self.allowed_types = settings.MEDIA_ALLOWED_TYPES

    def _validate_size(self, file: FileData) -> None:
        if file.size == 0:
            mssg = "Uploaded file is empty"
            raise InvalidImageError(mssg)
        if file.size > self.max_size_bytes:
            raise FileTooLargeError(
                max_size_mb=settings.MEDIA_MAX_FILE_SIZE_MB,
                actual_size_mb=file.size / (1024 * 1024),
            )

    def _validate_type(self, file: FileData) -> str:
        """
        Check the declared type and the file name extension.

        Returns:
            str: Extension the stored file gets.
        """
        allowed = list(self.allowed_types)
        extension = self.allowed_types.get(file.mime_type)
        if extension is None:
            raise InvalidFileTypeError(file.mime_type or "unknown", allowed)

        suffix = PurePath(file.file_name).suffix.lower()
        if EXTENSION_ALIASES.get(suffix, suffix) != extension:
            raise InvalidFileTypeError(suffix or "no extension", allowed)
        return extension

    def _validate_image_content(self, file: FileData) -> None:
        """Validate that the file decodes as an image."""
        if file.mime_type in UNVERIFIABLE_TYPES:
            return
        try:
            with Image.open(BytesIO(file.content)) as img:
                img.verify()
        except Exception as e:
            mssg = f"Invalid or corrupted image file: {e!s}"
            raise InvalidImageError(mssg) from e

    async def upload(self, file: FileData) -> tuple[MediaResponse, bool]:
        """
        Store an uploaded file.

        Identical content is stored once: a second upload of the same bytes
        returns the existing record. Each stored file gets a fresh name, so a
        pending delete task for an earlier copy of the same content never
        touches it.

        Args:
            file: The uploaded file.

        Returns:
            tuple: The media record and whether it was newly created.

        Raises:
            FileTooLargeError: If the file exceeds the size limit.
            InvalidFileTypeError: If the type or extension is not allowed.
            InvalidImageError: If the content is empty or not a valid image.
        """
        self._validate_size(file)
        extension = self._validate_type(file)
        self._validate_image_content(file)

        file_hash = md5(file.content, usedforsecurity=False).hexdigest()
        if existing := await self.repo.get_by_hash(file_hash):
            logger.info(f"Upload of {file.file_name} matches media {existing.id}")
            return to_media_response(existing), False

        file_path = f"{uuid4().hex}{extension}"
        target = self.media_root / file_path
        await self.media_root.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(target, "wb") as f:
            await f.write(file.content)

        try:
            media = await self.repo.create(
                {
                    "file_name": PurePath(file.file_name).name,
                    "file_path": file_path,
                    "file_hash": file_hash,
                    "mime_type": file.mime_type,
                    "size": file.size,
                },
            )
            await self.repo.session.commit()
        except (DatabaseError, SQLAlchemyError) + BASE_EXCEPTION:
            logger.exception(f"Failed to record upload {file_path}, removing file")
            await delete_file(target)
            raise

        logger.info(f"Stored media {media.id} at {file_path}")
        return to_media_response(media), True

    async def list_media(self, skip: int = 0, limit: int = 10) -> tuple[list[MediaResponse], int]:
        """List media records, newest first, with the total count."""
        records = await self.repo.get_all(skip=skip, limit=limit)
        return [to_media_response(media) for media in records], await self.repo.count()

    async def delete(self, media_id: int) -> DeliveryMode:
        """
        Delete a media record, then its file.

        The record deletion is committed before the file is handed to the
        delete queue. A failed commit leaves both in place.

        Raises:
            MediaNotFoundError: If the record does not exist.
        """
        media = await self.repo.get_by_id(media_id)
        if media is None:
            mssg = f"Media with ID {media_id} not found"
            raise MediaNotFoundError(mssg)

        file_path = media.file_path
        await self.repo.delete(media_id)
        await self.repo.session.commit()

        mode = await self.queue.publish_delete_task(self.media_root / file_path)
        logger.info(f"Deleted media {media_id}, file removal {mode}")
        return mode

    async def resolve_file(self, file_name: str) -> Path:
        """
        Map a requested file name to a file under the media root.

        Raises:
            InvalidFileNameError: If the name is not a plain file name.
            MediaAccessDeniedError: If it resolves outside the root or to a directory.
            MediaNotFoundError: If no such file exists.
        """
        if not file_name or file_name in {".", ".."} or PurePath(file_name).name != file_name:
            raise InvalidFileNameError
        if "\\" in file_name or "\x00" in file_name:
            raise InvalidFileNameError

        root = await self.media_root.resolve()
        candidate = await (root / file_name).resolve()
        if not candidate.is_relative_to(root) or candidate == root:
            raise MediaAccessDeniedError
        if not await candidate.exists():
            raise MediaNotFoundError
        if await candidate.is_dir():
            raise MediaAccessDeniedError
        return candidate
