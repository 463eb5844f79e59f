"""Repository layer for database operations."""

from klog.repositories.base import BaseRepository
from klog.repositories.media import MediaRepository
from klog.repositories.post import PostRepository
from klog.repositories.taxonomy import CategoryRepository, TagRepository

__all__ = [
    "BaseRepository",
    "CategoryRepository",
    "MediaRepository",
    "PostRepository",
    "TagRepository",
]
