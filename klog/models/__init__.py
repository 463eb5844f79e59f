"""Database models for the application."""

from klog.models.media import MediaDB
from klog.models.post import CategoryDB, PostDB, PostTagLink, TagDB

__all__ = ["CategoryDB", "MediaDB", "PostDB", "PostTagLink", "TagDB"]
