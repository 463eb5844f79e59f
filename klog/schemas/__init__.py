from klog.schemas.media import MediaResponse
from klog.schemas.pagination import CursorPaginatedResponse, OffsetPaginatedResponse
from klog.schemas.post import PostCreate, PostListItem, PostResponse, PostStatus, PostUpdate

__all__ = [
    "CursorPaginatedResponse",
    "MediaResponse",
    "OffsetPaginatedResponse",
    "PostCreate",
    "PostListItem",
    "PostResponse",
    "PostStatus",
    "PostUpdate",
]
