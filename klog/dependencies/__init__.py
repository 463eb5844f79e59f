from klog.dependencies.dependencies import (
    AdminDep,
    CacheDep,
    FileQueueDep,
    MediaServiceDep,
    PostServiceDep,
    SessionDep,
    get_cache_manager,
    get_file_queue,
    get_media_service,
    get_post_service,
    rate_limit,
    require_admin,
)

__all__ = [
    "AdminDep",
    "CacheDep",
    "FileQueueDep",
    "MediaServiceDep",
    "PostServiceDep",
    "SessionDep",
    "get_cache_manager",
    "get_file_queue",
    "get_media_service",
    "get_post_service",
    "rate_limit",
    "require_admin",
]
