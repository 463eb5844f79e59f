from klog.routes.media import router as media_router
from klog.routes.posts import router as posts_router

__all__ = ["media_router", "posts_router"]
