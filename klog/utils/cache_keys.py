"""
Cache key builders for the application.

Routes and services use these to agree on keys for cache invalidation.
"""

POSTS_NAMESPACE = "posts"


def post_slug_key(slug: str) -> str:
    """Generate cache key for a post by slug."""
    return f"post_by_slug_{slug}"
