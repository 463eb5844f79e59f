"""Application dependencies: sessions, services, admin auth and rate limiting."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_401_UNAUTHORIZED

from klog.configs import settings
from klog.db import get_session
from klog.errors import RateLimitExceededError
from klog.managers.cache_manager import CacheManager
from klog.managers.file_queue import FileDeleteQueue
from klog.managers.rate_limiter import IPRateLimiter
from klog.managers.token_manager import TokenData, decode_access_token
from klog.monitoring.prometheus import metrics
from klog.repositories import CategoryRepository, MediaRepository, PostRepository, TagRepository
from klog.services import MediaService, PostService
from klog.utils.helpers import host

bearer_scheme = HTTPBearer(auto_error=False)

SessionDep = Annotated[AsyncSession, Depends(get_session)]


def get_cache_manager(request: Request) -> CacheManager:
    """Cache manager created at startup, or a disabled one when there is none."""
    cache: CacheManager | None = getattr(request.app.state, "cache_manager", None)
    return cache or CacheManager()


CacheDep = Annotated[CacheManager, Depends(get_cache_manager)]


def get_file_queue(request: Request) -> FileDeleteQueue:
    """
    Delete queue created at startup.

    Raises:
        RuntimeError: If the application was started without one.
    """
    queue: FileDeleteQueue | None = getattr(request.app.state, "file_queue", None)
    if queue is None:
        mssg = "File delete queue not initialized"
        raise RuntimeError(mssg)
    return queue


FileQueueDep = Annotated[FileDeleteQueue, Depends(get_file_queue)]


def get_post_service(session: SessionDep, cache: CacheDep) -> PostService:
    """
    Resolve the `PostService` dependency.

    Parameters
    ----------
    session : AsyncSession
        Database session.
    cache : CacheManager
        Cache for post reads.

    Returns
    -------
    PostService
        Service bound to repositories on the session.
    """
    return PostService(
        PostRepository(session),
        CategoryRepository(session),
        TagRepository(session),
        cache=cache,
    )


PostServiceDep = Annotated[PostService, Depends(get_post_service)]


def get_media_service(session: SessionDep, queue: FileQueueDep) -> MediaService:
    return MediaService(MediaRepository(session), queue)


MediaServiceDep = Annotated[MediaService, Depends(get_media_service)]


async def require_admin(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> TokenData:
    """
    Verify the bearer token of an admin request.

    Raises
    ------
    HTTPException
        401 if the token is missing, invalid, expired or not the admin's.
    """
    token_data = decode_access_token(credentials.credentials) if credentials else None
    if token_data is None or token_data.username != settings.ADMIN_USERNAME:
        raise HTTPException(
            status_code=HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token_data


AdminDep = Annotated[TokenData, Depends(require_admin)]


async def rate_limit(request: Request) -> None:
    """
    Spend one request token for the client address.

    Does nothing when no limiter was installed on the application.

    Raises:
        RateLimitExceededError: If the client's bucket is empty.
    """
    limiter: IPRateLimiter | None = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        return
    decision = limiter.check(host(request))
    if not decision.allowed:
        metrics.record_rate_limit_hit()
        raise RateLimitExceededError(retry_after=decision.retry_after)
