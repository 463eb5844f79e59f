"""
Post Routes.

Summary
-------
Endpoints include:
  - List posts with cursor pagination
  - Get post by slug
  - Create post (admin)
  - Update post (admin)
  - Delete post (admin)

Dependencies
------------
  - `PostServiceDep`: Post service bound to the request session.
  - `AdminDep`: Verified admin token for write operations.

Rate Limiting
-------------
Every endpoint spends one token of the client's bucket and answers `429`
once it is empty.
"""

from dataclasses import dataclass
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from fastapi.responses import ORJSONResponse
from starlette.responses import Response
from starlette.status import HTTP_201_CREATED, HTTP_204_NO_CONTENT

from klog.dependencies import AdminDep, PostServiceDep, rate_limit
from klog.repositories.pagination import PostFilters
from klog.schemas import CursorPaginatedResponse, PostCreate, PostListItem, PostResponse, PostUpdate
from klog.schemas.post import PostStatus

router = APIRouter(prefix="/posts", tags=["📝 Posts"], dependencies=[Depends(rate_limit)])

_ERROR_EXAMPLES = {
    400: {
        "description": "Invalid cursor",
        "content": {
            "application/json": {
                "example": {"detail": "Invalid cursor format", "code": "INVALID_CURSOR"},
            },
        },
    },
    429: {
        "description": "Rate limit exceeded",
        "content": {"application/json": {"example": {"detail": "Too many requests"}}},
    },
}


@dataclass(frozen=True)
class CursorListQuery:
    """
    Query container for the cursor listing.

    Parameters
    ----------
    cursor : str | None
        Cursor from the previous page.
    limit : int
        Page size.
    filters : PostFilters
        Status, category and tag filters.
    sort_by : str | None
        Sort column.
    order : str | None
        Sort direction.
    """

    cursor: str | None
    limit: int
    filters: PostFilters
    sort_by: str | None
    order: str | None


def get_cursor_list_query(
    cursor: Annotated[str | None, Query(description="Cursor returned with the previous page")] = None,
    limit: Annotated[int, Query(description="Page size, clamped to 1..100")] = 10,
    status: Annotated[PostStatus | None, Query(description="Optional status filter")] = None,
    category: Annotated[str | None, Query(description="Category slug")] = None,
    tag: Annotated[str | None, Query(description="Tag slug")] = None,
    sort_by: Annotated[
        str | None,
        Query(
            description=(
                "published_at, created_at, updated_at, view_count or title; "
                "anything else sorts by published_at"
            ),
        ),
    ] = None,
    order: Annotated[
        str | None,
        Query(description="asc or desc; anything else sorts descending"),
    ] = None,
) -> CursorListQuery:
    """
    Dependency to construct `CursorListQuery` from query parameters.

    Returns
    -------
    CursorListQuery
        Aggregated query parameters object.
    """
    return CursorListQuery(
        cursor=cursor,
        limit=limit,
        filters=PostFilters(status=status, category_slug=category, tag_slug=tag),
        sort_by=sort_by,
        order=order,
    )


CursorListQueryDep = Annotated[CursorListQuery, Depends(get_cursor_list_query)]


@router.get(
    "/cursor",
    response_class=ORJSONResponse,
    response_model=CursorPaginatedResponse[PostListItem],
    summary="List posts with cursor pagination",
    description=(
        "Keyset-paginated post listing. Pass `next_cursor` from a page as `cursor` "
        "to read the next one, keeping the same `sort_by`."
    ),
    responses=_ERROR_EXAMPLES,
    operation_id="posts_list_cursor",
)
async def list_posts_by_cursor(
    query: CursorListQueryDep,
    service: PostServiceDep,
) -> CursorPaginatedResponse[PostListItem]:
    """
    List posts one page at a time.

    Parameters
    ----------
    query : CursorListQuery
        Cursor, page size, filters and ordering.
    service : PostService
        Post service.

    Returns
    -------
    CursorPaginatedResponse[PostListItem]
        The page, its next cursor and whether more pages exist.
    """
    page = await service.get_posts_by_cursor(
        cursor=query.cursor,
        limit=query.limit,
        filters=query.filters,
        sort_by=query.sort_by,
        order=query.order,
    )
    return CursorPaginatedResponse[PostListItem](
        data=page.items,
        next_cursor=page.next_cursor,
        has_more=page.has_more,
        limit=page.limit,
    )


@router.get(
    "/{slug}",
    response_class=ORJSONResponse,
    response_model=PostResponse,
    summary="Get post by slug",
    description="Read a post and count the view.",
    responses={404: {"description": "Post not found"}, 429: _ERROR_EXAMPLES[429]},
    operation_id="posts_get_by_slug",
)
async def get_post_by_slug(slug: str, service: PostServiceDep) -> PostResponse:
    return await service.get_by_slug(slug)


@router.post(
    "",
    response_class=ORJSONResponse,
    response_model=PostResponse,
    status_code=HTTP_201_CREATED,
    summary="Create a new post",
    description="Create a post. Unknown categories and tags are created on the fly.",
    responses={409: {"description": "Slug already exists"}, 429: _ERROR_EXAMPLES[429]},
    operation_id="posts_create",
)
async def create_post(post: PostCreate, service: PostServiceDep, _admin: AdminDep) -> PostResponse:
    """
    Create a new post.

    Parameters
    ----------
    post : PostCreate
        Post fields; the slug is derived from the title when omitted.
    service : PostService
        Post service.
    _admin : TokenData
        Verified admin token.

    Returns
    -------
    PostResponse
        The created post.
    """
    return await service.create(post)


@router.patch(
    "/{post_id}",
    response_class=ORJSONResponse,
    response_model=PostResponse,
    summary="Update a post",
    description="Partial update: omitted fields are kept, nullable fields sent as null are cleared.",
    responses={
        404: {"description": "Post not found"},
        409: {"description": "Slug already exists"},
        429: _ERROR_EXAMPLES[429],
    },
    operation_id="posts_update",
)
async def update_post(
    post_id: int,
    post: PostUpdate,
    service: PostServiceDep,
    _admin: AdminDep,
) -> PostResponse:
    return await service.update(post_id, post)


@router.delete(
    "/{post_id}",
    status_code=HTTP_204_NO_CONTENT,
    summary="Delete a post",
    responses={404: {"description": "Post not found"}, 429: _ERROR_EXAMPLES[429]},
    operation_id="posts_delete",
)
async def delete_post(post_id: int, service: PostServiceDep, _admin: AdminDep) -> Response:
    await service.delete(post_id)
    return Response(status_code=HTTP_204_NO_CONTENT)
