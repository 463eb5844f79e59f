"""
Post service.

Owns the post read and write paths: the cursor listing, cached reads by slug,
and create, partial update and delete with category and tag resolution.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from logging import getLogger
from typing import Any

from klog.configs import file_logger, settings
from klog.errors import DuplicateEntryError, RecordNotFoundError
from klog.managers.cache_manager import CacheManager
from klog.models import PostDB
from klog.models.post import utc_now
from klog.repositories import CategoryRepository, PostRepository, TagRepository
from klog.repositories.pagination import (
    PostFilters,
    mint_next_cursor,
    plan_cursor_query,
    split_page,
)
from klog.schemas.post import PostCreate, PostListItem, PostResponse, PostUpdate
from klog.utils.cache_keys import POSTS_NAMESPACE, post_slug_key
from klog.utils.patch import present_values

logger = file_logger(getLogger(__name__))

PUBLISHED = "published"


@dataclass(frozen=True, slots=True)
class CursorPage:
    """
    One page of the cursor listing.

    Attributes
    ----------
        items: Posts of the page, in listing order.
        next_cursor: Cursor for the following page, ``None`` on the last one.
        has_more: Whether another page exists.
        limit: Effective page size after clamping.
    """

    items: list[PostListItem] = field(default_factory=list)
    next_cursor: str | None = None
    has_more: bool = False
    limit: int = 0


class PostService:
    """Post use cases over the post, category and tag repositories."""

    def __init__(
        self,
        posts: PostRepository,
        categories: CategoryRepository,
        tags: TagRepository,
        cache: CacheManager | None = None,
    ) -> None:
        self.posts = posts
        self.categories = categories
        self.tags = tags
        self.cache = cache or CacheManager()

    async def get_posts_by_cursor(
        self,
        cursor: str | None,
        limit: int | None,
        filters: PostFilters | None = None,
        sort_by: str | None = None,
        order: str | None = None,
    ) -> CursorPage:
        """
        Read one page of posts in keyset order.

        Args:
            cursor: Cursor returned with the previous page, empty for the first.
            limit: Requested page size, clamped to 1..100.
            filters: Status, category and tag filters.
            sort_by: Sort column; unknown values fall back to ``published_at``.
            order: ``asc`` or ``desc``; unknown values fall back to ``desc``.

        Returns:
            CursorPage: The page and the cursor of the next one.

        Raises:
            InvalidCursorError: If the cursor cannot be decoded.
            CursorMismatchError: If the cursor belongs to another sort field.
        """
        plan = plan_cursor_query(filters or PostFilters(), sort_by, order, cursor, limit)
        rows = await self.posts.list_by_cursor(plan)
        page, has_more = split_page(rows, plan.limit)

        next_cursor = None
        if has_more and page:
            next_cursor = mint_next_cursor(page[-1], plan.sort_field)

        return CursorPage(
            items=await self._to_list_items(page),
            next_cursor=next_cursor,
            has_more=has_more,
            limit=plan.limit,
        )

    async def get_by_slug(self, slug: str, *, count_view: bool = True) -> PostResponse:
        """
        Read a post by slug, through the cache when one is configured.

        A cached copy may lag the live view count by up to the cache TTL.

        Raises:
            RecordNotFoundError: If no post has this slug.
        """
        key = post_slug_key(slug)
        cached = await self.cache.get(key, namespace=POSTS_NAMESPACE)
        if cached is not None:
            response = PostResponse.model_validate(cached)
        else:
            post = await self.posts.get_by_slug(slug)
            if post is None:
                raise RecordNotFoundError(detail=f"Post '{slug}' not found")
            response = await self._to_response(post)
            await self.cache.set(
                key,
                response.model_dump(mode="json"),
                ttl=settings.CACHE_TTL_POST,
                namespace=POSTS_NAMESPACE,
            )

        if count_view:
            await self.posts.increment_view_count(response.id)
            await self.posts.session.commit()
        return response

    async def create(self, payload: PostCreate) -> PostResponse:
        """
        Create a post, creating its category and tags if they are new.

        Raises:
            DuplicateEntryError: If the slug is taken.
        """
        slug = payload.slug or ""
        if await self.posts.slug_taken(slug):
            raise DuplicateEntryError(detail=f"Slug '{slug}' already exists")

        values = payload.model_dump(exclude={"category", "tags"})
        if payload.category:
            category = await self.categories.get_or_create(payload.category)
            values["category_id"] = category.id
        if payload.status == PUBLISHED:
            values["published_at"] = utc_now()

        post = await self.posts.create(values)
        await self._replace_tags(post, payload.tags)
        await self.posts.session.commit()
        logger.info(f"Created post {post.id} '{post.slug}'")
        return await self._to_response(post)

    async def update(self, post_id: int, payload: PostUpdate) -> PostResponse:
        """
        Apply a partial update.

        Fields left out of the body are untouched; nullable fields sent as
        null are cleared. Publishing a post for the first time stamps
        ``published_at``.

        Raises:
            RecordNotFoundError: If the post does not exist.
            DuplicateEntryError: If the new slug is taken.
        """
        post = await self.posts.get_or_raise(post_id)
        old_slug = post.slug
        changes = present_values(payload.to_patch())

        new_slug = changes.get("slug")
        if new_slug and new_slug != old_slug and await self.posts.slug_taken(new_slug, post_id):
            raise DuplicateEntryError(detail=f"Slug '{new_slug}' already exists")

        tags = changes.pop("tags", None)
        if "category" in changes:
            category_slug = changes.pop("category")
            changes["category_id"] = None
            if category_slug:
                category = await self.categories.get_or_create(category_slug)
                changes["category_id"] = category.id

        if changes.get("status") == PUBLISHED and post.published_at is None:
            changes["published_at"] = utc_now()
        changes["updated_at"] = utc_now()

        post = await self.posts.update(post, changes)
        if tags is not None:
            await self._replace_tags(post, tags)
        await self.posts.session.commit()
        await self._invalidate(old_slug, post.slug)
        return await self._to_response(post)

    async def delete(self, post_id: int) -> None:
        """
        Delete a post and its tag links.

        Raises:
            RecordNotFoundError: If the post does not exist.
        """
        post = await self.posts.get_or_raise(post_id)
        slug = post.slug
        await self.posts.set_tags(post_id, [])
        await self.posts.delete(post_id)
        await self.posts.session.commit()
        await self._invalidate(slug)
        logger.info(f"Deleted post {post_id} '{slug}'")

    async def _replace_tags(self, post: PostDB, names: Sequence[str]) -> None:
        tags = await self.tags.get_or_create_many(names)
        await self.posts.set_tags(int(post.id), [int(tag.id) for tag in tags])  # type: ignore[arg-type]

    async def _invalidate(self, *slugs: str) -> None:
        keys = {post_slug_key(slug) for slug in slugs}
        await self.cache.delete(*keys, namespace=POSTS_NAMESPACE)

    async def _related(self, posts: Sequence[PostDB]) -> tuple[dict[int, list[str]], dict[int, str]]:
        """Batch-load tag names and category slugs for a set of posts."""
        tag_names = await self.posts.get_tag_names(int(p.id) for p in posts)  # type: ignore[arg-type]
        category_slugs = await self.posts.get_category_slugs(p.category_id for p in posts)
        return tag_names, category_slugs

    def _fields(
        self,
        post: PostDB,
        tag_names: dict[int, list[str]],
        category_slugs: dict[int, str],
    ) -> dict[str, Any]:
        data = post.model_dump()
        data["tags"] = tag_names.get(int(post.id), [])  # type: ignore[arg-type]
        data["category"] = category_slugs.get(post.category_id) if post.category_id else None
        return data

    async def _to_list_items(self, posts: Sequence[PostDB]) -> list[PostListItem]:
        tag_names, category_slugs = await self._related(posts)
        return [
            PostListItem.model_validate(self._fields(post, tag_names, category_slugs))
            for post in posts
        ]

    async def _to_response(self, post: PostDB) -> PostResponse:
        tag_names, category_slugs = await self._related([post])
        return PostResponse.model_validate(self._fields(post, tag_names, category_slugs))
