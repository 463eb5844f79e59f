"""Post repository for database operations."""

from collections.abc import Iterable
from logging import getLogger

from sqlalchemy import delete, insert, select, update

from klog.configs import file_logger
from klog.models import CategoryDB, PostDB, PostTagLink, TagDB
from klog.repositories.base import BaseRepository
from klog.repositories.pagination import CursorPlan, build_statement

logger = file_logger(getLogger(__name__))


class PostRepository(BaseRepository[PostDB]):
    """
    Repository for post database operations.

    Categories and tags are looked up with explicit queries rather than
    lazy relationships, so nothing is loaded implicitly on an async session.
    """

    model = PostDB

    async def get_by_slug(self, slug: str) -> PostDB | None:
        return await self.get_by_field("slug", slug)

    async def slug_taken(self, slug: str, exclude_id: int | None = None) -> bool:
        return await self._exists("slug", slug, exclude_id)

    async def list_by_cursor(self, plan: CursorPlan) -> list[PostDB]:
        """
        Run one planned page, including the look-ahead row.

        Args:
            plan: Output of ``plan_cursor_query``.

        Returns:
            list[PostDB]: Up to ``plan.fetch_limit`` posts in listing order.
        """
        result = await self.session.execute(build_statement(plan))
        return list(result.scalars().all())

    async def increment_view_count(self, post_id: int, increment: int = 1) -> None:
        """Atomically add to a post's view count."""
        await self.session.execute(
            update(PostDB)
            .where(PostDB.id == post_id)
            .values(view_count=PostDB.view_count + increment),
        )

    async def set_tags(self, post_id: int, tag_ids: Iterable[int]) -> None:
        """Replace the tag links of a post."""
        await self.session.execute(delete(PostTagLink).where(PostTagLink.post_id == post_id))
        rows = [{"post_id": post_id, "tag_id": tag_id} for tag_id in tag_ids]
        if rows:
            await self.session.execute(insert(PostTagLink), rows)
        await self.session.flush()

    async def get_tag_names(self, post_ids: Iterable[int]) -> dict[int, list[str]]:
        """
        Load tag names for a batch of posts.

        Returns:
            dict[int, list[str]]: Post id to tag names ordered by name.
        """
        ids = list(post_ids)
        names: dict[int, list[str]] = {post_id: [] for post_id in ids}
        if not ids:
            return names
        result = await self.session.execute(
            select(PostTagLink.post_id, TagDB.name)
            .join(TagDB, TagDB.id == PostTagLink.tag_id)
            .where(PostTagLink.post_id.in_(ids))
            .order_by(TagDB.name),
        )
        for post_id, name in result.all():
            names[post_id].append(name)
        return names

    async def get_category_slugs(self, category_ids: Iterable[int | None]) -> dict[int, str]:
        """Load category slugs for a batch of category ids."""
        ids = {category_id for category_id in category_ids if category_id is not None}
        if not ids:
            return {}
        result = await self.session.execute(
            select(CategoryDB.id, CategoryDB.slug).where(CategoryDB.id.in_(ids)),
        )
        return dict(result.all())
