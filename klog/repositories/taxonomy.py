"""Category and tag repositories."""

from collections.abc import Sequence

from sqlalchemy import select

from klog.models import CategoryDB, TagDB
from klog.repositories.base import BaseRepository
from klog.schemas.post import slugify


class CategoryRepository(BaseRepository[CategoryDB]):
    """Repository for categories."""

    model = CategoryDB

    async def get_or_create(self, slug: str) -> CategoryDB:
        """
        Return the category with ``slug``, creating it if needed.

        A created category is named after its slug.
        """
        if category := await self.get_by_field("slug", slug):
            return category
        name = slug.replace("-", " ").title()
        return await self.create({"name": name, "slug": slug})


class TagRepository(BaseRepository[TagDB]):
    """Repository for tags."""

    model = TagDB

    async def get_or_create_many(self, names: Sequence[str]) -> list[TagDB]:
        """
        Resolve tag names to tags, creating missing ones.

        Names are matched on their slug, so "Python" and "python" are one tag.

        Returns:
            list[TagDB]: One tag per distinct slug, in input order.
        """
        by_slug: dict[str, str] = {}
        for name in names:
            by_slug.setdefault(slugify(name), name)
        if not by_slug:
            return []

        result = await self.session.execute(select(TagDB).where(TagDB.slug.in_(by_slug)))
        existing = {tag.slug: tag for tag in result.scalars().all()}

        tags: list[TagDB] = []
        for slug, name in by_slug.items():
            tag = existing.get(slug) or await self.create({"name": name, "slug": slug})
            tags.append(tag)
        return tags
