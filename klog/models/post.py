"""Post, category and tag database models using SQLModel."""

from datetime import UTC, datetime
from typing import cast

from sqlalchemy import DateTime, Index, Integer, Text
from sqlalchemy.orm import declared_attr
from sqlmodel import Column, Field, ForeignKey, SQLModel, String


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


class CategoryDB(SQLModel, table=True):
    """Post category. A post belongs to at most one category."""

    __tablename__ = cast("declared_attr[str]", "categories")

    id: int | None = Field(default=None, primary_key=True, description="Category ID")
    name: str = Field(sa_column=Column(String(100), nullable=False), description="Display name")
    slug: str = Field(
        sa_column=Column(String(100), unique=True, nullable=False, index=True),
        description="URL-friendly slug (unique)",
    )
    description: str | None = Field(
        default=None,
        sa_column=Column(String(500)),
        description="Category description",
    )


class TagDB(SQLModel, table=True):
    """Post tag."""

    __tablename__ = cast("declared_attr[str]", "tags")

    id: int | None = Field(default=None, primary_key=True, description="Tag ID")
    name: str = Field(sa_column=Column(String(50), nullable=False), description="Display name")
    slug: str = Field(
        sa_column=Column(String(50), unique=True, nullable=False, index=True),
        description="URL-friendly slug (unique)",
    )


class PostTagLink(SQLModel, table=True):
    """Association between posts and tags."""

    __tablename__ = cast("declared_attr[str]", "post_tags")

    post_id: int = Field(
        sa_column=Column(
            "post_id",
            Integer,
            ForeignKey("posts.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )
    tag_id: int = Field(
        sa_column=Column(
            "tag_id",
            Integer,
            ForeignKey("tags.id", ondelete="CASCADE"),
            primary_key=True,
            index=True,
        ),
    )


class PostDB(SQLModel, table=True):
    """
    Blog post database model.

    Listing is keyset-paginated over one of the sortable columns with ``id``
    as tie-break, so each sortable column has a composite index with ``id``.
    ``published_at`` stays NULL until the post is first published.
    """

    __tablename__ = cast("declared_attr[str]", "posts")

    __table_args__ = (
        Index("ix_posts_published_at_id", "published_at", "id"),
        Index("ix_posts_created_at_id", "created_at", "id"),
        Index("ix_posts_updated_at_id", "updated_at", "id"),
        Index("ix_posts_view_count_id", "view_count", "id"),
        Index("ix_posts_title_id", "title", "id"),
        Index("ix_posts_status_published", "status", "published_at"),
    )

    id: int | None = Field(default=None, primary_key=True, description="Post ID")

    category_id: int | None = Field(
        default=None,
        sa_column=Column(
            "category_id",
            Integer,
            ForeignKey("categories.id", ondelete="SET NULL"),
            nullable=True,
            index=True,
        ),
        description="Category ID (foreign key to categories.id)",
    )

    title: str = Field(sa_column=Column(String(200), nullable=False), description="Post title")
    slug: str = Field(
        sa_column=Column(String(200), unique=True, nullable=False, index=True),
        description="URL-friendly slug (unique)",
    )
    content: str = Field(sa_column=Column(Text, nullable=False), description="Post body")
    excerpt: str | None = Field(
        default=None,
        sa_column=Column(String(500)),
        description="Short summary",
    )
    cover_image_url: str | None = Field(
        default=None,
        sa_column=Column(String(500)),
        description="Cover image URL",
    )
    status: str = Field(
        default="draft",
        sa_column=Column(String(20), nullable=False, index=True),
        description="Post status (draft, published, archived)",
    )
    view_count: int = Field(default=0, nullable=False, description="View count")

    published_at: datetime | None = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
        description="First publication timestamp",
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
        description="Creation timestamp",
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
        description="Last update timestamp",
    )
