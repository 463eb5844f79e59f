"""
Post request and response models.

``PostUpdate`` carries PATCH semantics: a field left out of the body is not
touched, while a nullable field sent as ``null`` is cleared. ``to_patch``
makes that distinction explicit for the service layer.
"""

from datetime import datetime
from re import match, sub
from typing import Any, Literal
from unicodedata import category

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from klog.utils.patch import MISSING, Patch, Present

PostStatus = Literal["draft", "published", "archived"]

SLUG_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"


def slugify(text: str) -> str:
    """Build a URL slug from free text."""
    slug = sub(r"[^a-z0-9\s-]", "", text.lower())
    slug = sub(r"\s+", "-", slug)
    return sub(r"-+", "-", slug).strip("-")


def _check_title(value: str | None) -> str | None:
    # Titles end up inside pagination cursors and log lines
    if value is not None and any(category(ch) == "Cc" for ch in value):
        mssg = "Title must not contain control characters"
        raise ValueError(mssg)
    return value


def _check_slug(value: str | None) -> str | None:
    if value is not None and not match(SLUG_PATTERN, value):
        mssg = "Slug must be lowercase alphanumeric with hyphens only"
        raise ValueError(mssg)
    return value


class PostCreate(BaseModel):
    """Post creation model (for request body, excludes generated fields)."""

    title: str = Field(..., min_length=1, max_length=200, examples=["Keyset pagination"])
    slug: str | None = Field(
        default=None,
        min_length=1,
        max_length=200,
        description="Post slug (generated from title if not provided)",
    )
    content: str = Field(..., min_length=1)
    excerpt: str | None = Field(default=None, max_length=500)
    cover_image_url: str | None = Field(default=None, max_length=500)
    status: PostStatus = "draft"
    category: str | None = Field(default=None, description="Category slug")
    tags: list[str] = Field(default=[], max_length=20, description="Tag names")

    @model_validator(mode="before")
    @classmethod
    def generate_slug_from_title(cls, data: Any) -> Any:
        """Auto-generate slug from title if not provided."""
        if not isinstance(data, dict) or data.get("slug"):
            return data
        title = data.get("title")
        if not isinstance(title, str) or not title:
            return data
        if not (generated := slugify(title)):
            mssg = "Could not generate valid slug from title"
            raise ValueError(mssg)
        return {**data, "slug": generated}

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str | None) -> str | None:
        return _check_title(v)

    @field_validator("slug")
    @classmethod
    def validate_slug(cls, v: str | None) -> str | None:
        return _check_slug(v)

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: list[str]) -> list[str]:
        """Strip, drop empty and de-duplicate tag names, keeping order."""
        seen: dict[str, None] = {}
        for tag in (t.strip() for t in v):
            if tag and slugify(tag):
                seen.setdefault(tag, None)
        return list(seen)


# Fields that may not be cleared with an explicit null
_REQUIRED_ON_UPDATE = ("title", "slug", "content", "status", "tags")


class PostUpdate(BaseModel):
    """Post update model (all fields optional)."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"excerpt": None, "status": "published", "tags": ["python"]},
        },
    )

    title: str | None = Field(default=None, min_length=1, max_length=200)
    slug: str | None = Field(default=None, min_length=1, max_length=200)
    content: str | None = Field(default=None, min_length=1)
    excerpt: str | None = Field(default=None, max_length=500)
    cover_image_url: str | None = Field(default=None, max_length=500)
    status: PostStatus | None = None
    category: str | None = None
    tags: list[str] | None = Field(default=None, max_length=20)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str | None) -> str | None:
        return _check_title(v)

    @field_validator("slug")
    @classmethod
    def validate_slug(cls, v: str | None) -> str | None:
        return _check_slug(v)

    @model_validator(mode="after")
    def reject_null_for_required(self) -> "PostUpdate":
        for name in _REQUIRED_ON_UPDATE:
            if name in self.model_fields_set and getattr(self, name) is None:
                mssg = f"'{name}' cannot be null"
                raise ValueError(mssg)
        return self

    def to_patch(self) -> dict[str, Patch[Any]]:
        """
        Convert the body into explicit presence values.

        Returns:
            dict[str, Patch[Any]]: Every field, as :class:`Present` when it was
            sent (even as null) and :data:`MISSING` otherwise.
        """
        return {
            name: Present(getattr(self, name)) if name in self.model_fields_set else MISSING
            for name in type(self).model_fields
        }


class PostResponse(BaseModel):
    """Post response model."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    slug: str
    content: str
    excerpt: str | None = None
    cover_image_url: str | None = None
    status: str
    view_count: int
    category: str | None = None
    tags: list[str] = []
    published_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class PostListItem(BaseModel):
    """Post list item response (without the body)."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    slug: str
    excerpt: str | None = None
    cover_image_url: str | None = None
    status: str
    view_count: int
    category: str | None = None
    tags: list[str] = []
    published_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
