"""Pagination response envelopes."""

from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class CursorPaginatedResponse(BaseModel, Generic[T]):
    """One page of a cursor-paginated listing."""

    data: list[T]
    next_cursor: str | None = Field(
        default=None,
        description="Opaque cursor for the next page, null on the last page",
    )
    prev_cursor: str | None = Field(
        default=None,
        description="Always null; listings only page forward",
    )
    has_more: bool
    limit: int


class OffsetPaginatedResponse(BaseModel, Generic[T]):
    """One page of an offset-paginated listing."""

    data: list[T]
    total: int
    skip: int
    limit: int
