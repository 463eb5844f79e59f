"""
Keyset (cursor) pagination planning for post listings.

A listing is ordered by one whitelisted column plus ``posts.id`` in the same
direction, which makes the order total even when many rows share a sort
value. The next page starts strictly after the last row of the previous one:

    desc: (f < v) OR (f = v AND id < c)
    asc:  (f > v) OR (f = v AND id > c)

NULL sort values are ordered as if larger than every present value, so they
come last ascending and first descending (``NULLS LAST`` / ``NULLS FIRST``).
The seek predicate is extended to match:

    desc, v present: (f < v) OR (f = v AND id < c)
    desc, v absent:  (f IS NULL AND id < c) OR f IS NOT NULL
    asc,  v present: (f > v) OR (f = v AND id > c) OR f IS NULL
    asc,  v absent:  f IS NULL AND id > c

One extra row is fetched to tell whether another page exists.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import ColumnElement, Select, and_, or_, select
from sqlalchemy.orm import InstrumentedAttribute

from klog.configs import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from klog.errors import CursorMismatchError
from klog.models import CategoryDB, PostDB, PostTagLink, TagDB
from klog.utils.cursor import (
    CursorData,
    SortField,
    SortOrder,
    decode_cursor,
    encode_cursor,
    format_sort_value,
    parse_sort_value,
)

DEFAULT_SORT_FIELD = SortField.PUBLISHED_AT
DEFAULT_SORT_ORDER = SortOrder.DESC


@dataclass(frozen=True, slots=True)
class PostFilters:
    """
    Optional equality filters for a post listing.

    Attributes
    ----------
        status: Post status.
        category_slug: Slug of the post's category.
        tag_slug: Slug of a tag the post carries.
    """

    status: str | None = None
    category_slug: str | None = None
    tag_slug: str | None = None


@dataclass(frozen=True, slots=True)
class CursorPlan:
    """Everything needed to run one page of a cursor listing."""

    sort_field: SortField
    order: SortOrder
    limit: int
    conditions: list[ColumnElement[bool]] = field(default_factory=list)
    order_by: list[Any] = field(default_factory=list)
    join_category: bool = False

    @property
    def fetch_limit(self) -> int:
        return self.limit + 1


def resolve_sort_field(sort_by: str | None) -> SortField:
    """Whitelist the sort column, falling back to ``published_at``."""
    try:
        return SortField(sort_by)
    except ValueError:
        return DEFAULT_SORT_FIELD


def resolve_order(order: str | None) -> SortOrder:
    """Whitelist the direction, falling back to ``desc``."""
    try:
        return SortOrder((order or "").lower())
    except ValueError:
        return DEFAULT_SORT_ORDER


def clamp_limit(limit: int | None) -> int:
    if limit is None:
        return DEFAULT_PAGE_SIZE
    return max(1, min(limit, MAX_PAGE_SIZE))


def sort_column(sort_field: SortField) -> InstrumentedAttribute[Any]:
    return getattr(PostDB, sort_field.value)


def filter_conditions(filters: PostFilters) -> tuple[list[ColumnElement[bool]], bool]:
    """
    Build WHERE conditions for the listing filters.

    Returns:
        tuple: The conditions and whether ``categories`` must be joined.
    """
    conditions: list[ColumnElement[bool]] = []
    join_category = False

    if filters.status:
        conditions.append(PostDB.status == filters.status)
    if filters.category_slug:
        conditions.append(CategoryDB.slug == filters.category_slug)
        join_category = True
    if filters.tag_slug:
        # A subquery keeps one row per post even with several matching links
        tagged = (
            select(PostTagLink.post_id)
            .join(TagDB, TagDB.id == PostTagLink.tag_id)
            .where(TagDB.slug == filters.tag_slug)
        )
        conditions.append(PostDB.id.in_(tagged))

    return conditions, join_category


def seek_predicate(
    column: InstrumentedAttribute[Any],
    order: SortOrder,
    value: object,
    last_id: int,
) -> ColumnElement[bool]:
    """
    Condition selecting rows strictly after ``(value, last_id)``.

    Args:
        column: Primary sort column.
        order: Sort direction.
        value: Sort value of the last row, ``None`` when it was absent.
        last_id: Id of the last row.

    Returns:
        ColumnElement[bool]: The seek condition.
    """
    id_column = PostDB.id
    if order == SortOrder.DESC:
        if value is None:
            return or_(and_(column.is_(None), id_column < last_id), column.is_not(None))
        return or_(column < value, and_(column == value, id_column < last_id))

    if value is None:
        return and_(column.is_(None), id_column > last_id)
    return or_(
        column > value,
        and_(column == value, id_column > last_id),
        column.is_(None),
    )


def order_clauses(column: InstrumentedAttribute[Any], order: SortOrder) -> list[Any]:
    if order == SortOrder.DESC:
        return [column.desc().nulls_first(), PostDB.id.desc()]
    return [column.asc().nulls_last(), PostDB.id.asc()]


def plan_cursor_query(
    filters: PostFilters,
    sort_by: str | None,
    order: str | None,
    cursor: str | None,
    limit: int | None,
) -> CursorPlan:
    """
    Plan one page of a post listing.

    Unknown sort fields and directions fall back to ``published_at`` and
    ``desc``. The plan is pure; nothing is read from the database.

    Args:
        filters: Listing filters.
        sort_by: Requested sort column.
        order: Requested direction.
        cursor: Opaque cursor from the previous page, empty for the first.
        limit: Requested page size, clamped to 1..100.

    Returns:
        CursorPlan: Conditions, ordering and fetch limit for the page.

    Raises:
        InvalidCursorError: If the cursor or its sort value cannot be decoded.
        CursorMismatchError: If the cursor was issued for another sort field.
    """
    sort_field = resolve_sort_field(sort_by)
    direction = resolve_order(order)
    column = sort_column(sort_field)

    conditions, join_category = filter_conditions(filters)

    decoded = decode_cursor(cursor or "")
    if decoded is not None:
        if decoded.sort_field != sort_field.value:
            raise CursorMismatchError(decoded.sort_field, sort_field.value)
        value = parse_sort_value(sort_field, decoded.sort_value)
        conditions.append(seek_predicate(column, direction, value, decoded.id))

    return CursorPlan(
        sort_field=sort_field,
        order=direction,
        limit=clamp_limit(limit),
        conditions=conditions,
        order_by=order_clauses(column, direction),
        join_category=join_category,
    )


def build_statement(plan: CursorPlan) -> Select[tuple[PostDB]]:
    """Turn a plan into a SELECT over ``posts``."""
    statement = select(PostDB)
    if plan.join_category:
        statement = statement.join(CategoryDB, CategoryDB.id == PostDB.category_id)
    return statement.where(*plan.conditions).order_by(*plan.order_by).limit(plan.fetch_limit)


def split_page[RowT](rows: Sequence[RowT], limit: int) -> tuple[list[RowT], bool]:
    """Trim the look-ahead row; report whether more rows exist."""
    has_more = len(rows) > limit
    return list(rows[:limit]), has_more


def mint_next_cursor(last_row: PostDB, sort_field: SortField) -> str:
    """Encode the position of the last row of a page."""
    value = getattr(last_row, sort_field.value)
    return encode_cursor(
        CursorData(
            sort_field=sort_field.value,
            sort_value=format_sort_value(sort_field, value),
            id=int(last_row.id),  # type: ignore[arg-type]
        ),
    )
