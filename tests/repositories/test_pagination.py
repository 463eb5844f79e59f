from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
from sqlmodel.ext.asyncio.session import AsyncSession

from klog.errors import CursorMismatchError, InvalidCursorError
from klog.models import PostDB
from klog.repositories import CategoryRepository, PostRepository, TagRepository
from klog.repositories.pagination import (
    PostFilters,
    clamp_limit,
    mint_next_cursor,
    plan_cursor_query,
    resolve_order,
    resolve_sort_field,
    split_page,
)
from klog.utils.cursor import CursorData, SortField, SortOrder, encode_cursor

BASE_TIME = datetime(2024, 1, 1, tzinfo=UTC)


async def _make_post(repo: PostRepository, n: int, **values: Any) -> PostDB:
    data: dict[str, Any] = {
        "title": f"Post {n:03d}",
        "slug": f"post-{n}",
        "content": "body",
        "status": "published",
        "published_at": BASE_TIME + timedelta(hours=n),
        "created_at": BASE_TIME + timedelta(minutes=n),
        "updated_at": BASE_TIME + timedelta(minutes=n),
    }
    data.update(values)
    return await repo.create(data)


async def _walk(
    repo: PostRepository,
    *,
    sort_by: str | None,
    order: str | None,
    limit: int,
    filters: PostFilters | None = None,
) -> list[list[int]]:
    """Follow next cursors to the end; return the ids of every page."""
    pages: list[list[int]] = []
    cursor: str | None = None
    while True:
        plan = plan_cursor_query(filters or PostFilters(), sort_by, order, cursor, limit)
        rows = await repo.list_by_cursor(plan)
        page, has_more = split_page(rows, plan.limit)
        pages.append([int(p.id) for p in page])  # type: ignore[arg-type]
        if not has_more:
            return pages
        cursor = mint_next_cursor(page[-1], plan.sort_field)
        assert len(pages) < 100


def test_unknown_sort_field_and_order_fall_back() -> None:
    assert resolve_sort_field("author; DROP TABLE posts") == SortField.PUBLISHED_AT
    assert resolve_sort_field(None) == SortField.PUBLISHED_AT
    assert resolve_sort_field("title") == SortField.TITLE
    assert resolve_order("ASC") == SortOrder.ASC
    assert resolve_order("sideways") == SortOrder.DESC
    assert resolve_order(None) == SortOrder.DESC


@pytest.mark.parametrize(("requested", "expected"), [(None, 10), (0, 1), (-5, 1), (7, 7), (500, 100)])
def test_limit_is_clamped(requested: int | None, expected: int) -> None:
    assert clamp_limit(requested) == expected


def test_split_page_look_ahead_row() -> None:
    assert split_page([1, 2, 3], 3) == ([1, 2, 3], False)
    assert split_page([1, 2, 3, 4], 3) == ([1, 2, 3], True)
    assert split_page([], 3) == ([], False)


def test_cursor_from_other_sort_field_is_rejected() -> None:
    post = PostDB(id=5, title="t", slug="t", content="c", view_count=3)
    cursor = mint_next_cursor(post, SortField.VIEW_COUNT)

    with pytest.raises(CursorMismatchError) as exc_info:
        plan_cursor_query(PostFilters(), "title", "desc", cursor, 10)
    assert exc_info.value.code == "CURSOR_MISMATCH"


def test_cursor_with_bad_sort_value_is_rejected() -> None:
    cursor = encode_cursor(CursorData("view_count", "many", 5))

    with pytest.raises(InvalidCursorError):
        plan_cursor_query(PostFilters(), "view_count", "desc", cursor, 10)


def test_garbage_cursor_is_rejected() -> None:
    with pytest.raises(InvalidCursorError):
        plan_cursor_query(PostFilters(), None, None, "definitely not a cursor", 10)


@pytest.mark.parametrize("order", ["asc", "desc"])
async def test_walk_with_duplicate_sort_values_is_total(session: AsyncSession, order: str) -> None:
    repo = PostRepository(session)
    for n in range(1, 24):
        await _make_post(repo, n, view_count=n % 4)

    pages = await _walk(repo, sort_by="view_count", order=order, limit=5)
    seen = [post_id for page in pages for post_id in page]

    assert len(seen) == len(set(seen)) == 23
    views = {n: n % 4 for n in range(1, 24)}
    sign = 1 if order == "asc" else -1
    assert seen == sorted(views, key=lambda i: (sign * views[i], sign * i))
    assert [len(p) for p in pages] == [5, 5, 5, 5, 3]


async def test_has_more_is_false_when_rows_equal_limit(session: AsyncSession) -> None:
    repo = PostRepository(session)
    for n in range(1, 6):
        await _make_post(repo, n)

    plan = plan_cursor_query(PostFilters(), "created_at", "desc", None, 5)
    page, has_more = split_page(await repo.list_by_cursor(plan), plan.limit)

    assert len(page) == 5
    assert has_more is False


async def test_has_more_is_true_with_one_extra_row(session: AsyncSession) -> None:
    repo = PostRepository(session)
    for n in range(1, 7):
        await _make_post(repo, n)

    pages = await _walk(repo, sort_by="created_at", order="desc", limit=5)
    assert pages == [[6, 5, 4, 3, 2], [1]]


async def test_title_sort_pages(session: AsyncSession) -> None:
    repo = PostRepository(session)
    for n, title in enumerate(["beta", "alpha", "gamma", "alpha", "delta"], start=1):
        await _make_post(repo, n, title=title)

    pages = await _walk(repo, sort_by="title", order="asc", limit=2)
    assert [i for page in pages for i in page] == [2, 4, 1, 5, 3]


async def test_title_sort_pages_past_title_with_unit_separator(session: AsyncSession) -> None:
    # Rows written before title validation existed may hold control characters
    repo = PostRepository(session)
    for n, title in enumerate(["a\x1fb", "a\x1fb\x1f", "c", "d"], start=1):
        await _make_post(repo, n, title=title)

    pages = await _walk(repo, sort_by="title", order="asc", limit=1)
    assert [i for page in pages for i in page] == [1, 2, 3, 4]


async def test_absent_published_at_sorts_first_descending(session: AsyncSession) -> None:
    repo = PostRepository(session)
    for n in range(1, 5):
        await _make_post(repo, n)
    for n in range(5, 8):
        await _make_post(repo, n, status="draft", published_at=None)

    pages = await _walk(repo, sort_by="published_at", order="desc", limit=2)
    assert [i for page in pages for i in page] == [7, 6, 5, 4, 3, 2, 1]


async def test_absent_published_at_sorts_last_ascending(session: AsyncSession) -> None:
    repo = PostRepository(session)
    for n in range(1, 5):
        await _make_post(repo, n)
    for n in range(5, 8):
        await _make_post(repo, n, status="draft", published_at=None)

    pages = await _walk(repo, sort_by="published_at", order="asc", limit=2)
    assert [i for page in pages for i in page] == [1, 2, 3, 4, 5, 6, 7]


async def test_status_filter(session: AsyncSession) -> None:
    repo = PostRepository(session)
    await _make_post(repo, 1)
    await _make_post(repo, 2, status="draft", published_at=None)
    await _make_post(repo, 3)

    pages = await _walk(
        repo,
        sort_by="created_at",
        order="desc",
        limit=10,
        filters=PostFilters(status="published"),
    )
    assert pages == [[3, 1]]


async def test_category_and_tag_filters(session: AsyncSession) -> None:
    repo = PostRepository(session)
    category = await CategoryRepository(session).get_or_create("databases")
    tags = await TagRepository(session).get_or_create_many(["Python", "SQL"])
    python, sql = (int(t.id) for t in tags)  # type: ignore[arg-type]

    p1 = await _make_post(repo, 1, category_id=category.id)
    p2 = await _make_post(repo, 2)
    p3 = await _make_post(repo, 3, category_id=category.id)
    await repo.set_tags(int(p1.id), [python, sql])  # type: ignore[arg-type]
    await repo.set_tags(int(p2.id), [python])  # type: ignore[arg-type]
    await repo.set_tags(int(p3.id), [sql])  # type: ignore[arg-type]

    by_category = await _walk(
        repo,
        sort_by="created_at",
        order="asc",
        limit=10,
        filters=PostFilters(category_slug="databases"),
    )
    by_tag = await _walk(
        repo,
        sort_by="created_at",
        order="asc",
        limit=1,
        filters=PostFilters(tag_slug="python"),
    )
    both = await _walk(
        repo,
        sort_by="created_at",
        order="asc",
        limit=10,
        filters=PostFilters(category_slug="databases", tag_slug="python"),
    )

    assert by_category == [[1, 3]]
    assert by_tag == [[1], [2]]
    assert both == [[1]]


async def test_listing_reads_nothing_after_last_page(session: AsyncSession) -> None:
    repo = PostRepository(session)
    posts = [await _make_post(repo, n) for n in range(1, 4)]

    cursor = mint_next_cursor(posts[0], SortField.PUBLISHED_AT)
    plan = plan_cursor_query(PostFilters(), None, None, cursor, 10)

    assert await repo.list_by_cursor(plan) == []
