"""
Opaque cursor codec and sort value serialization.

A cursor names the position of the last row of a page as the triple
``(sort_field, sort_value, id)``. The triple is joined with the ASCII unit
separator and wrapped in URL-safe base64 without padding, so it travels
untouched in a query string. Cursors are never stored server-side.

Sort values are written in a canonical text form whose lexical order agrees
with the natural order of the column:

- timestamps: UTC, ``YYYY-MM-DDTHH:MM:SS.nnnnnnnnnZ`` with exactly nine
  fractional digits
- integers: decimal text
- strings: unchanged

An absent timestamp is written as the empty string.
"""

from base64 import b64decode, urlsafe_b64encode
from binascii import Error as BinasciiError
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from re import ASCII
from re import compile as re_compile

from klog.errors import InvalidCursorError, UnsupportedSortFieldError

CURSOR_SEPARATOR = "\x1f"

_TIMESTAMP_PATTERN = re_compile(r"\A(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})\.(\d{9})Z\Z", ASCII)
_INTEGER_PATTERN = re_compile(r"\A-?\d+\Z", ASCII)


class SortField(StrEnum):
    """Post columns a listing may be ordered by."""

    PUBLISHED_AT = "published_at"
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"
    VIEW_COUNT = "view_count"
    TITLE = "title"


class SortOrder(StrEnum):
    """Ordering direction."""

    ASC = "asc"
    DESC = "desc"


TIMESTAMP_FIELDS = frozenset(
    {SortField.PUBLISHED_AT, SortField.CREATED_AT, SortField.UPDATED_AT},
)


@dataclass(frozen=True, slots=True)
class CursorData:
    """
    Decoded position of the last row of a page.

    Attributes
    ----------
        sort_field: Column the page was ordered by.
        sort_value: Canonical text of that column on the last row.
        id: Primary key of the last row, the tie-break key.
    """

    sort_field: str
    sort_value: str
    id: int


def encode_cursor(data: CursorData) -> str:
    """Encode a cursor triple as URL-safe base64 without padding."""
    raw = CURSOR_SEPARATOR.join((data.sort_field, data.sort_value, str(data.id)))
    return urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")


def decode_cursor(cursor: str) -> CursorData | None:
    """
    Decode a cursor produced by :func:`encode_cursor`.

    The codec checks structure only. Whether ``sort_field`` is known and
    ``sort_value`` parses is decided by the query planner.

    Args:
        cursor: Cursor string from the client. Empty means "first page".

    Returns:
        CursorData | None: The decoded triple, or ``None`` for an empty cursor.

    Raises:
        InvalidCursorError: If the cursor is not valid base64, not UTF-8,
            not in canonical form, has fewer than three parts or carries a
            bad id.
    """
    if not cursor:
        return None

    padded = cursor + "=" * (-len(cursor) % 4)
    try:
        payload = b64decode(padded, altchars=b"-_", validate=True)
        raw = payload.decode("utf-8")
    except (BinasciiError, ValueError) as e:
        raise InvalidCursorError from e
    # Only the exact text encode_cursor emits is accepted
    if urlsafe_b64encode(payload).decode("ascii").rstrip("=") != cursor:
        raise InvalidCursorError

    # The field is a plain word and the id is digits, so the value sits
    # between the first and the last separator even if it contains one
    sort_field, first_sep, rest = raw.partition(CURSOR_SEPARATOR)
    sort_value, last_sep, raw_id = rest.rpartition(CURSOR_SEPARATOR)
    if not first_sep or not last_sep:
        raise InvalidCursorError
    if not raw_id.isascii() or not raw_id.isdigit() or str(int(raw_id)) != raw_id:
        raise InvalidCursorError
    return CursorData(sort_field=sort_field, sort_value=sort_value, id=int(raw_id))


def format_timestamp(value: datetime) -> str:
    """Render a timestamp in UTC with nine fractional digits."""
    # SQLite hands back naive datetimes; they were written as UTC
    value = value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)
    return f"{value:%Y-%m-%dT%H:%M:%S}.{value.microsecond:06d}000Z"


def parse_timestamp(text: str) -> datetime:
    """Parse the canonical timestamp form back into an aware UTC datetime."""
    match = _TIMESTAMP_PATTERN.match(text)
    if match is None:
        mssg = f"Invalid timestamp in cursor: {text!r}"
        raise InvalidCursorError(mssg)
    seconds, fraction = match.groups()
    try:
        base = datetime.strptime(seconds, "%Y-%m-%dT%H:%M:%S").replace(tzinfo=UTC)
    except ValueError as e:
        mssg = f"Invalid timestamp in cursor: {text!r}"
        raise InvalidCursorError(mssg) from e
    # Storage keeps microseconds; the trailing digits are always zero on write
    return base.replace(microsecond=int(fraction[:6]))


def format_sort_value(field: str, value: object) -> str:
    """
    Serialize a column value into its canonical cursor text.

    Raises:
        UnsupportedSortFieldError: If ``field`` is not a sortable column.
    """
    if field in TIMESTAMP_FIELDS:
        if value is None:
            return ""
        if not isinstance(value, datetime):
            mssg = f"Expected a datetime for '{field}'"
            raise TypeError(mssg)
        return format_timestamp(value)
    if field == SortField.VIEW_COUNT:
        if not isinstance(value, int):
            mssg = f"Expected an integer for '{field}'"
            raise TypeError(mssg)
        return str(value)
    if field == SortField.TITLE:
        return str(value)
    raise UnsupportedSortFieldError(field)


def parse_sort_value(field: str, text: str) -> datetime | int | str | None:
    """
    Parse canonical cursor text back into a column value.

    Raises:
        UnsupportedSortFieldError: If ``field`` is not a sortable column.
        InvalidCursorError: If ``text`` is not valid for ``field``.
    """
    if field in TIMESTAMP_FIELDS:
        return None if text == "" else parse_timestamp(text)
    if field == SortField.VIEW_COUNT:
        if not _INTEGER_PATTERN.match(text):
            mssg = f"Invalid integer in cursor: {text!r}"
            raise InvalidCursorError(mssg)
        return int(text)
    if field == SortField.TITLE:
        return text
    raise UnsupportedSortFieldError(field)
