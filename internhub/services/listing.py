"""
Client-side style list processing: filter, then sort, then paginate.

Everything here is a pure function of (rows, filter state). Filters are
predicates combined with AND, so their order never changes the result.
"""

import math
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

from pydantic import BaseModel

from internhub.core.config import settings
from internhub.core.errors import ValidationFailure
from internhub.services.batch_status import as_date, today
from internhub.services.joins import get_path

Record = Dict[str, Any]

ALL = "all"


def _is_unset(value: Any) -> bool:
    return value is None or value == "" or value == ALL


def _parse_day(value: Union[date, str]) -> date:
    try:
        return as_date(value)
    except ValueError:
        raise ValidationFailure(f"Invalid date filter '{value}'. Use YYYY-MM-DD.")


class TextSearch:
    """Case-insensitive substring match against any of the given (dotted) fields."""

    def __init__(self, query: Optional[str], fields: Sequence[str]):
        self.query = (query or "").strip().lower()
        self.fields = tuple(fields)

    @property
    def active(self) -> bool:
        return bool(self.query)

    def __call__(self, record: Record) -> bool:
        for path in self.fields:
            value = get_path(record, path)
            if value is not None and self.query in str(value).lower():
                return True
        return False


class Equals:
    """Exact match on a categorical field; "all" or empty disables it."""

    def __init__(self, path: str, value: Any):
        self.path = path
        self.value = getattr(value, "value", value)

    @property
    def active(self) -> bool:
        return not _is_unset(self.value)

    def __call__(self, record: Record) -> bool:
        actual = get_path(record, self.path)
        return getattr(actual, "value", actual) == self.value


class OnDate:
    """Calendar-day equality. Accepts a date, an ISO string, or the shortcut "today"."""

    def __init__(self, path: str, value: Union[date, str, None], on: Optional[date] = None):
        self.path = path
        if _is_unset(value):
            self.day = None
        elif value == "today":
            self.day = on or today()
        else:
            self.day = _parse_day(value)

    @property
    def active(self) -> bool:
        return self.day is not None

    def __call__(self, record: Record) -> bool:
        value = get_path(record, self.path)
        return value is not None and as_date(value) == self.day


class DateRange:
    """Inclusive range; either bound may be open."""

    def __init__(self, path: str, start: Union[date, str, None] = None, end: Union[date, str, None] = None):
        self.path = path
        self.start = None if _is_unset(start) else _parse_day(start)
        self.end = None if _is_unset(end) else _parse_day(end)

    @property
    def active(self) -> bool:
        return self.start is not None or self.end is not None

    def __call__(self, record: Record) -> bool:
        value = get_path(record, self.path)
        if value is None:
            return False
        day = as_date(value)
        if self.start is not None and day < self.start:
            return False
        if self.end is not None and day > self.end:
            return False
        return True


RowFilter = Union[TextSearch, Equals, OnDate, DateRange, Callable[[Record], bool]]


def apply_filters(rows: Iterable[Record], filters: Sequence[RowFilter]) -> List[Record]:
    active = [f for f in filters if getattr(f, "active", True)]
    return [row for row in rows if all(f(row) for f in active)]


def sort_rows(rows: Iterable[Record], key: Optional[str], descending: bool = False) -> List[Record]:
    rows = list(rows)
    if not key:
        return rows
    present = [r for r in rows if get_path(r, key) is not None]
    missing = [r for r in rows if get_path(r, key) is None]
    present.sort(key=lambda r: get_path(r, key), reverse=descending)
    # Rows without the key always go last
    return present + missing


class Page(BaseModel):
    items: List[Dict[str, Any]]
    page: int
    page_size: int
    total: int
    page_count: int
    first_index: int
    last_index: int


def page_count(total: int, page_size: int) -> int:
    return math.ceil(total / page_size) if total else 0


def paginate(rows: Sequence[Record], page: int = 1, page_size: Optional[int] = None) -> Page:
    size = page_size or settings.PAGE_SIZE
    if size < 1:
        raise ValueError("page_size must be positive")
    total = len(rows)
    pages = page_count(total, size)
    current = min(max(page, 1), max(pages, 1))
    start = (current - 1) * size
    items = list(rows[start:start + size])
    return Page(
        items=items,
        page=current,
        page_size=size,
        total=total,
        page_count=pages,
        first_index=start + 1 if items else 0,
        last_index=start + len(items),
    )


def build_listing(
    rows: Iterable[Record],
    filters: Sequence[RowFilter] = (),
    page: int = 1,
    page_size: Optional[int] = None,
    sort_by: Optional[str] = None,
    descending: bool = False,
) -> Page:
    filtered = apply_filters(rows, filters)
    return paginate(sort_rows(filtered, sort_by, descending), page, page_size)
