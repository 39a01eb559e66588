"""
In-memory joins over independently fetched collections.

Keys are either a field name or a callable taking the record. All joins are
left joins: a missing related row attaches None (or an empty list / zero),
never raises. Inputs are not mutated.
"""

from collections import defaultdict
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

Record = Dict[str, Any]
Key = Union[str, Callable[[Record], Any]]

UNKNOWN = "Unknown"


def _key(key: Key) -> Callable[[Record], Any]:
    if callable(key):
        return key
    return lambda record: record.get(key)


def get_path(record: Optional[Record], path: str) -> Any:
    """Reads a dotted path such as ``profile.full_name``; None if any hop is missing."""
    value: Any = record
    for part in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def index_by(rows: Iterable[Record], key: Key) -> Dict[Any, Record]:
    """First row wins for duplicate keys, mirroring a find() over the list."""
    get = _key(key)
    index: Dict[Any, Record] = {}
    for row in rows:
        index.setdefault(get(row), row)
    return index


def group_by(rows: Iterable[Record], key: Key) -> Dict[Any, List[Record]]:
    get = _key(key)
    groups: Dict[Any, List[Record]] = defaultdict(list)
    for row in rows:
        groups[get(row)].append(row)
    return groups


def left_join(left: Iterable[Record], right: Iterable[Record], left_key: Key, right_key: Key = "id", as_: str = "related") -> List[Record]:
    index = index_by(right, right_key)
    get = _key(left_key)
    return [{**row, as_: index.get(get(row))} for row in left]


def attach_many(
    left: Iterable[Record],
    right: Iterable[Record],
    left_key: Key,
    right_key: Key,
    as_: str,
    transform: Optional[Callable[[Record], Record]] = None,
) -> List[Record]:
    groups = group_by(right, right_key)
    get = _key(left_key)
    out = []
    for row in left:
        related = groups.get(get(row), [])
        if transform:
            related = [transform(r) for r in related]
        out.append({**row, as_: list(related)})
    return out


def attach_count(left: Iterable[Record], right: Iterable[Record], left_key: Key, right_key: Key, as_: str = "count") -> List[Record]:
    counts: Dict[Any, int] = defaultdict(int)
    get_right = _key(right_key)
    for row in right:
        value = get_right(row)
        if value is not None:
            counts[value] += 1
    get = _key(left_key)
    return [{**row, as_: counts.get(get(row), 0)} for row in left]


def display_name(profile: Optional[Record]) -> str:
    if profile and profile.get("full_name"):
        return profile["full_name"]
    return UNKNOWN
