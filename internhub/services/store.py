"""
Record store backed by Neo4j.

Each collection is a node label; records are flat property maps keyed by
``id``. Services only ever talk to the primitives below, which keeps
them independent of the driver and lets tests swap in an in-memory store.
"""

import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from neo4j.exceptions import DriverError, Neo4jError

from internhub.core.database import db
from internhub.core.errors import NotFound, StoreError

logger = logging.getLogger(__name__)

LABELS = {
    "profiles": "Profile",
    "user_roles": "UserRole",
    "student_profiles": "StudentProfile",
    "batches": "Batch",
    "projects": "Project",
    "project_members": "ProjectMember",
    "leave_requests": "LeaveRequest",
    "admin_queries": "AdminQuery",
    "diary_entries": "DiaryEntry",
}

# Property names are interpolated into Cypher, so only plain identifiers pass
_FIELD_RE = re.compile(r"^[a-z_][a-z0-9_]*$")


def _label(collection: str) -> str:
    try:
        return LABELS[collection]
    except KeyError:
        raise ValueError(f"Unknown collection '{collection}'")


def _field(name: str) -> str:
    if not _FIELD_RE.match(name):
        raise ValueError(f"Invalid field name '{name}'")
    return name


def _native(value: Any) -> Any:
    # neo4j.time.Date / DateTime -> datetime.date / datetime.datetime
    if hasattr(value, "to_native"):
        return value.to_native()
    return value


def _to_record(node: Any, fields: Optional[Sequence[str]] = None) -> Dict[str, Any]:
    record = {k: _native(v) for k, v in dict(node).items()}
    if fields:
        record = {k: record.get(k) for k in fields}
    return record


def _where_clause(filters: Optional[Dict[str, Any]]):
    """Equality per field; a list/tuple/set value means membership."""
    clauses, params = [], {}
    for i, (name, value) in enumerate((filters or {}).items()):
        key = f"p{i}"
        if isinstance(value, (list, tuple, set)):
            clauses.append(f"n.{_field(name)} IN ${key}")
            params[key] = list(value)
        elif value is None:
            clauses.append(f"n.{_field(name)} IS NULL")
        else:
            clauses.append(f"n.{_field(name)} = ${key}")
            params[key] = value
    where = ("WHERE " + " AND ".join(clauses)) if clauses else ""
    return where, params


class Neo4jStore:
    def __init__(self, driver=db):
        self._db = driver

    def _run(self, query: str, **params) -> List[Any]:
        session = self._db.get_session()
        try:
            return [record["n"] for record in session.run(query, **params)]
        except (Neo4jError, DriverError, RuntimeError) as e:
            logger.exception("Store query failed: %s", " ".join(query.split())[:120])
            raise StoreError(str(e)) from e
        finally:
            session.close()

    def fetch(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        fields: Optional[Sequence[str]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        where, params = _where_clause(filters)
        query = f"MATCH (n:{_label(collection)}) {where} RETURN n"
        if order_by:
            query += f" ORDER BY n.{_field(order_by)} {'DESC' if descending else 'ASC'}"
        if limit is not None:
            query += " LIMIT $limit"
            params["limit"] = limit
        return [_to_record(node, fields) for node in self._run(query, **params)]

    def count(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> int:
        where, params = _where_clause(filters)
        query = f"MATCH (n:{_label(collection)}) {where} RETURN count(n) AS n"
        rows = self._run(query, **params)
        return rows[0] if rows else 0

    def insert(self, collection: str, record: Dict[str, Any]) -> Dict[str, Any]:
        props = {k: v for k, v in record.items() if v is not None}
        props.setdefault("id", str(uuid.uuid4()))
        props.setdefault("created_at", datetime.now(timezone.utc))
        for name in props:
            _field(name)
        query = f"CREATE (n:{_label(collection)}) SET n = $props RETURN n"
        return _to_record(self._run(query, props=props)[0])

    def update(self, collection: str, record_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        for name in changes:
            _field(name)
        # SET += with a null value removes the property
        query = f"""
        MATCH (n:{_label(collection)} {{id: $id}})
        SET n += $changes, n.updated_at = datetime()
        RETURN n
        """
        rows = self._run(query, id=record_id, changes=changes)
        if not rows:
            raise NotFound(f"No {collection} record with id {record_id}")
        return _to_record(rows[0])

    def delete(self, collection: str, record_id: str) -> None:
        query = f"MATCH (n:{_label(collection)} {{id: $id}}) DETACH DELETE n RETURN count(*) AS n"
        self._run(query, id=record_id)

    def next_sequence(self, name: str) -> int:
        """Increments and returns a named counter. The increment runs under the node's write lock."""
        query = """
        MERGE (n:Sequence {name: $name})
        ON CREATE SET n.value = 0
        SET n.value = n.value + 1
        RETURN n.value AS n
        """
        return self._run(query, name=name)[0]


store = Neo4jStore()


def get_store():
    return store
