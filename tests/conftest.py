import copy
import threading
import uuid
from datetime import date, datetime, timezone

import pytest
from fastapi.testclient import TestClient

from internhub.core.errors import NotFound, StoreError
from internhub.core.security import get_current_user
from internhub.main import app
from internhub.models.auth import ApprovalStatus, CurrentUser, Role
from internhub.services.store import LABELS, get_store


class MemoryStore:
    """Dict-backed stand-in for Neo4jStore with the same filter semantics."""

    def __init__(self):
        self.tables = {name: [] for name in LABELS}
        self.sequences = {}
        self.fail_on = set()  # {(operation, collection)} or {(operation, "*")}
        self._lock = threading.Lock()

    def _check(self, operation, collection):
        if collection not in self.tables:
            raise ValueError(f"Unknown collection '{collection}'")
        if (operation, collection) in self.fail_on or (operation, "*") in self.fail_on:
            raise StoreError(f"{operation} on {collection} failed")

    @staticmethod
    def _matches(record, filters):
        for name, value in (filters or {}).items():
            actual = record.get(name)
            if isinstance(value, (list, tuple, set)):
                if actual not in value:
                    return False
            elif actual != value:
                return False
        return True

    def fetch(self, collection, filters=None, fields=None, order_by=None, descending=False, limit=None):
        self._check("fetch", collection)
        with self._lock:
            rows = [copy.deepcopy(r) for r in self.tables[collection] if self._matches(r, filters)]
        if order_by:
            present = [r for r in rows if r.get(order_by) is not None]
            missing = [r for r in rows if r.get(order_by) is None]
            present.sort(key=lambda r: r[order_by], reverse=descending)
            rows = missing + present if descending else present + missing
        if limit is not None:
            rows = rows[:limit]
        if fields:
            rows = [{k: r.get(k) for k in fields} for r in rows]
        return rows

    def count(self, collection, filters=None):
        self._check("count", collection)
        with self._lock:
            return sum(1 for r in self.tables[collection] if self._matches(r, filters))

    def insert(self, collection, record):
        self._check("insert", collection)
        props = {k: v for k, v in record.items() if v is not None}
        props.setdefault("id", str(uuid.uuid4()))
        props.setdefault("created_at", datetime.now(timezone.utc))
        with self._lock:
            self.tables[collection].append(props)
        return copy.deepcopy(props)

    def update(self, collection, record_id, changes):
        self._check("update", collection)
        with self._lock:
            for row in self.tables[collection]:
                if row.get("id") == record_id:
                    for name, value in changes.items():
                        if value is None:
                            row.pop(name, None)
                        else:
                            row[name] = value
                    row["updated_at"] = datetime.now(timezone.utc)
                    return copy.deepcopy(row)
        raise NotFound(f"No {collection} record with id {record_id}")

    def delete(self, collection, record_id):
        self._check("delete", collection)
        with self._lock:
            self.tables[collection] = [r for r in self.tables[collection] if r.get("id") != record_id]

    def next_sequence(self, name):
        if ("next_sequence", "*") in self.fail_on:
            raise StoreError(f"sequence {name} failed")
        with self._lock:
            self.sequences[name] = self.sequences.get(name, 0) + 1
            return self.sequences[name]


def ts(day, hour=9):
    """created_at helper so ordering in tests is deterministic."""
    return datetime(2026, 1, day, hour, tzinfo=timezone.utc)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def portal(store):
    """
    A small but complete portal:
    one admin, two faculty, three students (two approved, one pending),
    an ongoing, a completed and a future batch.
    """
    add_user(store, "A1", Role.ADMIN, "Asha Admin", "9000000001")
    add_user(store, "F1", Role.FACULTY, "Farah Faculty", "9000000002")
    add_user(store, "F2", Role.FACULTY, "Fred Faculty", "9000000003")

    store.insert("batches", {
        "id": "B1", "name": "Batch Ongoing", "course_code": "02",
        "start_date": date(2026, 1, 1), "end_date": date(2026, 3, 31),
        "assigned_faculty_id": "F1", "created_at": ts(1),
    })
    store.insert("batches", {
        "id": "B2", "name": "Batch Completed", "course_code": "01",
        "start_date": date(2025, 6, 1), "end_date": date(2025, 8, 31),
        "assigned_faculty_id": "F1", "created_at": ts(2),
    })
    store.insert("batches", {
        "id": "B3", "name": "Batch Future", "course_code": "01",
        "start_date": date(2026, 5, 1), "end_date": date(2026, 7, 31),
        "assigned_faculty_id": "F2", "created_at": ts(3),
    })

    add_user(store, "S1", Role.STUDENT, "Sara Student", "9111111111")
    add_student(store, "S1", ApprovalStatus.APPROVED, batch_id="B1", usn="1AB21CS001", student_id="FEST0226001", created_at=ts(4))
    add_user(store, "S2", Role.STUDENT, "Sam Student", "9222222222")
    add_student(store, "S2", ApprovalStatus.APPROVED, batch_id="B3", usn="1AB21CS002", student_id="FEST0126002", created_at=ts(5))
    add_user(store, "S3", Role.STUDENT, "Pia Pending", "9333333333")
    add_student(store, "S3", ApprovalStatus.PENDING, batch_id="B1", usn="1AB21CS003", created_at=ts(6))
    # S1 and S2 already hold ids 001 and 002
    store.sequences["student_id"] = 2
    return store


def add_user(store, user_id, role, full_name, phone):
    store.insert("profiles", {
        "id": user_id,
        "full_name": full_name,
        "email": f"{user_id.lower()}@example.edu",
        "phone": phone,
    })
    store.insert("user_roles", {"user_id": user_id, "role": role.value})


def add_student(store, user_id, status, created_at=None, **fields):
    return store.insert("student_profiles", {
        "id": f"SP-{user_id}",
        "user_id": user_id,
        "status": status.value,
        "college_name": "City College",
        "branch": "CSE",
        "internship_role": "ai-ml",
        "skill_level": "beginner",
        "created_at": created_at,
        **fields,
    })


def as_user(user_id, role, approval_status=None):
    return CurrentUser(user_id=user_id, role=role, approval_status=approval_status)


ADMIN = as_user("A1", Role.ADMIN)
FACULTY = as_user("F1", Role.FACULTY)
STUDENT = as_user("S1", Role.STUDENT, ApprovalStatus.APPROVED)
PENDING_STUDENT = as_user("S3", Role.STUDENT, ApprovalStatus.PENDING)


@pytest.fixture
def login():
    """Swaps the session context seen by the routes."""
    def _login(user):
        app.dependency_overrides[get_current_user] = lambda: user
    return _login


@pytest.fixture
def client(portal):
    app.dependency_overrides[get_store] = lambda: portal
    with_client = TestClient(app)
    yield with_client
    app.dependency_overrides.clear()
