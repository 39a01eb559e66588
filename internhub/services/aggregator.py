"""
Per-view read models.

Each view fans its independent reads out concurrently, waits for all of them
inside one task group, then joins the results in memory. A failed read
cancels its siblings and fails the whole view; there are no partial views.
"""

import asyncio
import logging
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional

from internhub.core.errors import StoreError, TransientIOFailure
from internhub.models.auth import ApprovalStatus, CurrentUser, Role
from internhub.services.batch_status import active_batches, batch_status, completed_batches, ongoing_batches
from internhub.services.dispatcher import current_week_number, is_editable
from internhub.services.joins import attach_count, attach_many, display_name, group_by, index_by, left_join
from internhub.services.listing import DateRange, Equals, OnDate, TextSearch, apply_filters, build_listing

logger = logging.getLogger(__name__)

PROFILE_SUMMARY = ["id", "full_name", "email", "phone", "avatar_url"]

STUDENT_SEARCH_FIELDS = ("profile.full_name", "profile.email", "profile.phone", "student_id", "usn")
PROJECT_SEARCH_FIELDS = ("name", "description", "lead_profile.full_name")

FACULTY_LEAVE_LIMIT = 50
FACULTY_DIARY_LIMIT = 100


async def _in_executor(read: Callable[[], Any]) -> Any:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, read)


async def fan_out(*reads: Callable[[], Any]) -> List[Any]:
    """Runs blocking store reads concurrently and returns their results in order."""
    try:
        async with asyncio.TaskGroup() as group:
            tasks = [group.create_task(_in_executor(read)) for read in reads]
    except ExceptionGroup as errors:
        first = errors.exceptions[0]
        logger.warning("Aggregate aborted after failed read: %s", first)
        if isinstance(first, StoreError):
            raise TransientIOFailure("Failed to load data. Please try again.") from first
        raise first
    return [task.result() for task in tasks]


def _ids(rows, key) -> List[str]:
    # Order-preserving de-duplication, dropping missing keys
    return list(dict.fromkeys(row[key] for row in rows if row.get(key)))


# =========================================================
# 1. DASHBOARDS
# =========================================================

async def admin_dashboard(store, on: Optional[date] = None) -> Dict[str, Any]:
    (
        pending_count,
        student_count,
        faculty_count,
        pending_leaves,
        open_queries,
        approved_students,
        batches,
    ) = await fan_out(
        lambda: store.count("student_profiles", {"status": ApprovalStatus.PENDING.value}),
        lambda: store.count("user_roles", {"role": Role.STUDENT.value}),
        lambda: store.count("user_roles", {"role": Role.FACULTY.value}),
        lambda: store.count("leave_requests", {"status": "pending"}),
        lambda: store.count("admin_queries", {"is_resolved": False}),
        lambda: store.fetch("student_profiles", {"status": ApprovalStatus.APPROVED.value}, fields=["batch_id"]),
        lambda: store.fetch("batches", fields=["id", "name", "start_date", "end_date"], order_by="name"),
    )

    batches = attach_count(batches, approved_students, "id", "batch_id", as_="student_count")

    return {
        "stats": {
            "pending_approvals": pending_count,
            "total_students": student_count,
            "total_faculty": faculty_count,
            "pending_leaves": pending_leaves,
            "pending_queries": open_queries,
        },
        "ongoing_batches": ongoing_batches(batches, on),
        "completed_batches": completed_batches(batches, on),
    }


async def student_dashboard(store, user: CurrentUser) -> Dict[str, Any]:
    (profiles,) = await fan_out(
        lambda: store.fetch("student_profiles", {"user_id": user.user_id}, fields=["student_id", "batch_id", "status"], limit=1),
    )
    student = profiles[0] if profiles else {}
    batch_id = student.get("batch_id")
    approved = student.get("status") == ApprovalStatus.APPROVED.value

    reads = [lambda: store.fetch("batches", {"id": batch_id}, fields=["name"], limit=1) if batch_id else []]
    if approved:
        reads.append(lambda: store.count("project_members", {"user_id": user.user_id}))
        reads.append(lambda: store.count("leave_requests", {"user_id": user.user_id}))
    results = await fan_out(*reads)

    batch = results[0][0] if results[0] else None
    stats = {
        "student_id": student.get("student_id"),
        "batch_name": batch["name"] if batch else None,
        "approval_status": student.get("status") or ApprovalStatus.PENDING.value,
    }
    if approved:
        stats["projects"] = results[1]
        stats["leaves"] = results[2]
    return stats


async def faculty_dashboard(store) -> Dict[str, Any]:
    students, profiles, batches, projects, members, leaves, diaries, student_ids = await fan_out(
        lambda: store.fetch("student_profiles", {"status": ApprovalStatus.APPROVED.value}, order_by="created_at", descending=True),
        lambda: store.fetch("profiles", fields=PROFILE_SUMMARY),
        lambda: store.fetch("batches", fields=["id", "name"]),
        lambda: store.fetch("projects", order_by="created_at", descending=True),
        lambda: store.fetch("project_members", fields=["id", "project_id", "user_id"]),
        lambda: store.fetch("leave_requests", order_by="created_at", descending=True, limit=FACULTY_LEAVE_LIMIT),
        lambda: store.fetch("diary_entries", order_by="entry_date", descending=True, limit=FACULTY_DIARY_LIMIT),
        lambda: store.fetch("student_profiles", fields=["user_id", "student_id"]),
    )
    by_profile = index_by(profiles, "id")

    students = left_join(students, profiles, "user_id", "id", as_="profile")
    students = left_join(students, batches, "batch_id", "id", as_="batch")

    projects = left_join(projects, profiles, "lead_id", "id", as_="lead_profile")
    projects = attach_many(
        projects, members, "id", "project_id", as_="members",
        transform=lambda m: {**m, "profile": by_profile.get(m["user_id"])},
    )
    for project in projects:
        project["lead_name"] = display_name(project["lead_profile"])

    leaves = left_join(leaves, profiles, "user_id", "id", as_="profile")

    diaries = left_join(diaries, profiles, "user_id", "id", as_="profile")
    diaries = left_join(diaries, student_ids, "user_id", "user_id", as_="student_profile")

    return {
        "students": students,
        "projects": projects,
        "leave_requests": leaves,
        "diary_entries": diaries,
    }


# =========================================================
# 2. ADMIN / FACULTY LISTS
# =========================================================

async def student_directory(
    store,
    search: Optional[str] = None,
    batch_id: Optional[str] = None,
    status: Optional[str] = None,
    page: int = 1,
    sort_by: Optional[str] = None,
    descending: bool = False,
) -> Dict[str, Any]:
    students, batches = await fan_out(
        lambda: store.fetch("student_profiles", order_by="created_at", descending=True),
        lambda: store.fetch("batches", fields=["id", "name"], order_by="name"),
    )
    (profiles,) = await fan_out(
        lambda: store.fetch("profiles", {"id": _ids(students, "user_id")}),
    )

    students = left_join(students, profiles, "user_id", "id", as_="profile")
    batch_names = {b["id"]: b["name"] for b in batches}
    for student in students:
        student["batch_name"] = batch_names.get(student.get("batch_id"))

    listing = build_listing(
        students,
        [
            TextSearch(search, STUDENT_SEARCH_FIELDS),
            Equals("batch_id", batch_id),
            Equals("status", status),
        ],
        page=page,
        sort_by=sort_by,
        descending=descending,
    )

    by_batch = attach_count(batches, students, "id", "batch_id", as_="count")
    return {
        "results": listing,
        "stats": {
            "total": len(students),
            "approved": sum(1 for s in students if s.get("status") == ApprovalStatus.APPROVED.value),
            "pending": sum(1 for s in students if s.get("status") == ApprovalStatus.PENDING.value),
            "by_batch": [{"name": b["name"], "count": b["count"]} for b in by_batch],
        },
        "batches": batches,
    }


async def pending_approvals(store) -> List[Dict[str, Any]]:
    (pending,) = await fan_out(
        lambda: store.fetch(
            "student_profiles",
            {"status": ApprovalStatus.PENDING.value},
            fields=["id", "user_id", "student_id", "created_at"],
            order_by="created_at",
        ),
    )
    if not pending:
        return []
    (profiles,) = await fan_out(
        lambda: store.fetch("profiles", {"id": _ids(pending, "user_id")}, fields=PROFILE_SUMMARY),
    )
    return left_join(pending, profiles, "user_id", "id", as_="profile")


async def project_overview(
    store,
    user: CurrentUser,
    search: Optional[str] = None,
    course: Optional[str] = None,
    batch_id: Optional[str] = None,
    created_on: Optional[str] = None,
    page: int = 1,
    on: Optional[date] = None,
) -> Dict[str, Any]:
    batches, projects = await fan_out(
        lambda: store.fetch("batches", fields=["id", "name", "start_date", "end_date", "assigned_faculty_id"], order_by="name"),
        lambda: store.fetch("projects", order_by="created_at", descending=True),
    )
    batches = active_batches(batches, on)
    if user.role == Role.FACULTY:
        batches = [b for b in batches if b.get("assigned_faculty_id") == user.user_id]

    (members,) = await fan_out(
        lambda: store.fetch("project_members", {"project_id": _ids(projects, "id")}, fields=["id", "project_id", "user_id"]),
    )
    user_ids = list(dict.fromkeys(_ids(projects, "lead_id") + _ids(members, "user_id")))
    profiles, student_profiles = await fan_out(
        lambda: store.fetch("profiles", {"id": user_ids}, fields=["id", "full_name", "email", "phone"]),
        lambda: store.fetch("student_profiles", {"user_id": user_ids}, fields=["user_id", "internship_role", "batch_id"]),
    )
    by_profile = index_by(profiles, "id")
    by_student = index_by(student_profiles, "user_id")

    projects = left_join(projects, profiles, "lead_id", "id", as_="lead_profile")
    projects = left_join(projects, student_profiles, "lead_id", "user_id", as_="lead_student")
    projects = attach_many(
        projects, members, "id", "project_id", as_="members",
        transform=lambda m: {
            **m,
            "profile": by_profile.get(m["user_id"]),
            "student_profile": by_student.get(m["user_id"]),
        },
    )
    for project in projects:
        project["lead_name"] = display_name(project["lead_profile"])

    if user.role == Role.FACULTY:
        assigned = {b["id"] for b in batches}
        projects = [
            p for p in projects
            if p["lead_student"] and p["lead_student"].get("batch_id") in assigned
        ]

    listing = build_listing(
        projects,
        [
            TextSearch(search, PROJECT_SEARCH_FIELDS),
            Equals("lead_student.internship_role", course),
            Equals("lead_student.batch_id", batch_id),
            OnDate("created_at", created_on, on=on),
        ],
        page=page,
    )
    return {"results": listing, "batches": [{"id": b["id"], "name": b["name"]} for b in batches]}


async def leave_overview(
    store,
    leave_date: Optional[str] = None,
    batch_id: Optional[str] = None,
    course: Optional[str] = None,
    from_date: Optional[str] = None,
    to_date: Optional[str] = None,
    page: int = 1,
    on: Optional[date] = None,
) -> Dict[str, Any]:
    leaves, batches = await fan_out(
        lambda: store.fetch("leave_requests", order_by="created_at", descending=True),
        lambda: store.fetch("batches", fields=["id", "name"], order_by="name"),
    )
    user_ids = _ids(leaves, "user_id")
    profiles, student_profiles = await fan_out(
        lambda: store.fetch("profiles", {"id": user_ids}, fields=["id", "full_name", "email", "phone"]),
        lambda: store.fetch("student_profiles", {"user_id": user_ids}, fields=["user_id", "batch_id", "internship_role"]),
    )
    leaves = left_join(leaves, profiles, "user_id", "id", as_="profile")
    leaves = left_join(leaves, student_profiles, "user_id", "user_id", as_="student_profile")

    listing = build_listing(
        leaves,
        [
            OnDate("leave_date", leave_date, on=on),
            DateRange("leave_date", from_date, to_date),
            Equals("student_profile.batch_id", batch_id),
            Equals("student_profile.internship_role", course),
        ],
        page=page,
    )
    return {"results": listing, "counts": _status_counts(leaves), "batches": batches}


async def query_overview(store, category: Optional[str] = None) -> Dict[str, Any]:
    (queries,) = await fan_out(
        lambda: store.fetch("admin_queries", order_by="created_at", descending=True),
    )
    user_ids = _ids(queries, "user_id")
    profiles, student_profiles = await fan_out(
        lambda: store.fetch("profiles", {"id": user_ids}, fields=["id", "full_name", "email", "phone"]),
        lambda: store.fetch("student_profiles", {"user_id": user_ids}, fields=["user_id", "batch_id", "student_id"]),
    )
    queries = left_join(queries, profiles, "user_id", "id", as_="profile")
    queries = left_join(queries, student_profiles, "user_id", "user_id", as_="student_profile")
    queries = apply_filters(queries, [Equals("category", category)])

    return {
        "pending": [q for q in queries if not q.get("is_resolved")],
        "resolved": [q for q in queries if q.get("is_resolved")],
    }


async def batch_overview(store, on: Optional[date] = None) -> Dict[str, Any]:
    batches, faculty_roles, students = await fan_out(
        lambda: store.fetch("batches", order_by="created_at", descending=True),
        lambda: store.fetch("user_roles", {"role": Role.FACULTY.value}, fields=["user_id"]),
        lambda: store.fetch("student_profiles", fields=["batch_id"]),
    )
    faculty_ids = _ids(faculty_roles, "user_id")
    (profiles,) = await fan_out(
        lambda: store.fetch("profiles", {"id": faculty_ids}, fields=["id", "full_name"]),
    )
    by_profile = index_by(profiles, "id")

    batches = attach_count(batches, students, "id", "batch_id", as_="student_count")
    for batch in batches:
        batch["status"] = batch_status(batch, on).value
        faculty_id = batch.get("assigned_faculty_id")
        batch["faculty_name"] = display_name(by_profile.get(faculty_id)) if faculty_id else None

    return {
        "batches": batches,
        "faculty_options": [
            {"user_id": uid, "full_name": display_name(by_profile.get(uid))} for uid in faculty_ids
        ],
    }


async def faculty_directory(store) -> List[Dict[str, Any]]:
    (roles,) = await fan_out(
        lambda: store.fetch("user_roles", {"role": Role.FACULTY.value}, fields=["user_id"]),
    )
    if not roles:
        return []
    (profiles,) = await fan_out(
        lambda: store.fetch("profiles", {"id": _ids(roles, "user_id")}, fields=PROFILE_SUMMARY),
    )
    return left_join(roles, profiles, "user_id", "id", as_="profile")


# =========================================================
# 3. PERSONAL VIEWS
# =========================================================

async def my_projects(store, user: CurrentUser) -> List[Dict[str, Any]]:
    led, memberships = await fan_out(
        lambda: store.fetch("projects", {"lead_id": user.user_id}),
        lambda: store.fetch("project_members", {"user_id": user.user_id}, fields=["project_id"]),
    )
    led_ids = _ids(led, "id")
    joined_ids = [pid for pid in _ids(memberships, "project_id") if pid not in led_ids]
    project_ids = led_ids + joined_ids

    joined, members = await fan_out(
        lambda: store.fetch("projects", {"id": joined_ids}) if joined_ids else [],
        lambda: store.fetch("project_members", {"project_id": project_ids}) if project_ids else [],
    )
    (profiles,) = await fan_out(
        lambda: store.fetch("profiles", {"id": _ids(members, "user_id")}, fields=PROFILE_SUMMARY) if members else [],
    )
    by_profile = index_by(profiles, "id")

    # Projects the user leads come first, then the ones they joined
    projects = list(index_by(led + joined, "id").values())
    projects = attach_many(
        projects, members, "id", "project_id", as_="members",
        transform=lambda m: {**m, "profile": by_profile.get(m["user_id"])},
    )
    for project in projects:
        project["is_lead"] = project.get("lead_id") == user.user_id
    return projects


async def my_leaves(store, user: CurrentUser) -> Dict[str, Any]:
    (leaves,) = await fan_out(
        lambda: store.fetch("leave_requests", {"user_id": user.user_id}, order_by="created_at", descending=True),
    )
    return {"requests": leaves, "counts": _status_counts(leaves)}


async def my_queries(store, user: CurrentUser) -> List[Dict[str, Any]]:
    (queries,) = await fan_out(
        lambda: store.fetch("admin_queries", {"user_id": user.user_id}, order_by="created_at", descending=True),
    )
    return queries


async def profile_view(store, user: CurrentUser, on: Optional[date] = None) -> Dict[str, Any]:
    reads = [
        lambda: store.fetch("profiles", {"id": user.user_id}, limit=1),
        lambda: store.fetch("batches", fields=["id", "name", "start_date", "end_date"], order_by="name"),
    ]
    if user.role == Role.STUDENT:
        reads.append(lambda: store.fetch("student_profiles", {"user_id": user.user_id}, limit=1))
    results = await fan_out(*reads)

    profile = results[0][0] if results[0] else None
    student = None
    if user.role == Role.STUDENT and results[2]:
        student = results[2][0]

    return {
        "profile": profile,
        "student_profile": student,
        "academic_locked": bool(student and student.get("status") == ApprovalStatus.APPROVED.value),
        "active_batches": active_batches(results[1], on),
    }


async def my_diary(store, user: CurrentUser, now: Optional[datetime] = None) -> Dict[str, Any]:
    (entries,) = await fan_out(
        lambda: store.fetch("diary_entries", {"user_id": user.user_id}, order_by="entry_date", descending=True),
    )
    for entry in entries:
        entry["editable"] = is_editable(entry, now)

    weeks = [
        {
            "week_number": week,
            "entries": rows,
            "total_hours": round(sum(float(r.get("hours_worked") or 0) for r in rows), 2),
        }
        for week, rows in sorted(group_by(entries, "week_number").items(), key=lambda item: item[0] or 0, reverse=True)
    ]
    return {"current_week": current_week_number(entries), "weeks": weeks, "total_entries": len(entries)}


async def diary_overview(
    store,
    course: Optional[str] = None,
    entry_date: Optional[str] = None,
    on: Optional[date] = None,
) -> Dict[str, Any]:
    """Diary entries filtered by track and entry date, grouped per student."""
    (entries,) = await fan_out(
        lambda: store.fetch("diary_entries", order_by="entry_date", descending=True),
    )
    user_ids = _ids(entries, "user_id")
    profiles, student_profiles = await fan_out(
        lambda: store.fetch("profiles", {"id": user_ids}, fields=["id", "full_name", "email"]),
        lambda: store.fetch("student_profiles", {"user_id": user_ids}, fields=["user_id", "internship_role", "student_id"]),
    )
    entries = left_join(entries, profiles, "user_id", "id", as_="profile")
    entries = left_join(entries, student_profiles, "user_id", "user_id", as_="student_profile")
    entries = apply_filters(entries, [
        Equals("student_profile.internship_role", course),
        OnDate("entry_date", entry_date, on=on),
    ])

    students = [
        {
            "user_id": user_id,
            "profile": rows[0]["profile"],
            "student_profile": rows[0]["student_profile"],
            "entries": rows,
            "total_hours": round(sum(float(r.get("hours_worked") or 0) for r in rows), 2),
        }
        for user_id, rows in group_by(entries, "user_id").items()
    ]
    return {"students": students, "total_entries": len(entries), "total_students": len(students)}


def _status_counts(rows) -> Dict[str, int]:
    counts = {"pending": 0, "approved": 0, "rejected": 0}
    for row in rows:
        status = row.get("status") or "pending"
        counts[status] = counts.get(status, 0) + 1
    return counts
