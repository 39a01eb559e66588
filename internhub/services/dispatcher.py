"""
State transitions and creations.

Every operation validates before it writes, performs its write as a single
store request (project creation is the one two-step exception, undone by a
compensating delete), and returns the stored record. Nothing is cached or
updated optimistically; callers re-read the affected view afterwards.
"""

import logging
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

from internhub.core.config import settings
from internhub.core.errors import Forbidden, NotFound, StoreError, TransientIOFailure, ValidationFailure
from internhub.models.auth import ApprovalStatus, CurrentUser, Role
from internhub.models.batch import BatchStatus
from internhub.models.leave import LeaveStatus
from internhub.models.user import ACADEMIC_FIELDS
from internhub.services.batch_status import batch_status

logger = logging.getLogger(__name__)

MUTABLE_PROFILE_FIELDS = ("full_name", "phone", "bio", "linkedin_url")
REQUIRED_BATCH_FIELDS = ("name", "start_date", "end_date")
DEFAULT_COURSE_CODE = "01"
STUDENT_ID_SEQUENCE = "student_id"


@contextmanager
def _store_call(action: str):
    try:
        yield
    except StoreError as e:
        raise TransientIOFailure(f"Failed to {action}.") from e


def _now(now: Optional[datetime]) -> datetime:
    return now or datetime.now(timezone.utc)


def _get_one(store, collection: str, record_id: str, what: str, action: str) -> Dict[str, Any]:
    with _store_call(action):
        rows = store.fetch(collection, {"id": record_id}, limit=1)
    if not rows:
        raise NotFound(f"{what} not found")
    return rows[0]


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


# =========================================================
# 1. REVIEW DECISIONS (ADMIN)
# =========================================================

def decide_leave(store, leave_id: str, approve: bool, reviewer: CurrentUser, now: Optional[datetime] = None) -> Dict[str, Any]:
    leave = _get_one(store, "leave_requests", leave_id, "Leave request", "update leave request")

    current = leave.get("status") or LeaveStatus.PENDING.value
    if current != LeaveStatus.PENDING.value:
        raise ValidationFailure(f"Leave request is already {current}.")

    new_status = LeaveStatus.APPROVED if approve else LeaveStatus.REJECTED
    with _store_call("update leave request"):
        updated = store.update("leave_requests", leave_id, {
            "status": new_status.value,
            "reviewed_by": reviewer.user_id,
            "reviewed_at": _now(now),
        })

    logger.info("Leave request %s %s by %s", leave_id, new_status.value, reviewer.user_id)
    return updated


def set_query_resolution(store, query_id: str, resolved: bool, now: Optional[datetime] = None) -> Dict[str, Any]:
    # Resolving again refreshes resolved_at
    with _store_call("update query"):
        updated = store.update("admin_queries", query_id, {
            "is_resolved": resolved,
            "resolved_at": _now(now) if resolved else None,
        })

    logger.info("Query %s %s", query_id, "resolved" if resolved else "reopened")
    return updated


def decide_student(store, student_profile_id: str, approve: bool, now: Optional[datetime] = None) -> Dict[str, Any]:
    student = _get_one(store, "student_profiles", student_profile_id, "Student profile", "update student status")

    current = student.get("status") or ApprovalStatus.PENDING.value
    if current != ApprovalStatus.PENDING.value:
        raise ValidationFailure(f"Student is already {current}.")

    changes: Dict[str, Any] = {
        "status": (ApprovalStatus.APPROVED if approve else ApprovalStatus.REJECTED).value,
    }
    if approve and not student.get("student_id"):
        changes["student_id"] = _next_student_id(store, student, _now(now))

    with _store_call("update student status"):
        updated = store.update("student_profiles", student_profile_id, changes)

    logger.info("Student profile %s %s", student_profile_id, changes["status"])
    return updated


def _next_student_id(store, student: Dict[str, Any], now: datetime) -> str:
    """FEST + course code + two-digit year + three-digit sequence, e.g. FEST0126007."""
    course_code = DEFAULT_COURSE_CODE
    with _store_call("generate student id"):
        if student.get("batch_id"):
            batches = store.fetch("batches", {"id": student["batch_id"]}, fields=["course_code"], limit=1)
            if batches and batches[0].get("course_code"):
                course_code = batches[0]["course_code"]
        sequence = store.next_sequence(STUDENT_ID_SEQUENCE)
    return f"FEST{course_code}{now.year % 100:02d}{sequence:03d}"


# =========================================================
# 2. BATCHES
# =========================================================

def save_batch(store, data: Dict[str, Any], batch_id: Optional[str] = None) -> Dict[str, Any]:
    """Creates a batch, or partially updates one when batch_id is given."""
    if batch_id is None:
        missing = [f for f in REQUIRED_BATCH_FIELDS if _blank(data.get(f))]
    else:
        missing = [f for f in REQUIRED_BATCH_FIELDS if f in data and _blank(data[f])]
    if missing:
        raise ValidationFailure("Please fill in all required fields: " + ", ".join(missing))

    record = dict(data)
    if "name" in record:
        record["name"] = record["name"].strip()
    if record.get("assigned_faculty_id") == "":
        record["assigned_faculty_id"] = None
    # start and end dates are not checked against each other

    if batch_id is None:
        record.setdefault("course_code", DEFAULT_COURSE_CODE)
        with _store_call("save batch"):
            saved = store.insert("batches", record)
        logger.info("Batch %s created", saved["id"])
    else:
        with _store_call("save batch"):
            saved = store.update("batches", batch_id, record)
        logger.info("Batch %s updated", batch_id)
    return saved


# =========================================================
# 3. PROJECTS
# =========================================================

def create_project(store, lead: CurrentUser, name: str, description: Optional[str] = None) -> Dict[str, Any]:
    if _blank(name):
        raise ValidationFailure("Please provide a project name.")

    with _store_call("create project"):
        project = store.insert("projects", {
            "name": name.strip(),
            "description": description or None,
            "lead_id": lead.user_id,
        })

    try:
        member = store.insert("project_members", {
            "project_id": project["id"],
            "user_id": lead.user_id,
            "joined_at": datetime.now(timezone.utc),
        })
    except StoreError as e:
        logger.error("Lead membership insert failed for project %s, removing project", project["id"])
        try:
            store.delete("projects", project["id"])
        except StoreError:
            logger.exception("Compensating delete failed; project %s is orphaned", project["id"])
        raise TransientIOFailure("Failed to create project.") from e

    logger.info("Project %s created by %s", project["id"], lead.user_id)
    return {**project, "members": [member]}


def find_member_by_phone(store, phone: str) -> Dict[str, Any]:
    if _blank(phone):
        raise ValidationFailure("Please enter a phone number.")
    with _store_call("search for member"):
        matches = store.fetch("profiles", {"phone": phone.strip()}, fields=["id", "full_name", "email"], limit=1)
    if not matches:
        raise NotFound("No user found with that phone number.")
    match = matches[0]
    return {"user_id": match["id"], "full_name": match.get("full_name"), "email": match.get("email")}


def add_project_member(store, project_id: str, phone: str, actor: CurrentUser) -> Dict[str, Any]:
    project = _get_one(store, "projects", project_id, "Project", "add member")
    if project.get("lead_id") != actor.user_id:
        raise Forbidden("Only the project lead can add members.")

    with _store_call("add member"):
        members = store.fetch("project_members", {"project_id": project_id}, fields=["user_id"])
    if len(members) >= settings.MAX_TEAM_SIZE:
        raise ValidationFailure(f"Maximum team size is {settings.MAX_TEAM_SIZE} members.")

    candidate = find_member_by_phone(store, phone)
    if any(m["user_id"] == candidate["user_id"] for m in members):
        raise ValidationFailure("This user is already a team member.")

    with _store_call("add member"):
        member = store.insert("project_members", {
            "project_id": project_id,
            "user_id": candidate["user_id"],
            "joined_at": datetime.now(timezone.utc),
        })

    logger.info("User %s added to project %s", candidate["user_id"], project_id)
    return {**member, "profile": candidate}


# =========================================================
# 4. PROFILE, LEAVES, QUERIES
# =========================================================

def update_profile(
    store,
    user: CurrentUser,
    profile_changes: Optional[Dict[str, Any]] = None,
    student_changes: Optional[Dict[str, Any]] = None,
    on: Optional[date] = None,
) -> Dict[str, Any]:
    profile_changes = dict(profile_changes or {})
    student_changes = dict(student_changes or {})

    unknown = set(profile_changes) - set(MUTABLE_PROFILE_FIELDS)
    if unknown:
        raise ValidationFailure("Cannot change: " + ", ".join(sorted(unknown)))
    if "full_name" in profile_changes and _blank(profile_changes["full_name"]):
        raise ValidationFailure("Name is required.")

    student = None
    if student_changes:
        if user.role != Role.STUDENT:
            raise ValidationFailure("Only students have academic details.")
        unknown = set(student_changes) - set(ACADEMIC_FIELDS)
        if unknown:
            raise ValidationFailure("Cannot change: " + ", ".join(sorted(unknown)))

        with _store_call("update profile"):
            rows = store.fetch("student_profiles", {"user_id": user.user_id}, limit=1)
        if not rows:
            raise NotFound("Student profile not found")
        student = rows[0]
        if student.get("status") == ApprovalStatus.APPROVED.value:
            raise ValidationFailure("Academic details are locked after approval.")

        if student_changes.get("batch_id"):
            batch = _get_one(store, "batches", student_changes["batch_id"], "Batch", "update profile")
            if batch_status(batch, on) == BatchStatus.COMPLETED:
                raise ValidationFailure("This batch has already completed.")

    result: Dict[str, Any] = {}
    with _store_call("update profile"):
        if profile_changes:
            result["profile"] = store.update("profiles", user.user_id, profile_changes)
        if student is not None:
            result["student_profile"] = store.update("student_profiles", student["id"], student_changes)

    logger.info("Profile %s updated (%s)", user.user_id, ", ".join(sorted(set(profile_changes) | set(student_changes))) or "no changes")
    return result


def submit_leave(store, user: CurrentUser, data: Dict[str, Any]) -> Dict[str, Any]:
    reason = (data.get("reason") or "").strip()
    if len(reason) < 10:
        raise ValidationFailure("Please provide a reason of at least 10 characters.")
    if _blank(data.get("leave_date")):
        raise ValidationFailure("Leave date is required.")

    with _store_call("submit leave request"):
        saved = store.insert("leave_requests", {
            "user_id": user.user_id,
            "leave_date": data["leave_date"],
            "leave_type": data.get("leave_type") or "casual",
            "reason": reason,
            "status": LeaveStatus.PENDING.value,
        })

    logger.info("Leave request %s submitted by %s", saved["id"], user.user_id)
    return saved


def submit_query(store, user: CurrentUser, data: Dict[str, Any]) -> Dict[str, Any]:
    title = (data.get("title") or "").strip()
    description = (data.get("description") or "").strip()
    if len(title) < 3:
        raise ValidationFailure("Title must be at least 3 characters.")
    if len(description) < 20:
        raise ValidationFailure("Description must be at least 20 characters.")

    with _store_call("submit query"):
        saved = store.insert("admin_queries", {
            "user_id": user.user_id,
            "title": title,
            "category": data.get("category") or "other",
            "description": description,
            "is_resolved": False,
        })

    logger.info("Query %s submitted by %s", saved["id"], user.user_id)
    return saved


# =========================================================
# 5. INTERNSHIP DIARY
# =========================================================

ENTRIES_PER_WEEK = 7
EDIT_WINDOW_DAYS = 7
DIARY_FIELDS = (
    "entry_date", "title", "work_description", "work_summary", "hours_worked",
    "reference_links", "learning_outcome", "skills_gained",
)


def current_week_number(entries) -> int:
    """Week of the next entry: the latest week until it holds seven entries, then a new one."""
    weeks = [e["week_number"] for e in entries if e.get("week_number")]
    if not weeks:
        return 1
    latest = max(weeks)
    if weeks.count(latest) >= ENTRIES_PER_WEEK:
        return latest + 1
    return latest


def _as_datetime(value: Any) -> datetime:
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def is_editable(entry: Dict[str, Any], now: Optional[datetime] = None) -> bool:
    if entry.get("is_locked"):
        return False
    if not entry.get("created_at"):
        return True
    age = _now(now) - _as_datetime(entry["created_at"])
    return age.days <= EDIT_WINDOW_DAYS


def _check_diary_text(data: Dict[str, Any]):
    if "work_description" in data and len((data["work_description"] or "").strip()) < 10:
        raise ValidationFailure("Work description must be at least 10 characters.")
    if "hours_worked" in data:
        hours = data["hours_worked"]
        if hours is None or not 0 <= float(hours) <= 24:
            raise ValidationFailure("Hours must be between 0 and 24.")


def submit_diary_entry(store, user: CurrentUser, data: Dict[str, Any]) -> Dict[str, Any]:
    if _blank(data.get("entry_date")):
        raise ValidationFailure("Entry date is required.")
    if "work_description" not in data or "hours_worked" not in data:
        raise ValidationFailure("Please fill in all required fields.")
    _check_diary_text(data)

    with _store_call("save diary entry"):
        existing = store.fetch("diary_entries", {"user_id": user.user_id}, fields=["week_number"])
        record = {k: v for k, v in data.items() if k in DIARY_FIELDS and not _blank(v)}
        record["work_description"] = record["work_description"].strip()
        saved = store.insert("diary_entries", {
            **record,
            "user_id": user.user_id,
            "week_number": current_week_number(existing),
            "is_locked": False,
        })

    logger.info("Diary entry %s (week %s) added by %s", saved["id"], saved["week_number"], user.user_id)
    return saved


def update_diary_entry(
    store,
    user: CurrentUser,
    entry_id: str,
    changes: Dict[str, Any],
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    entry = _get_one(store, "diary_entries", entry_id, "Diary entry", "update diary entry")
    if entry.get("user_id") != user.user_id:
        raise Forbidden("You can only edit your own diary entries.")
    if entry.get("is_locked"):
        raise ValidationFailure("This diary entry is locked.")
    if not is_editable(entry, now):
        raise ValidationFailure(f"Diary entries can only be edited within {EDIT_WINDOW_DAYS} days.")

    unknown = set(changes) - set(DIARY_FIELDS)
    if unknown:
        raise ValidationFailure("Cannot change: " + ", ".join(sorted(unknown)))
    if "entry_date" in changes and _blank(changes["entry_date"]):
        raise ValidationFailure("Entry date is required.")
    _check_diary_text(changes)

    # Optional text cleared with "" is removed; week_number never moves
    changes = {k: (None if v == "" else v) for k, v in changes.items()}
    with _store_call("update diary entry"):
        updated = store.update("diary_entries", entry_id, changes)

    logger.info("Diary entry %s updated by %s", entry_id, user.user_id)
    return updated
