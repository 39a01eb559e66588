import asyncio
from datetime import date

import pytest

from conftest import ADMIN, FACULTY, PENDING_STUDENT, STUDENT, add_student, add_user, as_user, ts
from internhub.core.errors import TransientIOFailure
from internhub.models.auth import ApprovalStatus, Role
from internhub.services import aggregator, dispatcher

ON = date(2026, 1, 15)


def run(coro):
    return asyncio.run(coro)


def test_fan_out_preserves_order():
    results = run(aggregator.fan_out(lambda: 1, lambda: "two", lambda: [3]))
    assert results == [1, "two", [3]]


def test_failed_read_fails_the_whole_view(portal):
    portal.fail_on.add(("count", "admin_queries"))
    with pytest.raises(TransientIOFailure):
        run(aggregator.admin_dashboard(portal, on=ON))


def test_non_store_errors_propagate_unchanged():
    def broken():
        raise KeyError("boom")

    with pytest.raises(KeyError):
        run(aggregator.fan_out(lambda: 1, broken))


def test_admin_dashboard(portal):
    portal.insert("leave_requests", {"user_id": "S1", "leave_date": "2026-01-20", "reason": "Fever since morning", "status": "pending"})
    portal.insert("admin_queries", {"user_id": "S1", "title": "Lab", "description": "When does the lab open?", "is_resolved": False})

    view = run(aggregator.admin_dashboard(portal, on=ON))

    assert view["stats"] == {
        "pending_approvals": 1,
        "total_students": 3,
        "total_faculty": 2,
        "pending_leaves": 1,
        "pending_queries": 1,
    }
    assert [(b["id"], b["student_count"]) for b in view["ongoing_batches"]] == [("B1", 1)]
    assert [b["id"] for b in view["completed_batches"]] == ["B2"]


def test_student_dashboard_hides_counts_until_approved(portal):
    pending = run(aggregator.student_dashboard(portal, PENDING_STUDENT))
    assert pending == {"student_id": None, "batch_name": "Batch Ongoing", "approval_status": "pending"}

    dispatcher.create_project(portal, STUDENT, "Weather Station")
    approved = run(aggregator.student_dashboard(portal, STUDENT))
    assert approved["student_id"] == "FEST0226001"
    assert approved["projects"] == 1
    assert approved["leaves"] == 0


def test_student_dashboard_without_profile(portal):
    add_user(portal, "S9", Role.STUDENT, "New Student", "9444444444")
    view = run(aggregator.student_dashboard(portal, as_user("S9", Role.STUDENT)))
    assert view == {"student_id": None, "batch_name": None, "approval_status": "pending"}


def test_student_directory_search_filters_and_stats(portal):
    view = run(aggregator.student_directory(portal, search="sam"))
    assert [s["user_id"] for s in view["results"].items] == ["S2"]
    assert view["results"].items[0]["batch_name"] == "Batch Future"

    by_usn = run(aggregator.student_directory(portal, search="cs003", status="all"))
    assert [s["user_id"] for s in by_usn["results"].items] == ["S3"]

    in_b1 = run(aggregator.student_directory(portal, batch_id="B1", status="approved"))
    assert [s["user_id"] for s in in_b1["results"].items] == ["S1"]

    stats = view["stats"]
    assert (stats["total"], stats["approved"], stats["pending"]) == (3, 2, 1)
    assert {"name": "Batch Ongoing", "count": 2} in stats["by_batch"]


def test_student_directory_newest_first_and_paged(portal):
    for n in range(25):
        add_user(portal, f"X{n}", Role.STUDENT, f"Extra {n}", f"97000000{n:02d}")
        add_student(portal, f"X{n}", ApprovalStatus.PENDING, created_at=ts(10 + n % 15, hour=n % 20))
    first = run(aggregator.student_directory(portal))
    assert first["results"].total == 28
    assert first["results"].page_count == 2
    last = run(aggregator.student_directory(portal, page=2))
    assert len(last["results"].items) == 8
    assert last["results"].items[-1]["user_id"] == "S1"


def test_pending_approvals_oldest_first(portal):
    add_user(portal, "S4", Role.STUDENT, "Later Pending", "9555555555")
    add_student(portal, "S4", ApprovalStatus.PENDING, created_at=ts(20))

    pending = run(aggregator.pending_approvals(portal))

    assert [p["user_id"] for p in pending] == ["S3", "S4"]
    assert pending[0]["profile"]["full_name"] == "Pia Pending"


def _projects(portal):
    led_by_s1 = dispatcher.create_project(portal, STUDENT, "Ongoing Batch Project")
    led_by_s2 = dispatcher.create_project(portal, as_user("S2", Role.STUDENT, ApprovalStatus.APPROVED), "Future Batch Project")
    dispatcher.add_project_member(portal, led_by_s1["id"], "9222222222", STUDENT)
    return led_by_s1, led_by_s2


def test_project_overview_for_admin(portal):
    _projects(portal)
    view = run(aggregator.project_overview(portal, ADMIN, on=ON))
    names = {p["name"] for p in view["results"].items}
    assert names == {"Ongoing Batch Project", "Future Batch Project"}
    assert {b["id"] for b in view["batches"]} == {"B1", "B3"}

    searched = run(aggregator.project_overview(portal, ADMIN, search="sara", on=ON))
    assert [p["lead_name"] for p in searched["results"].items] == ["Sara Student"]


def test_project_overview_is_scoped_to_faculty_batches(portal):
    _projects(portal)

    view = run(aggregator.project_overview(portal, FACULTY, on=ON))

    assert [p["name"] for p in view["results"].items] == ["Ongoing Batch Project"]
    project = view["results"].items[0]
    assert len(project["members"]) == 2
    assert project["lead_student"]["batch_id"] == "B1"
    # B2 is assigned to F1 as well but already completed
    assert view["batches"] == [{"id": "B1", "name": "Batch Ongoing"}]


def test_faculty_without_batches_sees_nothing(portal):
    _projects(portal)
    add_user(portal, "F3", Role.FACULTY, "New Faculty", "9666666666")
    view = run(aggregator.project_overview(portal, as_user("F3", Role.FACULTY), on=ON))
    assert view["results"].total == 0
    assert view["batches"] == []


def test_leave_overview_filters(portal):
    portal.insert("leave_requests", {"user_id": "S1", "leave_date": "2026-01-15", "reason": "Fever since morning", "status": "pending", "created_at": ts(14)})
    portal.insert("leave_requests", {"user_id": "S2", "leave_date": "2026-01-16", "reason": "Cousin's wedding", "status": "approved", "created_at": ts(15)})
    portal.insert("leave_requests", {"user_id": "F1", "leave_date": "2026-01-15", "reason": "Conference travel", "status": "pending", "created_at": ts(16)})

    everything = run(aggregator.leave_overview(portal, on=ON))
    assert [l["user_id"] for l in everything["results"].items] == ["F1", "S2", "S1"]
    assert everything["counts"] == {"pending": 2, "approved": 1, "rejected": 0}
    assert everything["results"].items[0]["student_profile"] is None

    today = run(aggregator.leave_overview(portal, leave_date="today", on=ON))
    assert {l["user_id"] for l in today["results"].items} == {"S1", "F1"}

    in_b1 = run(aggregator.leave_overview(portal, leave_date="2026-01-15", batch_id="B1", on=ON))
    assert [l["user_id"] for l in in_b1["results"].items] == ["S1"]


def test_query_overview_splits_and_filters(portal):
    first = dispatcher.submit_query(portal, STUDENT, {"title": "Lab timing", "category": "schedule", "description": "Can the lab open an hour earlier?"})
    dispatcher.submit_query(portal, STUDENT, {"title": "Mentor", "category": "faculty", "description": "I would like to switch mentors."})
    dispatcher.set_query_resolution(portal, first["id"], True)

    view = run(aggregator.query_overview(portal))
    assert [q["title"] for q in view["pending"]] == ["Mentor"]
    assert [q["title"] for q in view["resolved"]] == ["Lab timing"]
    assert view["resolved"][0]["student_profile"]["student_id"] == "FEST0226001"

    only_schedule = run(aggregator.query_overview(portal, category="schedule"))
    assert only_schedule["pending"] == []
    assert len(only_schedule["resolved"]) == 1


def test_batch_overview(portal):
    view = run(aggregator.batch_overview(portal, on=ON))
    by_id = {b["id"]: b for b in view["batches"]}
    assert by_id["B1"]["status"] == "ongoing"
    assert by_id["B2"]["status"] == "completed"
    assert by_id["B3"]["status"] == "yet_to_start"
    assert by_id["B1"]["student_count"] == 2
    assert by_id["B3"]["faculty_name"] == "Fred Faculty"
    assert {f["user_id"] for f in view["faculty_options"]} == {"F1", "F2"}


def test_faculty_directory(portal):
    faculty = run(aggregator.faculty_directory(portal))
    assert sorted(f["profile"]["full_name"] for f in faculty) == ["Farah Faculty", "Fred Faculty"]


def test_my_projects_lists_led_first_without_duplicates(portal):
    s2 = as_user("S2", Role.STUDENT, ApprovalStatus.APPROVED)
    joined = dispatcher.create_project(portal, STUDENT, "Joined Project")
    dispatcher.add_project_member(portal, joined["id"], "9222222222", STUDENT)
    led = dispatcher.create_project(portal, s2, "Led Project")

    projects = run(aggregator.my_projects(portal, s2))

    assert [p["name"] for p in projects] == ["Led Project", "Joined Project"]
    assert [p["is_lead"] for p in projects] == [True, False]
    assert {m["profile"]["full_name"] for m in projects[1]["members"]} == {"Sara Student", "Sam Student"}
    assert projects[0]["id"] == led["id"]


def test_my_projects_empty(portal):
    assert run(aggregator.my_projects(portal, FACULTY)) == []


def test_my_leaves_and_queries(portal):
    dispatcher.submit_leave(portal, STUDENT, {"leave_date": "2026-02-02", "reason": "Dentist appointment"})
    dispatcher.submit_leave(portal, FACULTY, {"leave_date": "2026-02-03", "reason": "Conference travel"})
    dispatcher.submit_query(portal, STUDENT, {"title": "Lab timing", "description": "Can the lab open an hour earlier?"})

    leaves = run(aggregator.my_leaves(portal, STUDENT))
    assert len(leaves["requests"]) == 1
    assert leaves["counts"]["pending"] == 1
    assert len(run(aggregator.my_queries(portal, STUDENT))) == 1
    assert run(aggregator.my_queries(portal, FACULTY)) == []


def test_profile_view(portal):
    approved = run(aggregator.profile_view(portal, STUDENT, on=ON))
    assert approved["academic_locked"] is True
    assert approved["profile"]["full_name"] == "Sara Student"
    assert {b["id"] for b in approved["active_batches"]} == {"B1", "B3"}

    pending = run(aggregator.profile_view(portal, PENDING_STUDENT, on=ON))
    assert pending["academic_locked"] is False

    admin = run(aggregator.profile_view(portal, ADMIN, on=ON))
    assert admin["student_profile"] is None
    assert admin["academic_locked"] is False


def test_faculty_dashboard_joins_approved_students_projects_and_leaves(portal):
    dispatcher.create_project(portal, STUDENT, "Weather Station")
    portal.insert("projects", {"id": "P-orphan", "name": "Orphaned", "lead_id": "gone", "created_at": ts(1)})
    for n in range(55):
        portal.insert("leave_requests", {"user_id": "S1", "leave_date": "2026-01-20", "reason": "Fever since morning", "status": "pending", "created_at": ts(1 + n % 28, hour=n % 24)})

    view = run(aggregator.faculty_dashboard(portal))

    assert {s["user_id"] for s in view["students"]} == {"S1", "S2"}
    by_user = {s["user_id"]: s for s in view["students"]}
    assert by_user["S1"]["batch"]["name"] == "Batch Ongoing"
    assert by_user["S2"]["profile"]["full_name"] == "Sam Student"

    by_name = {p["name"]: p for p in view["projects"]}
    assert by_name["Weather Station"]["lead_name"] == "Sara Student"
    assert [m["profile"]["full_name"] for m in by_name["Weather Station"]["members"]] == ["Sara Student"]
    assert by_name["Orphaned"]["lead_name"] == "Unknown"
    assert by_name["Orphaned"]["lead_profile"] is None

    assert len(view["leave_requests"]) == 50
    assert view["leave_requests"][0]["profile"]["full_name"] == "Sara Student"


def test_faculty_dashboard_lists_latest_hundred_diary_entries(portal):
    for n in range(105):
        portal.insert("diary_entries", {
            "user_id": "S1" if n % 2 else "S2",
            "entry_date": f"2026-0{1 + n // 28}-{1 + n % 28:02d}",
            "work_description": "Trained a small CNN on MNIST",
            "hours_worked": 3,
            "week_number": 1 + n // 7,
        })

    view = run(aggregator.faculty_dashboard(portal))

    diaries = view["diary_entries"]
    assert len(diaries) == 100
    assert diaries[0]["entry_date"] == "2026-04-21"
    assert diaries[0]["student_profile"]["student_id"] in {"FEST0226001", "FEST0126002"}
    assert all(d["profile"] is not None for d in diaries)


def _diary(portal, user_id, entry_date, week, hours=2.0, created_at=None):
    return portal.insert("diary_entries", {
        "user_id": user_id,
        "entry_date": entry_date,
        "work_description": "Built the REST endpoints for the attendance service",
        "hours_worked": hours,
        "week_number": week,
        "is_locked": False,
        "created_at": created_at,
    })


def test_my_diary_groups_by_week(portal):
    now = ts(20)
    for day in range(1, 8):
        _diary(portal, "S1", f"2026-01-{day:02d}", 1, hours=1.5, created_at=ts(day))
    _diary(portal, "S1", "2026-01-19", 2, hours=4, created_at=ts(19))
    _diary(portal, "S2", "2026-01-19", 1)

    view = run(aggregator.my_diary(portal, STUDENT, now=now))

    assert view["total_entries"] == 8
    assert view["current_week"] == 2
    assert [w["week_number"] for w in view["weeks"]] == [2, 1]
    assert view["weeks"][1]["total_hours"] == 10.5
    latest = view["weeks"][0]["entries"][0]
    assert latest["editable"] is True
    oldest = view["weeks"][1]["entries"][-1]
    assert oldest["entry_date"] == "2026-01-01"
    assert oldest["editable"] is False


def test_diary_overview_filters_and_groups_by_student(portal):
    portal.update("student_profiles", "SP-S2", {"internship_role": "vlsi"})
    _diary(portal, "S1", "2026-01-14", 1, hours=3)
    _diary(portal, "S1", "2026-01-15", 1, hours=2)
    _diary(portal, "S2", "2026-01-15", 1, hours=5)

    everything = run(aggregator.diary_overview(portal, on=ON))
    assert everything["total_entries"] == 3
    assert everything["total_students"] == 2
    by_user = {s["user_id"]: s for s in everything["students"]}
    assert by_user["S1"]["total_hours"] == 5
    assert by_user["S1"]["profile"]["full_name"] == "Sara Student"
    assert [e["entry_date"] for e in by_user["S1"]["entries"]] == ["2026-01-15", "2026-01-14"]

    vlsi = run(aggregator.diary_overview(portal, course="vlsi", on=ON))
    assert [s["user_id"] for s in vlsi["students"]] == ["S2"]

    today = run(aggregator.diary_overview(portal, entry_date="today", on=ON))
    assert today["total_entries"] == 2
    assert {s["user_id"] for s in today["students"]} == {"S1", "S2"}


def test_leave_overview_date_range(portal):
    for day in (10, 12, 14, 16):
        portal.insert("leave_requests", {"user_id": "S1", "leave_date": f"2026-01-{day}", "reason": "Fever since morning", "status": "pending"})

    view = run(aggregator.leave_overview(portal, from_date="2026-01-12", to_date="2026-01-14", on=ON))

    assert sorted(l["leave_date"] for l in view["results"].items) == ["2026-01-12", "2026-01-14"]


def test_student_directory_sort(portal):
    view = run(aggregator.student_directory(portal, sort_by="profile.full_name"))
    assert [s["profile"]["full_name"] for s in view["results"].items] == ["Pia Pending", "Sam Student", "Sara Student"]

    reverse = run(aggregator.student_directory(portal, sort_by="usn", descending=True))
    assert [s["user_id"] for s in reverse["results"].items] == ["S3", "S2", "S1"]
