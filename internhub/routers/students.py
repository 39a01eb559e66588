from fastapi import APIRouter, Depends
from typing import Literal, Optional
from internhub.core.security import get_current_user, require_role
from internhub.models.auth import CurrentUser, Role
from internhub.models.user import ApprovalDecision
from internhub.services import aggregator, dispatcher
from internhub.services.store import get_store

router = APIRouter()


@router.get("")
async def list_students(
    search: Optional[str] = None,
    batch_id: Optional[str] = None,
    status: Optional[str] = None,
    page: int = 1,
    sort_by: Optional[Literal["created_at", "profile.full_name", "student_id", "usn"]] = None,
    descending: bool = False,
    current_user: CurrentUser = Depends(get_current_user),
    store=Depends(get_store),
):
    """
    Student directory with search (name, email, phone, student id, USN),
    batch and status filters. Pass "all" or omit a filter to disable it.
    Without sort_by the list stays newest first.
    """
    require_role(current_user, Role.ADMIN, Role.FACULTY)
    return await aggregator.student_directory(
        store, search=search, batch_id=batch_id, status=status, page=page,
        sort_by=sort_by, descending=descending,
    )


@router.get("/pending")
async def list_pending_approvals(
    current_user: CurrentUser = Depends(get_current_user),
    store=Depends(get_store),
):
    """Registrations awaiting review, oldest first."""
    require_role(current_user, Role.ADMIN)
    return await aggregator.pending_approvals(store)


@router.post("/{student_profile_id}/decision")
def decide_student(
    student_profile_id: str,
    decision: ApprovalDecision,
    current_user: CurrentUser = Depends(get_current_user),
    store=Depends(get_store),
):
    require_role(current_user, Role.ADMIN)
    student = dispatcher.decide_student(store, student_profile_id, decision.approve)
    return {
        "message": "Student approved" if decision.approve else "Student rejected",
        "student_profile": student,
    }
