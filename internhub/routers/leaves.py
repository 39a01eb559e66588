from fastapi import APIRouter, Depends, Query
from typing import Optional
from internhub.core.security import get_current_user, require_approved_student, require_role
from internhub.models.auth import CurrentUser, Role
from internhub.models.leave import LeaveDecision, LeaveRequestCreate
from internhub.services import aggregator, dispatcher
from internhub.services.store import get_store

router = APIRouter()


@router.get("")
async def list_leaves(
    leave_date: Optional[str] = Query(None, description="'today' or YYYY-MM-DD"),
    batch_id: Optional[str] = None,
    course: Optional[str] = None,
    from_date: Optional[str] = Query(None, description="YYYY-MM-DD, inclusive"),
    to_date: Optional[str] = Query(None, description="YYYY-MM-DD, inclusive"),
    page: int = 1,
    current_user: CurrentUser = Depends(get_current_user),
    store=Depends(get_store),
):
    require_role(current_user, Role.ADMIN)
    return await aggregator.leave_overview(
        store, leave_date=leave_date, batch_id=batch_id, course=course,
        from_date=from_date, to_date=to_date, page=page,
    )


@router.get("/my")
async def list_my_leaves(
    current_user: CurrentUser = Depends(get_current_user),
    store=Depends(get_store),
):
    require_role(current_user, Role.STUDENT, Role.FACULTY)
    require_approved_student(current_user)
    return await aggregator.my_leaves(store, current_user)


@router.post("")
def submit_leave(
    leave: LeaveRequestCreate,
    current_user: CurrentUser = Depends(get_current_user),
    store=Depends(get_store),
):
    require_role(current_user, Role.STUDENT, Role.FACULTY)
    require_approved_student(current_user)
    saved = dispatcher.submit_leave(store, current_user, leave.model_dump(mode="json"))
    return {"message": "Leave request submitted successfully", "leave_request": saved}


@router.post("/{leave_id}/decision")
def decide_leave(
    leave_id: str,
    decision: LeaveDecision,
    current_user: CurrentUser = Depends(get_current_user),
    store=Depends(get_store),
):
    require_role(current_user, Role.ADMIN)
    updated = dispatcher.decide_leave(store, leave_id, decision.approve, current_user)
    return {
        "message": "Leave request approved" if decision.approve else "Leave request rejected",
        "leave_request": updated,
    }
