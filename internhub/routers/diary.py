from fastapi import APIRouter, Depends, Query
from typing import Optional
from internhub.core.security import get_current_user, require_approved_student, require_role
from internhub.models.auth import CurrentUser, Role
from internhub.models.diary import DiaryEntryCreate, DiaryEntryUpdate
from internhub.models.user import InternshipTrack
from internhub.services import aggregator, dispatcher
from internhub.services.store import get_store

router = APIRouter()


@router.get("")
async def list_diaries(
    course: Optional[InternshipTrack] = None,
    entry_date: Optional[str] = Query(None, description="'today' or YYYY-MM-DD"),
    current_user: CurrentUser = Depends(get_current_user),
    store=Depends(get_store),
):
    """All students' diary entries grouped per student, newest entry first."""
    require_role(current_user, Role.ADMIN, Role.FACULTY)
    return await aggregator.diary_overview(store, course=course, entry_date=entry_date)


@router.get("/my")
async def get_my_diary(
    current_user: CurrentUser = Depends(get_current_user),
    store=Depends(get_store),
):
    require_role(current_user, Role.STUDENT)
    require_approved_student(current_user)
    return await aggregator.my_diary(store, current_user)


@router.post("")
def add_diary_entry(
    entry: DiaryEntryCreate,
    current_user: CurrentUser = Depends(get_current_user),
    store=Depends(get_store),
):
    require_role(current_user, Role.STUDENT)
    require_approved_student(current_user)
    saved = dispatcher.submit_diary_entry(store, current_user, entry.model_dump(mode="json"))
    return {"message": "Diary entry added successfully", "entry": saved}


@router.patch("/{entry_id}")
def edit_diary_entry(
    entry_id: str,
    entry: DiaryEntryUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    store=Depends(get_store),
):
    """Entries stay editable for seven days unless an admin has locked them."""
    require_role(current_user, Role.STUDENT)
    require_approved_student(current_user)
    updated = dispatcher.update_diary_entry(
        store, current_user, entry_id, entry.model_dump(mode="json", exclude_unset=True),
    )
    return {"message": "Diary entry updated successfully", "entry": updated}
