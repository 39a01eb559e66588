from fastapi import APIRouter, Depends, Query
from typing import Optional
from internhub.core.security import get_current_user, require_approved_student, require_role
from internhub.models.auth import CurrentUser, Role
from internhub.models.project import MemberAdd, ProjectCreate
from internhub.models.user import PHONE_PATTERN
from internhub.services import aggregator, dispatcher
from internhub.services.store import get_store

router = APIRouter()


@router.get("")
async def list_projects(
    search: Optional[str] = None,
    course: Optional[str] = None,
    batch_id: Optional[str] = None,
    created_on: Optional[str] = Query(None, description="'today' or YYYY-MM-DD"),
    page: int = 1,
    current_user: CurrentUser = Depends(get_current_user),
    store=Depends(get_store),
):
    """
    Project overview. Faculty only see projects whose lead belongs to one of
    their assigned, non-completed batches.
    """
    require_role(current_user, Role.ADMIN, Role.FACULTY)
    return await aggregator.project_overview(
        store, current_user,
        search=search, course=course, batch_id=batch_id, created_on=created_on, page=page,
    )


@router.get("/my")
async def list_my_projects(
    current_user: CurrentUser = Depends(get_current_user),
    store=Depends(get_store),
):
    require_approved_student(current_user)
    return await aggregator.my_projects(store, current_user)


@router.post("")
def create_project(
    project: ProjectCreate,
    current_user: CurrentUser = Depends(get_current_user),
    store=Depends(get_store),
):
    require_role(current_user, Role.STUDENT)
    require_approved_student(current_user)
    created = dispatcher.create_project(store, current_user, project.name, project.description)
    return {"message": "Project created successfully", "project": created}


@router.get("/member-lookup")
def lookup_member(
    phone: str = Query(..., pattern=PHONE_PATTERN),
    current_user: CurrentUser = Depends(get_current_user),
    store=Depends(get_store),
):
    require_approved_student(current_user)
    return dispatcher.find_member_by_phone(store, phone)


@router.post("/{project_id}/members")
def add_member(
    project_id: str,
    member: MemberAdd,
    current_user: CurrentUser = Depends(get_current_user),
    store=Depends(get_store),
):
    """Only the project lead may add members; teams are capped at five."""
    require_approved_student(current_user)
    added = dispatcher.add_project_member(store, project_id, member.phone, current_user)
    return {"message": "Team member added successfully", "member": added}
