from fastapi import APIRouter, Depends
from internhub.core.security import get_current_user, require_role
from internhub.models.auth import CurrentUser, Role
from internhub.services import aggregator
from internhub.services.store import get_store

router = APIRouter()


@router.get("/admin")
async def get_admin_dashboard(
    current_user: CurrentUser = Depends(get_current_user),
    store=Depends(get_store),
):
    """Headline counts plus ongoing and completed batches with enrolment."""
    require_role(current_user, Role.ADMIN)
    return await aggregator.admin_dashboard(store)


@router.get("/student")
async def get_student_dashboard(
    current_user: CurrentUser = Depends(get_current_user),
    store=Depends(get_store),
):
    # Pending students land here too; counts are only included once approved
    require_role(current_user, Role.STUDENT)
    return await aggregator.student_dashboard(store, current_user)


@router.get("/faculty")
async def get_faculty_dashboard(
    current_user: CurrentUser = Depends(get_current_user),
    store=Depends(get_store),
):
    require_role(current_user, Role.FACULTY)
    return await aggregator.faculty_dashboard(store)
