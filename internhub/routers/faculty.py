from fastapi import APIRouter, Depends
from internhub.core.security import get_current_user, require_role
from internhub.models.auth import CurrentUser, Role
from internhub.services import aggregator
from internhub.services.store import get_store

router = APIRouter()


@router.get("")
async def list_faculty(
    current_user: CurrentUser = Depends(get_current_user),
    store=Depends(get_store),
):
    require_role(current_user, Role.ADMIN)
    return await aggregator.faculty_directory(store)
