from fastapi import APIRouter, Depends
from internhub.core.security import get_current_user
from internhub.models.auth import CurrentUser
from internhub.models.user import ProfileSaveRequest
from internhub.services import aggregator, dispatcher
from internhub.services.store import get_store

router = APIRouter()


@router.get("")
async def get_profile(
    current_user: CurrentUser = Depends(get_current_user),
    store=Depends(get_store),
):
    """Own profile, academic details for students and the batches open for selection."""
    return await aggregator.profile_view(store, current_user)


@router.patch("")
def update_profile(
    payload: ProfileSaveRequest,
    current_user: CurrentUser = Depends(get_current_user),
    store=Depends(get_store),
):
    """
    Partial update. Only fields present in the body are written.
    Academic details are rejected once the student has been approved.
    """
    profile_changes = payload.profile.model_dump(mode="json", exclude_unset=True)
    student_changes = None
    if payload.student_profile is not None:
        student_changes = payload.student_profile.model_dump(mode="json", exclude_unset=True)

    saved = dispatcher.update_profile(store, current_user, profile_changes, student_changes)
    return {"message": "Profile updated successfully", **saved}
