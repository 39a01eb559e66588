from fastapi import APIRouter, Depends
from internhub.core.security import get_current_user, require_role
from internhub.models.auth import CurrentUser, Role
from internhub.models.batch import BatchCreate, BatchUpdate
from internhub.services import aggregator, dispatcher
from internhub.services.store import get_store

router = APIRouter()


@router.get("")
async def list_batches(
    current_user: CurrentUser = Depends(get_current_user),
    store=Depends(get_store),
):
    """All batches with derived status, enrolment and assigned faculty."""
    require_role(current_user, Role.ADMIN)
    return await aggregator.batch_overview(store)


@router.post("")
def create_batch(
    batch: BatchCreate,
    current_user: CurrentUser = Depends(get_current_user),
    store=Depends(get_store),
):
    require_role(current_user, Role.ADMIN)
    saved = dispatcher.save_batch(store, batch.model_dump(mode="json"))
    return {"message": "Batch created successfully", "batch": saved}


@router.patch("/{batch_id}")
def update_batch(
    batch_id: str,
    batch: BatchUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    store=Depends(get_store),
):
    require_role(current_user, Role.ADMIN)
    saved = dispatcher.save_batch(store, batch.model_dump(mode="json", exclude_unset=True), batch_id=batch_id)
    return {"message": "Batch updated successfully", "batch": saved}
