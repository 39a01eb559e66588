from fastapi import APIRouter, Depends
from typing import Optional
from internhub.core.security import get_current_user, require_approved_student, require_role
from internhub.models.auth import CurrentUser, Role
from internhub.models.query import AdminQueryCreate, QueryCategory, QueryResolution
from internhub.services import aggregator, dispatcher
from internhub.services.store import get_store

router = APIRouter()


@router.get("")
async def list_queries(
    category: Optional[QueryCategory] = None,
    current_user: CurrentUser = Depends(get_current_user),
    store=Depends(get_store),
):
    """Queries split into pending and resolved, newest first."""
    require_role(current_user, Role.ADMIN)
    return await aggregator.query_overview(store, category=category)


@router.get("/my")
async def list_my_queries(
    current_user: CurrentUser = Depends(get_current_user),
    store=Depends(get_store),
):
    require_role(current_user, Role.STUDENT)
    require_approved_student(current_user)
    return await aggregator.my_queries(store, current_user)


@router.post("")
def submit_query(
    query: AdminQueryCreate,
    current_user: CurrentUser = Depends(get_current_user),
    store=Depends(get_store),
):
    require_role(current_user, Role.STUDENT)
    require_approved_student(current_user)
    saved = dispatcher.submit_query(store, current_user, query.model_dump(mode="json"))
    return {"message": "Query submitted successfully", "query": saved}


@router.post("/{query_id}/resolution")
def set_resolution(
    query_id: str,
    resolution: QueryResolution,
    current_user: CurrentUser = Depends(get_current_user),
    store=Depends(get_store),
):
    require_role(current_user, Role.ADMIN)
    updated = dispatcher.set_query_resolution(store, query_id, resolution.resolved)
    return {
        "message": "Query marked as resolved" if resolution.resolved else "Query reopened",
        "query": updated,
    }
