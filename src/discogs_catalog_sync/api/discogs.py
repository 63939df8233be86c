"""Discogs pass-through, sync trigger and suggestion endpoints."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel

from ..exceptions import FullSyncFailed
from ..models import FullSyncResult, ListMembership, ListPage, ListType, SearchResults, SyncRunResult
from ..services import CatalogService
from ..sync import SyncEngine, SyncScheduler
from .auth import require_api_key
from .collection import ListQuery, get_catalog_service, list_query

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/discogs", tags=["discogs"], dependencies=[Depends(require_api_key)])


class AddToSuggestionsRequest(BaseModel):
    """Body for suggesting a Discogs release."""

    release_id: int  # Discogs release id
    notes: str | None = None


def get_engine(request: Request) -> SyncEngine:
    """Get the sync engine from app state."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise RuntimeError("SyncEngine not initialized in app state")
    return engine


def get_scheduler(request: Request) -> SyncScheduler:
    """Get the sync scheduler from app state."""
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise RuntimeError("SyncScheduler not initialized in app state")
    return scheduler


# ========== Direct Discogs reads ==========


@router.get("/collection")
async def fetch_remote_collection(
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=50, ge=1, le=100),
    sort: str = Query(default="added", pattern="^(artist|title|rating|added|year)$"),
    sort_order: str = Query(default="desc", pattern="^(asc|desc)$"),
    engine: SyncEngine = Depends(get_engine),
) -> ListPage:
    """Fetch one collection page straight from Discogs without storing it."""
    return await engine.client.get_collection(page=page, per_page=per_page, sort=sort, sort_order=sort_order)


@router.get("/wantlist")
async def fetch_remote_wantlist(
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=50, ge=1, le=100),
    engine: SyncEngine = Depends(get_engine),
) -> ListPage:
    """Fetch one wantlist page straight from Discogs without storing it."""
    return await engine.client.get_wantlist(page=page, per_page=per_page)


@router.get("/search")
async def search_releases(
    query: str = Query(min_length=1),
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=50, ge=1, le=100),
    engine: SyncEngine = Depends(get_engine),
) -> SearchResults:
    """Search Discogs releases."""
    logger.info("Searching releases with query: %s", query)
    return await engine.client.search_releases(query, page=page, per_page=per_page)


@router.get("/test-connection")
async def test_connection(engine: SyncEngine = Depends(get_engine)) -> dict[str, Any]:
    """Check that the Discogs credentials work."""
    return await engine.client.test_connection()


# ========== Sync triggers ==========


@router.post("/sync/collection")
async def sync_collection(user_id: str | None = None, engine: SyncEngine = Depends(get_engine)) -> SyncRunResult:
    """Reconcile the collection now."""
    return await engine.reconcile(ListType.COLLECTION, user_id)


@router.post("/sync/wantlist")
async def sync_wantlist(user_id: str | None = None, engine: SyncEngine = Depends(get_engine)) -> SyncRunResult:
    """Reconcile the wantlist now."""
    return await engine.reconcile(ListType.WANTLIST, user_id)


@router.post("/sync/suggestions")
async def sync_suggestions(user_id: str | None = None, engine: SyncEngine = Depends(get_engine)) -> SyncRunResult:
    """Reconcile the suggestions folder now."""
    return await engine.reconcile(ListType.SUGGESTIONS, user_id)


@router.post("/sync/all")
async def sync_all(scheduler: SyncScheduler = Depends(get_scheduler)) -> FullSyncResult:
    """Run a full sync for the default user, as the daily trigger would."""
    if scheduler.sync_in_progress:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A sync is already running")
    try:
        return await scheduler.perform_full_sync("manual")
    except FullSyncFailed as e:
        return e.result


@router.get("/sync/status")
async def get_sync_status(
    user_id: str | None = None,
    engine: SyncEngine = Depends(get_engine),
    scheduler: SyncScheduler = Depends(get_scheduler),
) -> dict[str, Any]:
    """Local list sizes and the last full sync report."""
    sync_status = await engine.get_sync_status(user_id)
    last = scheduler.last_result
    sync_status["last_run"] = last.model_dump(mode="json") if last else None
    sync_status["sync_in_progress"] = scheduler.sync_in_progress
    return sync_status


# ========== Suggestions ==========


@router.get("/suggestions/{user_id}")
async def get_user_suggestions(
    user_id: str,
    query: ListQuery = Depends(list_query),
    service: CatalogService = Depends(get_catalog_service),
) -> dict[str, Any]:
    """Get a user's suggestions, sorted and paginated."""
    return await service.list_items(
        ListType.SUGGESTIONS,
        user_id,
        limit=query.limit,
        offset=query.offset,
        sort_by=query.sort_by,
        sort_order=query.sort_order,
    )


@router.post("/suggestions/{user_id}", status_code=status.HTTP_201_CREATED)
async def add_to_suggestions(
    user_id: str,
    body: AddToSuggestionsRequest,
    engine: SyncEngine = Depends(get_engine),
) -> ListMembership:
    """Add a Discogs release to the suggestions folder and sync it locally."""
    logger.info("Adding release %d to suggestions for user %s", body.release_id, user_id)
    return await engine.add_to_suggestions(user_id, body.release_id, notes=body.notes)


@router.delete("/suggestions/{user_id}/{release_id}")
async def remove_from_suggestions(
    user_id: str,
    release_id: int,
    service: CatalogService = Depends(get_catalog_service),
) -> dict[str, Any]:
    """Remove a release from a user's local suggestions."""
    return await service.remove_item(ListType.SUGGESTIONS, user_id, release_id)
