"""User collection, wantlist and stats endpoints."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from ..models import ListMembership, ListType
from ..services import CatalogService
from .auth import require_api_key

logger = logging.getLogger(__name__)

router = APIRouter(tags=["collection"], dependencies=[Depends(require_api_key)])


class AddToCollectionRequest(BaseModel):
    """Body for adding a catalog release to a collection."""

    release_id: int
    rating: int | None = Field(default=None, ge=0, le=5)
    notes: str | None = None


class AddToWantlistRequest(BaseModel):
    """Body for adding a catalog release to a wantlist."""

    release_id: int
    notes: str | None = None


class ListQuery(BaseModel):
    limit: int | None = Field(default=None, ge=1, le=100)
    offset: int | None = Field(default=None, ge=0)
    sort_by: str | None = None
    sort_order: str | None = None


def list_query(
    limit: int | None = Query(default=None, ge=1, le=100),
    offset: int | None = Query(default=None, ge=0),
    sort_by: str | None = Query(default=None),
    sort_order: str | None = Query(default=None),
) -> ListQuery:
    return ListQuery(limit=limit, offset=offset, sort_by=sort_by, sort_order=sort_order)


def get_catalog_service() -> CatalogService:
    return CatalogService()


async def _list(service: CatalogService, list_type: ListType, user_id: str, query: ListQuery) -> dict[str, Any]:
    return await service.list_items(
        list_type,
        user_id,
        limit=query.limit,
        offset=query.offset,
        sort_by=query.sort_by,
        sort_order=query.sort_order,
    )


# ========== Collection ==========


@router.get("/collection/{user_id}")
async def get_collection(
    user_id: str,
    query: ListQuery = Depends(list_query),
    service: CatalogService = Depends(get_catalog_service),
) -> dict[str, Any]:
    """Get a user's collection, sorted and paginated."""
    return await _list(service, ListType.COLLECTION, user_id, query)


@router.post("/collection/{user_id}", status_code=status.HTTP_201_CREATED)
async def add_to_collection(
    user_id: str,
    body: AddToCollectionRequest,
    service: CatalogService = Depends(get_catalog_service),
) -> ListMembership:
    """Add a catalog release to a user's collection."""
    return await service.add_item(ListType.COLLECTION, user_id, body.release_id, rating=body.rating, notes=body.notes)


@router.delete("/collection/{user_id}/{release_id}")
async def remove_from_collection(
    user_id: str,
    release_id: int,
    service: CatalogService = Depends(get_catalog_service),
) -> dict[str, Any]:
    """Remove a release from a user's collection."""
    return await service.remove_item(ListType.COLLECTION, user_id, release_id)


# ========== Wantlist ==========


@router.get("/wantlist/{user_id}")
async def get_wantlist(
    user_id: str,
    query: ListQuery = Depends(list_query),
    service: CatalogService = Depends(get_catalog_service),
) -> dict[str, Any]:
    """Get a user's wantlist, sorted and paginated."""
    return await _list(service, ListType.WANTLIST, user_id, query)


@router.post("/wantlist/{user_id}", status_code=status.HTTP_201_CREATED)
async def add_to_wantlist(
    user_id: str,
    body: AddToWantlistRequest,
    service: CatalogService = Depends(get_catalog_service),
) -> ListMembership:
    """Add a catalog release to a user's wantlist."""
    return await service.add_item(ListType.WANTLIST, user_id, body.release_id, notes=body.notes)


@router.delete("/wantlist/{user_id}/{release_id}")
async def remove_from_wantlist(
    user_id: str,
    release_id: int,
    service: CatalogService = Depends(get_catalog_service),
) -> dict[str, Any]:
    """Remove a release from a user's wantlist."""
    return await service.remove_item(ListType.WANTLIST, user_id, release_id)


# ========== Stats ==========


@router.get("/stats/{user_id}")
async def get_user_stats(user_id: str, service: CatalogService = Depends(get_catalog_service)) -> dict[str, Any]:
    """Item counts for all three lists."""
    return await service.get_user_stats(user_id)
