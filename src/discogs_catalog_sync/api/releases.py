"""Release catalog endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, Query

from ..models import Release
from ..services import CatalogService
from .auth import require_api_key
from .collection import get_catalog_service

router = APIRouter(prefix="/releases", tags=["releases"], dependencies=[Depends(require_api_key)])


@router.get("")
async def list_releases(
    limit: int | None = Query(default=None, ge=1, le=100),
    offset: int | None = Query(default=None, ge=0),
    sort_by: str | None = Query(default=None),
    sort_order: str | None = Query(default=None),
    service: CatalogService = Depends(get_catalog_service),
) -> dict[str, Any]:
    """Browse the catalog."""
    return await service.list_releases(limit=limit, offset=offset, sort_by=sort_by, sort_order=sort_order)


@router.get("/{release_id}")
async def get_release(release_id: int, service: CatalogService = Depends(get_catalog_service)) -> Release:
    """Get one release by local id."""
    return await service.get_release(release_id)
