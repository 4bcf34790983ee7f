"""
Library catalog API routes.

Endpoints:
- GET /api/libraries - List optional add-ons with resolved versions
"""
import logging

from fastapi import APIRouter

from starter.core.catalog import resolve_catalog, version_cache
from starter.core.config import get_service_config
from starter.core.metrics import metrics
from starter.schemas.generate import LibrariesResponse, LibraryItem

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["libraries"])


@router.get("/libraries", response_model=LibrariesResponse)
async def list_libraries() -> LibrariesResponse:
    """List the library catalog. Never fails on version lookup errors."""
    metrics.inc("libraries_requested_total")

    versions = await version_cache.get_versions()
    catalog = resolve_catalog(versions, owner=get_service_config().library_owner)
    items = [LibraryItem.from_library(lib) for lib in catalog]

    logger.debug(f"libraries_listed count={len(items)} fetched={len(versions)}")
    return LibrariesResponse(data=items, count=len(items))
