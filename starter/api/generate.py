"""
Project generation API routes.

Endpoints:
- POST /api/generate - Generate a Go project and return it as a ZIP

The response body is the archive itself. The workspace holding the
tree and archive is scheduled for deferred removal whether or not
generation succeeded.
"""
import asyncio
import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse, Response

from starter.core.artifact_store import ArchivalError
from starter.core.catalog import version_cache
from starter.core.config import get_service_config
from starter.core.metrics import metrics
from starter.core.reaper import reaper
from starter.core.scaffold import SynthesisError
from starter.core.selection import ValidationError
from starter.core.workspace import generate_project, workspace_manager
from starter.schemas.generate import ErrorResponse, GenerateRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["generate"])


def error_response(status_code: int, message: str) -> JSONResponse:
    """Build the {success: false, error: ...} body used by every /api failure."""
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message).model_dump(),
    )


@router.post(
    "/generate",
    response_class=Response,
    responses={
        200: {"content": {"application/zip": {}}, "description": "Project archive"},
        400: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def generate(request: GenerateRequest) -> Response:
    """
    Generate a project skeleton for the requested feature selection.

    Library versions come from the version cache; any lookup failure
    silently falls back to the catalog defaults.
    """
    try:
        selection = request.to_selection()
    except ValidationError as e:
        logger.info(f"generate_rejected error={e}")
        return error_response(400, str(e))

    versions = await version_cache.get_versions()
    config = get_service_config()

    workspace: Optional[Path] = None
    try:
        workspace = workspace_manager.create_workspace(selection.name)
        result = await asyncio.to_thread(
            generate_project,
            selection,
            workspace,
            versions,
            config.library_owner,
        )
        zip_bytes = result.archive.read_bytes()
    except (SynthesisError, ArchivalError) as e:
        metrics.inc("projects_generated_failed")
        logger.error(f"generate_failed project={selection.name} error_type={type(e).__name__} error={e}")
        return error_response(500, str(e))
    except OSError as e:
        metrics.inc("projects_generated_failed")
        logger.error(f"generate_read_failed project={selection.name} error_type={type(e).__name__}")
        return error_response(500, "Failed to read archive")
    finally:
        if workspace is not None:
            reaper.schedule_removal(workspace)

    metrics.inc("projects_generated_success")
    logger.info(
        f"generate_completed project={selection.name} files={len(result.tree.files)} "
        f"bytes={len(zip_bytes)}"
    )

    return Response(
        content=zip_bytes,
        media_type="application/zip",
        headers={
            "Content-Disposition": f'attachment; filename="{result.filename}"',
            "Content-Length": str(len(zip_bytes)),
            "X-Archive-SHA256": result.archive.sha256,
        },
    )
