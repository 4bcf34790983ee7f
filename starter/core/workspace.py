"""
Ephemeral workspaces and the generate-then-archive pipeline.

Layout of one request's workspace:

    <temp_dir>/<name>_<unix seconds>_<8 hex>/
        <name>/        project tree
        <name>.zip     archive of the project tree

Each request gets its own workspace, so requests share no files.
Nothing here deletes on failure; expiry is handled by the reaper.
"""
import logging
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from starter.core.artifact_store import ArchiveInfo, create_archive
from starter.core.catalog import DEFAULT_OWNER
from starter.core.config import get_service_config
from starter.core.planner import create_directories, plan_directories
from starter.core.scaffold import ProjectTree, SynthesisError, synthesize, write_tree
from starter.core.selection import FeatureSelection

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    """Everything produced for one selection."""
    selection: FeatureSelection
    workspace: Path
    project_dir: Path
    directories: list[str]
    tree: ProjectTree
    archive: ArchiveInfo

    @property
    def filename(self) -> str:
        return self.archive.name


class WorkspaceManager:
    """Creates isolated per-request workspaces under the temp dir."""

    def __init__(self, base_dir: Optional[Path] = None):
        self._base_dir = Path(base_dir) if base_dir else get_service_config().temp_dir

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    @staticmethod
    def workspace_name(project_name: str, created_at: Optional[float] = None) -> str:
        created = int(time.time() if created_at is None else created_at)
        return f"{project_name}_{created}_{secrets.token_hex(4)}"

    def create_workspace(self, project_name: str) -> Path:
        """
        Create a fresh workspace directory for one request.

        Raises:
            SynthesisError: If the directory cannot be created
        """
        workspace = self._base_dir / self.workspace_name(project_name)
        try:
            workspace.mkdir(parents=True, exist_ok=False)
        except OSError as e:
            logger.error(f"workspace_create_failed project={project_name} error_type={type(e).__name__}")
            raise SynthesisError(f"Failed to create workspace: {e.strerror or e}") from e
        logger.info(f"workspace_created project={project_name} dir={workspace.name}")
        return workspace


def generate_project(
    selection: FeatureSelection,
    workspace: Path,
    versions: Optional[Mapping[str, str]] = None,
    owner: str = DEFAULT_OWNER,
) -> GenerationResult:
    """
    Plan, synthesize, write and archive a project inside workspace.

    Raises:
        SynthesisError: Directory or file write failure
        ArchivalError: Archive read/write failure
    """
    workspace = Path(workspace)
    project_dir = workspace / selection.name

    logger.info(
        f"project_generation_start project={selection.name} structure={selection.structure.value} "
        f"database={selection.database.value} libraries={len(selection.libraries)}"
    )

    directories = plan_directories(selection)
    create_directories(project_dir, directories)

    tree = synthesize(selection, versions=versions, owner=owner)
    write_tree(project_dir, tree)

    archive = create_archive(project_dir, workspace / f"{selection.name}.zip")

    logger.info(
        f"project_generated project={selection.name} files={len(tree.files)} archive_bytes={archive.size_bytes}"
    )
    return GenerationResult(
        selection=selection,
        workspace=workspace,
        project_dir=project_dir,
        directories=directories,
        tree=tree,
        archive=archive,
    )


# Global workspace manager
workspace_manager = WorkspaceManager()
