"""
Directory planner: which directories a feature selection requires.
"""
import logging
from pathlib import Path
from typing import Iterable

from starter.core.scaffold import SynthesisError
from starter.core.selection import FeatureSelection

logger = logging.getLogger(__name__)

CONFIG_DIR = "config"
STANDARD_DIRS = (
    "cmd/server",
    "internal/handlers",
    "internal/middleware",
    "internal/models",  # reserved; no files are emitted here yet
)
MIGRATIONS_DIR = "migrations"


def plan_directories(selection: FeatureSelection) -> list[str]:
    """Return the relative directories to create, in a readable order."""
    dirs = [CONFIG_DIR]

    if selection.is_standard:
        dirs.extend(STANDARD_DIRS)

    # Created regardless of database choice
    if selection.has_library("go-migration"):
        dirs.append(MIGRATIONS_DIR)

    return dirs


def create_directories(root: Path, dirs: Iterable[str]) -> list[Path]:
    """
    Create each directory under root. Idempotent.

    Raises:
        SynthesisError: If any directory cannot be created. Directories
            already created are left in place.
    """
    created = []
    for rel in dirs:
        path = Path(root) / rel
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"directory_create_failed dir={rel} error_type={type(e).__name__}")
            raise SynthesisError(f"Failed to create directory {rel}: {e.strerror or e}") from e
        created.append(path)
    return created
