"""
Archive creation for generated project trees.

Walks a project directory depth-first in name order and writes a ZIP
whose entries are relative to the directory's parent, so the project
folder is the top-level entry.

Guarantees:
- Directory entries are recorded explicitly (trailing "/")
- Entry names always use forward slashes
- File entries are deflate-compressed
- On failure the partial archive is removed and ArchivalError raised
"""
import hashlib
import logging
import zipfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

logger = logging.getLogger(__name__)

READ_CHUNK = 64 * 1024


class ArchivalError(Exception):
    """Error while reading a tree or writing its archive."""
    pass


@dataclass
class ArchiveInfo:
    """Information about a created archive."""
    path: Path
    name: str
    size_bytes: int
    sha256: str
    entries: int
    created_at: datetime

    def read_bytes(self) -> bytes:
        return self.path.read_bytes()


def walk_tree(root: Path) -> Iterator[Path]:
    """
    Yield root and everything below it, depth-first, directories before
    their contents, siblings in name order.

    Raises:
        OSError: If a directory cannot be listed
    """
    yield root
    if root.is_dir() and not root.is_symlink():
        for child in sorted(root.iterdir(), key=lambda p: p.name):
            yield from walk_tree(child)


def archive_name(path: Path, base: Path) -> str:
    """Entry name of path relative to base, with forward slashes."""
    name = path.relative_to(base).as_posix()
    if path.is_dir():
        name += "/"
    return name


def _sha256_file(path: Path) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(READ_CHUNK), b""):
            digest.update(chunk)
    return digest.hexdigest()


def create_archive(project_dir: Path, archive_path: Optional[Path] = None) -> ArchiveInfo:
    """
    Create a ZIP archive of a project directory.

    Args:
        project_dir: Root of a fully written project tree
        archive_path: Destination; defaults to <parent>/<project>.zip

    Returns:
        ArchiveInfo with archive metadata

    Raises:
        ArchivalError: If the tree cannot be read or the archive written
    """
    project_dir = Path(project_dir)
    if not project_dir.is_dir():
        raise ArchivalError(f"Project directory not found: {project_dir.name}")

    base = project_dir.parent
    if archive_path is None:
        archive_path = base / f"{project_dir.name}.zip"
    archive_path = Path(archive_path)

    entries = 0
    try:
        with zipfile.ZipFile(archive_path, "w", zipfile.ZIP_DEFLATED) as zf:
            for path in walk_tree(project_dir):
                arcname = archive_name(path, base)
                info = zipfile.ZipInfo.from_file(path, arcname)
                if path.is_dir():
                    zf.writestr(info, b"")
                else:
                    info.compress_type = zipfile.ZIP_DEFLATED
                    with open(path, "rb") as src, zf.open(info, "w") as dest:
                        for chunk in iter(lambda: src.read(READ_CHUNK), b""):
                            dest.write(chunk)
                entries += 1
    except (OSError, zipfile.BadZipFile, ValueError) as e:
        archive_path.unlink(missing_ok=True)
        logger.error(
            f"archive_failed project={project_dir.name} error_type={type(e).__name__}"
        )
        raise ArchivalError(f"Failed to create archive: {e}") from e

    size = archive_path.stat().st_size
    sha256 = _sha256_file(archive_path)
    logger.info(f"archive_created project={project_dir.name} entries={entries} size={size}")

    return ArchiveInfo(
        path=archive_path,
        name=archive_path.name,
        size_bytes=size,
        sha256=sha256,
        entries=entries,
        created_at=datetime.now(timezone.utc),
    )
