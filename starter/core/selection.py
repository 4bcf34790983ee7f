"""
Feature selection: the normalized, immutable record of user choices
that drives project generation.
"""
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from starter.core.catalog import LIBRARY_IDS, get_library

logger = logging.getLogger(__name__)

# Single path segment; cannot be "." or ".."
PROJECT_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,63}$")
MODULE_PATH_PATTERN = re.compile(r"^[A-Za-z0-9._~-]+(/[A-Za-z0-9._~-]+)*$")


class Structure(str, Enum):
    """Project layout."""
    SIMPLE = "simple"
    STANDARD = "standard"


class Database(str, Enum):
    """Database backend."""
    POSTGRES = "postgres"
    MYSQL = "mysql"
    MONGODB = "mongodb"
    NONE = "none"


class Deployment(str, Enum):
    """Deployment target."""
    RAILWAY = "railway"
    LOCAL = "local"
    DOCKER = "docker"


class ValidationError(ValueError):
    """Invalid feature selection."""
    pass


@dataclass(frozen=True)
class FeatureSelection:
    """Fully-defaulted feature selection (immutable)."""
    name: str
    module_path: str
    structure: Structure = Structure.SIMPLE
    database: Database = Database.NONE
    libraries: frozenset[str] = frozenset()
    deployment: Deployment = Deployment.RAILWAY

    @property
    def is_standard(self) -> bool:
        return self.structure is Structure.STANDARD

    @property
    def has_database(self) -> bool:
        return self.database is not Database.NONE

    def has_library(self, name: str) -> bool:
        return name in self.libraries

    def ordered_libraries(self) -> list[str]:
        """Selected library ids in catalog order."""
        return [name for name in LIBRARY_IDS if name in self.libraries]


def _parse_enum(enum_cls, value: Optional[str], default, label: str):
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"Invalid {label}: {value}. Allowed: {allowed}")


def normalize_selection(
    name: Optional[str],
    module_path: Optional[str],
    structure: Optional[str] = None,
    database: Optional[str] = None,
    libraries: Optional[Iterable[str]] = None,
    deployment: Optional[str] = None,
) -> FeatureSelection:
    """
    Validate raw choices and apply defaults.

    Defaults: structure=simple, database=none, deployment=railway.

    Raises:
        ValidationError: Empty or unsafe name/module path, unknown enum
            value, or unknown library id
    """
    name = (name or "").strip()
    if not name:
        raise ValidationError("Project name is required")
    if not PROJECT_NAME_PATTERN.match(name):
        raise ValidationError(
            "Project name must start with a letter or digit and contain only "
            "letters, numbers, dots, hyphens, and underscores (max 64 chars)"
        )

    module_path = (module_path or "").strip()
    if not module_path:
        raise ValidationError("Module path is required")
    if not MODULE_PATH_PATTERN.match(module_path):
        raise ValidationError(f"Invalid module path: {module_path}")

    selected: set[str] = set()
    for lib in libraries or []:
        lib_name = (lib or "").strip()
        if not lib_name:
            continue
        if get_library(lib_name) is None:
            raise ValidationError(f"Unknown library: {lib_name}")
        selected.add(lib_name)

    selection = FeatureSelection(
        name=name,
        module_path=module_path,
        structure=_parse_enum(Structure, structure, Structure.SIMPLE, "structure"),
        database=_parse_enum(Database, database, Database.NONE, "database"),
        libraries=frozenset(selected),
        deployment=_parse_enum(Deployment, deployment, Deployment.RAILWAY, "deployment"),
    )

    if not selection.has_database:
        needs_db = [n for n in selection.ordered_libraries() if get_library(n).requires_db]
        if needs_db:
            logger.warning(
                f"selection_library_without_database project={name} libraries={','.join(needs_db)}"
            )

    return selection
