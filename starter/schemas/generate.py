"""
Pydantic schemas for the generator API requests and responses.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from starter.core.catalog import Library
from starter.core.selection import FeatureSelection, normalize_selection


# =============================================================================
# Request Schemas
# =============================================================================

class DatabaseChoice(BaseModel):
    """Database block of a generate request."""
    type: Optional[str] = Field(
        default=None,
        description="postgres, mysql, mongodb, or none (default)",
    )


class GenerateRequest(BaseModel):
    """Request body for POST /api/generate."""

    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(default=None, description="Project name, also the archive name")
    module_path: Optional[str] = Field(default=None, alias="modulePath", description="Go module path")
    structure: Optional[str] = Field(default=None, description="simple (default) or standard")
    database: Optional[DatabaseChoice] = None
    libraries: Optional[list[str]] = Field(default=None, description="Library ids from /api/libraries")
    deployment: Optional[str] = Field(default=None, description="railway (default), local, or docker")

    def to_selection(self) -> FeatureSelection:
        """Normalize into a FeatureSelection (raises ValidationError)."""
        return normalize_selection(
            name=self.name,
            module_path=self.module_path,
            structure=self.structure,
            database=self.database.type if self.database else None,
            libraries=self.libraries or [],
            deployment=self.deployment,
        )


# =============================================================================
# Response Schemas
# =============================================================================

class LibraryItem(BaseModel):
    """A catalog entry as returned by GET /api/libraries."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    display_name: str = Field(alias="displayName")
    description: str
    version: str
    repo_url: str = Field(alias="repoURL")
    category: str
    requires_db: bool = Field(alias="requiresDB")

    @classmethod
    def from_library(cls, library: Library) -> "LibraryItem":
        return cls.model_validate(library.to_dict())


class LibrariesResponse(BaseModel):
    """Response for GET /api/libraries."""
    success: bool = True
    data: list[LibraryItem]
    count: int


class ErrorResponse(BaseModel):
    """Error body for every /api failure."""
    success: bool = False
    error: str
