"""
Library catalog for the optional go-* add-ons.

Static metadata for every add-on, with versions resolved from the latest
GitHub tag when available and a hardcoded default otherwise.

Failure policy:
- A failed, slow, or empty tag lookup never raises out of this module
- Each repository lookup fails independently
"""
import asyncio
import logging
import time
from dataclasses import asdict, dataclass, replace
from typing import Awaitable, Callable, Mapping, Optional

import httpx

from starter.core.config import get_service_config
from starter.core.metrics import metrics

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

GITHUB_API_URL = "https://api.github.com"
DEFAULT_OWNER = "OkanUysal"
USER_AGENT = "go-starter-api"
LOOKUP_TIMEOUT = 5  # seconds


class CatalogLookupError(Exception):
    """Error fetching a library version from the registry."""
    pass


@dataclass(frozen=True)
class Library:
    """A single catalog entry."""
    name: str
    display_name: str
    description: str
    category: str
    requires_db: bool
    version: str
    repo_url: str = ""

    def to_dict(self) -> dict:
        """Serialize with the public camelCase keys."""
        data = asdict(self)
        return {
            "name": data["name"],
            "displayName": data["display_name"],
            "description": data["description"],
            "version": data["version"],
            "repoURL": data["repo_url"],
            "category": data["category"],
            "requiresDB": data["requires_db"],
        }


# Fixed order; generated fragments follow it too
LIBRARY_CATALOG: tuple[Library, ...] = (
    Library("go-auth", "Authentication",
            "JWT authentication & authorization with middleware",
            "Security", False, "v1.0.0"),
    Library("go-migration", "Database Migration",
            "Database migrations for PostgreSQL, MySQL, MongoDB",
            "Database", True, "v1.0.0"),
    Library("go-logger", "Structured Logger",
            "High-performance structured logging with Zap",
            "Observability", False, "v1.0.1"),
    Library("go-cache", "Caching",
            "Multi-backend caching (Redis, In-Memory)",
            "Performance", False, "v1.0.0"),
    Library("go-swagger", "API Documentation",
            "Automatic Swagger/OpenAPI documentation",
            "Documentation", False, "v1.1.1"),
    Library("go-response", "API Response",
            "Standardized API response format",
            "API", False, "v1.0.0"),
    Library("go-validator", "Request Validator",
            "Request validation with custom rules",
            "API", False, "v1.0.0"),
    Library("go-pagination", "Pagination",
            "Offset & cursor-based pagination",
            "API", False, "v1.0.0"),
    Library("go-websocket", "WebSocket",
            "Real-time WebSocket with room management",
            "Real-time", False, "v1.0.0"),
    Library("go-metrics", "Metrics & Monitoring",
            "Prometheus metrics with Grafana integration",
            "Observability", False, "v1.0.5"),
)

LIBRARY_IDS: tuple[str, ...] = tuple(lib.name for lib in LIBRARY_CATALOG)
DEFAULT_VERSIONS: dict[str, str] = {lib.name: lib.version for lib in LIBRARY_CATALOG}


def get_library(name: str) -> Optional[Library]:
    """Look up a static catalog entry by id."""
    for lib in LIBRARY_CATALOG:
        if lib.name == name:
            return lib
    return None


def resolve_versions(versions: Optional[Mapping[str, str]] = None) -> dict[str, str]:
    """Map every library id to its fetched version, or the default."""
    versions = versions or {}
    return {
        name: versions.get(name) or default
        for name, default in DEFAULT_VERSIONS.items()
    }


def resolve_catalog(
    versions: Optional[Mapping[str, str]] = None,
    owner: str = DEFAULT_OWNER,
) -> list[Library]:
    """Return the full catalog with versions resolved."""
    resolved = resolve_versions(versions)
    return [
        replace(
            lib,
            version=resolved[lib.name],
            repo_url=f"https://github.com/{owner}/{lib.name}",
        )
        for lib in LIBRARY_CATALOG
    ]


# =============================================================================
# Live version lookup
# =============================================================================

def _get_http_client(timeout: float, token: Optional[str] = None) -> httpx.AsyncClient:
    """Create HTTP client with GitHub headers."""
    headers = {
        "User-Agent": USER_AGENT,
        "Accept": "application/vnd.github.v3+json",
    }
    if token:
        headers["Authorization"] = f"Bearer {token}"

    return httpx.AsyncClient(
        base_url=GITHUB_API_URL,
        timeout=timeout,
        headers=headers,
        follow_redirects=True,
    )


async def _fetch_latest_tag(client: httpx.AsyncClient, owner: str, repo: str) -> str:
    """
    Fetch the newest tag name for one repository.

    Raises:
        CatalogLookupError: On transport errors, non-200 responses,
            malformed payloads, or a repository without tags
    """
    try:
        response = await client.get(f"/repos/{owner}/{repo}/tags")
    except httpx.TimeoutException:
        raise CatalogLookupError(f"{repo}: timed out")
    except httpx.HTTPError as e:
        raise CatalogLookupError(f"{repo}: {type(e).__name__}")

    if response.status_code != 200:
        raise CatalogLookupError(f"{repo}: HTTP {response.status_code}")

    try:
        tags = response.json()
    except ValueError:
        raise CatalogLookupError(f"{repo}: invalid JSON")

    if not isinstance(tags, list) or not tags:
        raise CatalogLookupError(f"{repo}: no tags")

    name = tags[0].get("name") if isinstance(tags[0], dict) else None
    if not name:
        raise CatalogLookupError(f"{repo}: malformed tag")
    return name


async def _fetch_version_safe(client: httpx.AsyncClient, owner: str, repo: str) -> Optional[str]:
    try:
        version = await _fetch_latest_tag(client, owner, repo)
    except CatalogLookupError as e:
        metrics.inc("version_lookups_failed_total")
        logger.debug(f"version_lookup_failed reason={e}")
        return None
    logger.debug(f"version_lookup_ok repo={repo} version={version}")
    return version


async def fetch_latest_versions(
    owner: str = DEFAULT_OWNER,
    timeout: float = LOOKUP_TIMEOUT,
    token: Optional[str] = None,
) -> dict[str, str]:
    """
    Fetch the latest tag of every catalog library concurrently.

    Returns:
        Mapping of library id -> version, omitting ids whose lookup failed.
        Never raises.
    """
    try:
        async with _get_http_client(timeout, token) as client:
            results = await asyncio.gather(
                *(_fetch_version_safe(client, owner, name) for name in LIBRARY_IDS)
            )
    except Exception as e:
        # Client setup/teardown failures degrade like any other lookup failure
        logger.warning(f"version_lookup_unavailable error_type={type(e).__name__}")
        return {}

    versions = {name: v for name, v in zip(LIBRARY_IDS, results) if v}
    logger.info(f"versions_fetched count={len(versions)}")
    return versions


# =============================================================================
# Version cache
# =============================================================================

VersionFetcher = Callable[[], Awaitable[dict[str, str]]]


class VersionCache:
    """
    Keeps the last fetched versions for a TTL.

    Concurrent refreshes are harmless: each one re-fetches and replaces
    the whole mapping.
    """

    def __init__(
        self,
        ttl_seconds: int,
        fetcher: VersionFetcher,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._ttl = ttl_seconds
        self._fetcher = fetcher
        self._clock = clock
        self._versions: dict[str, str] = {}
        self._fetched_at: Optional[float] = None

    @property
    def is_stale(self) -> bool:
        if self._fetched_at is None:
            return True
        return self._clock() - self._fetched_at >= self._ttl

    async def refresh(self) -> dict[str, str]:
        """Re-fetch versions and replace the cached mapping."""
        try:
            versions = await self._fetcher()
        except Exception as e:
            logger.warning(f"version_refresh_failed error_type={type(e).__name__}")
            versions = {}
        self._versions = dict(versions)
        self._fetched_at = self._clock()
        return dict(self._versions)

    async def get_versions(self) -> dict[str, str]:
        """Return cached versions, refreshing first when stale."""
        if self.is_stale:
            return await self.refresh()
        return dict(self._versions)

    def clear(self) -> None:
        self._versions = {}
        self._fetched_at = None


def _default_fetcher() -> Awaitable[dict[str, str]]:
    config = get_service_config()
    return fetch_latest_versions(
        owner=config.library_owner,
        timeout=config.version_timeout_s,
        token=config.github_token,
    )


# Global version cache instance
version_cache = VersionCache(
    ttl_seconds=get_service_config().version_cache_ttl_s,
    fetcher=_default_fetcher,
)
