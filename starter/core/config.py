"""
Service configuration from environment variables.
All settings are optional with safe defaults.
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


def _int_env(name: str, default: int, minimum: int = 0) -> int:
    """Read an integer env var, falling back to default on bad input."""
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value >= minimum else default


@dataclass(frozen=True)
class ServiceConfig:
    """Service configuration (immutable)."""
    temp_dir: Path = Path("temp")
    delete_after_s: int = 600
    max_age_s: int = 1800
    sweep_interval_s: int = 300
    version_timeout_s: int = 5
    version_cache_ttl_s: int = 3600
    library_owner: str = "OkanUysal"
    github_token: Optional[str] = None  # Never logged
    log_level: str = "INFO"
    listen_host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: tuple[str, ...] = ("*",)


def get_service_config() -> ServiceConfig:
    """Load service configuration from environment."""
    origins = tuple(
        o.strip() for o in os.getenv("STARTER_CORS_ORIGINS", "*").split(",") if o.strip()
    ) or ("*",)

    return ServiceConfig(
        temp_dir=Path(os.getenv("STARTER_TEMP_DIR", "temp") or "temp"),
        delete_after_s=_int_env("STARTER_DELETE_AFTER_S", 600),
        max_age_s=_int_env("STARTER_MAX_AGE_S", 1800, minimum=1),
        sweep_interval_s=_int_env("STARTER_SWEEP_INTERVAL_S", 300, minimum=1),
        version_timeout_s=_int_env("STARTER_VERSION_TIMEOUT_S", 5, minimum=1),
        version_cache_ttl_s=_int_env("STARTER_VERSION_CACHE_TTL_S", 3600),
        library_owner=os.getenv("STARTER_LIBRARY_OWNER", "OkanUysal") or "OkanUysal",
        github_token=os.getenv("GITHUB_TOKEN") or None,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        listen_host=os.getenv("LISTEN_HOST", "0.0.0.0"),
        port=_int_env("PORT", 8080, minimum=1),
        cors_origins=origins,
    )
