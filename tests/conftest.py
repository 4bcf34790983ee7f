"""
Pytest configuration and fixtures.
"""
import os
import sys
import tempfile

# Point the service at a throwaway temp dir before importing the app
os.environ["STARTER_TEMP_DIR"] = tempfile.mkdtemp(prefix="starter-tests-")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from main import app
from starter.core.catalog import version_cache
from starter.core.selection import normalize_selection


@pytest.fixture(autouse=True)
def offline_versions():
    """Never reach GitHub from tests; every lookup returns no versions."""
    version_cache.clear()
    with patch.object(version_cache, "_fetcher", AsyncMock(return_value={})) as fetcher:
        yield fetcher
    version_cache.clear()


@pytest.fixture
def client():
    """Create a test client with the lifespan (reaper) running."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_selection():
    """Build a normalized selection with sensible defaults."""
    def _make(**overrides):
        raw = {"name": "my-api", "module_path": "github.com/acme/my-api"}
        raw.update(overrides)
        return normalize_selection(**raw)
    return _make
