"""
Directory planner tests.
"""
from unittest.mock import patch

import pytest

from starter.core.planner import create_directories, plan_directories
from starter.core.scaffold import SynthesisError


class TestPlanDirectories:
    """Tests for which directories a selection needs."""

    def test_simple_layout_only_needs_config(self, make_selection):
        """The simple layout keeps everything at the root except config."""
        assert plan_directories(make_selection()) == ["config"]

    def test_standard_layout_adds_layered_dirs(self, make_selection):
        """The standard layout adds cmd/server and internal/*."""
        dirs = plan_directories(make_selection(structure="standard"))
        assert dirs == [
            "config",
            "cmd/server",
            "internal/handlers",
            "internal/middleware",
            "internal/models",
        ]

    @pytest.mark.parametrize("database", ["none", "postgres"])
    def test_migration_adds_migrations_dir_regardless_of_database(self, make_selection, database):
        """go-migration always gets its directory."""
        dirs = plan_directories(make_selection(libraries=["go-migration"], database=database))
        assert dirs[-1] == "migrations"

    def test_other_libraries_add_no_dirs(self, make_selection):
        """Only go-migration gates a directory."""
        sel = make_selection(libraries=["go-auth", "go-logger", "go-metrics", "go-cache"])
        assert plan_directories(sel) == ["config"]


class TestCreateDirectories:
    """Tests for creating planned directories."""

    def test_creates_nested_dirs(self, tmp_path):
        """Intermediate directories and the root itself are created."""
        root = tmp_path / "proj"
        created = create_directories(root, ["config", "cmd/server"])
        assert (root / "config").is_dir()
        assert (root / "cmd" / "server").is_dir()
        assert created == [root / "config", root / "cmd/server"]

    def test_is_idempotent(self, tmp_path):
        """Creating the same dirs twice succeeds."""
        create_directories(tmp_path, ["config"])
        create_directories(tmp_path, ["config"])
        assert (tmp_path / "config").is_dir()

    def test_failure_raises_synthesis_error(self, tmp_path):
        """A file in the way of a directory is a synthesis failure."""
        (tmp_path / "config").write_text("not a dir")
        with pytest.raises(SynthesisError, match="config"):
            create_directories(tmp_path, ["config"])

    def test_permission_error_wrapped(self, tmp_path):
        """OS errors never escape unwrapped."""
        with patch("pathlib.Path.mkdir", side_effect=PermissionError(13, "Permission denied")):
            with pytest.raises(SynthesisError, match="Permission denied"):
                create_directories(tmp_path, ["config"])
