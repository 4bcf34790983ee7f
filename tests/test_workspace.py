"""
Workspace and generation pipeline tests.
"""
import re
import zipfile
from unittest.mock import patch

import pytest

from starter.core.artifact_store import ArchivalError
from starter.core.scaffold import SynthesisError
from starter.core.workspace import WorkspaceManager, generate_project


class TestWorkspaceManager:
    """Tests for per-request workspaces."""

    def test_workspace_name_format(self):
        """<name>_<unix seconds>_<8 hex>."""
        name = WorkspaceManager.workspace_name("my-api", created_at=1700000000.9)
        assert re.fullmatch(r"my-api_1700000000_[0-9a-f]{8}", name)

    def test_same_second_names_differ(self):
        """The random suffix prevents same-second collisions."""
        names = {WorkspaceManager.workspace_name("my-api", created_at=1) for _ in range(20)}
        assert len(names) == 20

    def test_create_workspace(self, tmp_path):
        """A new directory is created under the base dir."""
        manager = WorkspaceManager(tmp_path / "temp")
        ws = manager.create_workspace("my-api")
        assert ws.is_dir()
        assert ws.parent == tmp_path / "temp"
        assert ws.name.startswith("my-api_")

    def test_create_workspace_failure(self, tmp_path):
        """OS errors become synthesis failures."""
        blocker = tmp_path / "temp"
        blocker.write_text("file, not dir")
        with pytest.raises(SynthesisError, match="workspace"):
            WorkspaceManager(blocker).create_workspace("my-api")


class TestGenerateProject:
    """Tests for the plan-synthesize-write-archive pipeline."""

    def test_layout_on_disk(self, tmp_path, make_selection):
        """Project dir and sibling archive inside the workspace."""
        sel = make_selection(structure="standard", libraries=["go-migration"])
        result = generate_project(sel, tmp_path)

        assert result.project_dir == tmp_path / "my-api"
        assert (tmp_path / "my-api" / "cmd" / "server" / "main.go").is_file()
        assert (tmp_path / "my-api" / "migrations").is_dir()
        assert (tmp_path / "my-api" / "internal" / "models").is_dir()
        assert result.archive.path == tmp_path / "my-api.zip"
        assert result.filename == "my-api.zip"
        assert "migrations" in result.directories

    def test_archive_matches_tree(self, tmp_path, make_selection):
        """The archive holds exactly the synthesized files."""
        result = generate_project(make_selection(libraries=["go-auth"]), tmp_path)
        with zipfile.ZipFile(result.archive.path) as zf:
            files = {n[len("my-api/"):]: zf.read(n).decode("utf-8")
                     for n in zf.namelist() if not n.endswith("/")}
        assert files == result.tree.as_dict()

    def test_versions_and_owner_flow_through(self, tmp_path, make_selection):
        """Fetched versions reach go.mod."""
        result = generate_project(
            make_selection(libraries=["go-cache"]), tmp_path,
            versions={"go-cache": "v4.0.0"}, owner="acme",
        )
        go_mod = (result.project_dir / "go.mod").read_text()
        assert "github.com/acme/go-cache v4.0.0" in go_mod

    def test_write_failure_propagates(self, tmp_path, make_selection):
        """Synthesis failures abort without cleanup."""
        with patch("starter.core.workspace.write_tree", side_effect=SynthesisError("Failed to write go.mod")):
            with pytest.raises(SynthesisError):
                generate_project(make_selection(), tmp_path)
        assert (tmp_path / "my-api" / "config").is_dir()

    def test_archive_failure_propagates(self, tmp_path, make_selection):
        """Archival failures abort the pipeline."""
        with patch("starter.core.workspace.create_archive", side_effect=ArchivalError("boom")):
            with pytest.raises(ArchivalError):
                generate_project(make_selection(), tmp_path)
