"""
Reaper (cleanup) tests.
"""
import asyncio
import os
import time
from pathlib import Path
from unittest.mock import patch

import pytest

from starter.core.reaper import CleanupError, Reaper, remove_path, sweep_expired


def age(path: Path, seconds: float) -> None:
    """Backdate a path's mtime by seconds."""
    past = time.time() - seconds
    os.utime(path, (past, past))


@pytest.fixture
def storage(tmp_path):
    """Storage root with one expired workspace and one fresh workspace."""
    old = tmp_path / "old_1_aaaa"
    (old / "old").mkdir(parents=True)
    (old / "old" / "go.mod").write_text("module old\n")
    (old / "old.zip").write_bytes(b"PK")
    for p in (old / "old" / "go.mod", old / "old", old / "old.zip", old):
        age(p, 3600)

    fresh = tmp_path / "fresh_2_bbbb"
    (fresh / "fresh").mkdir(parents=True)
    (fresh / "fresh.zip").write_bytes(b"PK")
    return tmp_path


class TestRemovePath:
    """Tests for remove_path."""

    def test_removes_directory_tree(self, tmp_path):
        """Directories are removed recursively."""
        target = tmp_path / "ws"
        (target / "sub").mkdir(parents=True)
        (target / "sub" / "f.txt").write_text("x")
        assert remove_path(target) is True
        assert not target.exists()

    def test_removes_file(self, tmp_path):
        """Plain files are unlinked."""
        target = tmp_path / "a.zip"
        target.write_bytes(b"PK")
        assert remove_path(target) is True
        assert not target.exists()

    def test_missing_path_is_not_an_error(self, tmp_path):
        """Already removed counts as done."""
        assert remove_path(tmp_path / "gone") is False

    def test_failure_is_logged_not_raised(self, tmp_path, caplog):
        """Per-entry failures are swallowed and logged."""
        target = tmp_path / "a.zip"
        target.write_bytes(b"PK")
        with patch("pathlib.Path.unlink", side_effect=PermissionError(13, "denied")):
            assert remove_path(target) is False
        assert "cleanup_remove_failed" in caplog.text


class TestSweepExpired:
    """Tests for the expiry sweep."""

    def test_removes_only_expired(self, storage):
        """Old workspace goes, fresh one stays, root survives."""
        removed = sweep_expired(storage, max_age_s=1800)
        assert removed == 1
        assert not (storage / "old_1_aaaa").exists()
        assert (storage / "fresh_2_bbbb" / "fresh.zip").exists()
        assert storage.exists()

    def test_second_sweep_is_noop(self, storage):
        """Running twice with nothing new removes nothing and never errors."""
        sweep_expired(storage, max_age_s=1800)
        assert sweep_expired(storage, max_age_s=1800) == 0
        assert (storage / "fresh_2_bbbb").exists()

    def test_descends_into_fresh_directories(self, tmp_path):
        """An expired file inside a fresh directory is still removed."""
        ws = tmp_path / "ws"
        ws.mkdir()
        stale = ws / "stale.zip"
        stale.write_bytes(b"PK")
        age(stale, 7200)
        assert sweep_expired(tmp_path, max_age_s=1800) == 1
        assert ws.exists()
        assert not stale.exists()

    def test_explicit_now(self, storage):
        """A far-future now expires everything below the root."""
        removed = sweep_expired(storage, max_age_s=60, now=time.time() + 10_000)
        assert removed == 2
        assert list(storage.iterdir()) == []

    def test_missing_root_is_noop(self, tmp_path):
        """No storage root means nothing to do."""
        assert sweep_expired(tmp_path / "nope", max_age_s=1) == 0

    def test_entry_failure_does_not_abort(self, storage, caplog):
        """A failed removal is skipped and the walk continues."""
        extra = storage / "another_3_cccc"
        extra.mkdir()
        age(extra, 3600)

        real_remove = remove_path

        def flaky_remove(path):
            if path.name == "another_3_cccc":
                return False
            return real_remove(path)

        with patch("starter.core.reaper.remove_path", side_effect=flaky_remove):
            removed = sweep_expired(storage, max_age_s=1800)

        assert removed == 1
        assert not (storage / "old_1_aaaa").exists()
        assert extra.exists()

    def test_listing_failure_aborts(self, storage):
        """Failing to enumerate a directory raises CleanupError."""
        with patch("pathlib.Path.iterdir", side_effect=PermissionError(13, "denied")):
            with pytest.raises(CleanupError, match="Cannot list"):
                sweep_expired(storage, max_age_s=1800)


class TestReaper:
    """Tests for the scheduled reaper."""

    @pytest.mark.asyncio
    async def test_start_runs_initial_sweep_and_stops(self, storage):
        """start() sweeps immediately; stop() ends the loop."""
        reaper = Reaper(storage, max_age_s=1800, interval_s=3600, delete_after_s=600)
        reaper.start()
        assert reaper.is_running

        for _ in range(100):
            if not (storage / "old_1_aaaa").exists():
                break
            await asyncio.sleep(0.01)

        assert not (storage / "old_1_aaaa").exists()
        await reaper.stop()
        assert not reaper.is_running

    @pytest.mark.asyncio
    async def test_start_twice_is_noop(self, tmp_path):
        """A second start keeps the same task."""
        reaper = Reaper(tmp_path, max_age_s=1800, interval_s=3600, delete_after_s=600)
        reaper.start()
        task = reaper._task
        reaper.start()
        assert reaper._task is task
        await reaper.stop()

    @pytest.mark.asyncio
    async def test_run_once_survives_cleanup_error(self, tmp_path, caplog):
        """A listing failure is logged and reported as zero removals."""
        reaper = Reaper(tmp_path, max_age_s=1, interval_s=3600, delete_after_s=600)
        with patch("starter.core.reaper.sweep_expired", side_effect=CleanupError("Cannot list x")):
            assert await reaper.run_once() == 0
        assert "cleanup_failed" in caplog.text

    @pytest.mark.asyncio
    async def test_schedule_removal_deletes_after_delay(self, tmp_path):
        """A deferred removal deletes its workspace once."""
        ws = tmp_path / "ws"
        ws.mkdir()
        reaper = Reaper(tmp_path, max_age_s=1800, interval_s=3600, delete_after_s=600)

        task = reaper.schedule_removal(ws, delay=0)
        assert reaper.pending_removals == 1
        await task
        assert not ws.exists()
        assert reaper.pending_removals == 0

    @pytest.mark.asyncio
    async def test_stop_cancels_pending_removals(self, tmp_path):
        """Pending deferred removals are cancelled on stop."""
        ws = tmp_path / "ws"
        ws.mkdir()
        reaper = Reaper(tmp_path, max_age_s=1800, interval_s=3600, delete_after_s=600)
        reaper.start()
        reaper.schedule_removal(ws)
        await reaper.stop()
        assert reaper.pending_removals == 0
        assert ws.exists()

    @pytest.mark.asyncio
    async def test_removal_of_already_swept_path(self, tmp_path):
        """A deferred removal after the sweep got there first is harmless."""
        reaper = Reaper(tmp_path, max_age_s=1800, interval_s=3600, delete_after_s=600)
        await reaper.schedule_removal(tmp_path / "gone", delay=0)
        assert reaper.pending_removals == 0
