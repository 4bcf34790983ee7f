"""
Expiry of ephemeral generated trees and archives.

Two mechanisms share one storage root:
- A one-shot deferred removal scheduled per request
- A periodic sweep removing anything older than a maximum age

Failure policy:
- Removing an already-removed path counts as done, not as an error
- A failure acting on one entry is logged and the walk continues
- A failure listing a directory aborts the sweep (CleanupError)
"""
import asyncio
import logging
import shutil
import stat
import time
from pathlib import Path
from typing import Optional

from starter.core.config import get_service_config
from starter.core.metrics import metrics

logger = logging.getLogger(__name__)


class CleanupError(Exception):
    """A sweep could not enumerate the storage tree."""
    pass


def remove_path(path: Path) -> bool:
    """
    Best-effort removal of a file or directory tree.

    Returns:
        True if the path was removed, False if it was already gone or
        could not be removed (the failure is logged)
    """
    path = Path(path)
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning(f"cleanup_remove_failed path={path} error_type={type(e).__name__}")
        return False
    logger.debug(f"cleanup_removed path={path}")
    return True


def sweep_expired(root: Path, max_age_s: float, now: Optional[float] = None) -> int:
    """
    Remove every entry under root whose mtime is older than max_age_s.

    The root itself is never removed. A removed directory is not
    descended into.

    Returns:
        Number of entries removed

    Raises:
        CleanupError: If a directory cannot be listed
    """
    root = Path(root)
    if not root.exists():
        return 0

    now = time.time() if now is None else now
    removed = 0

    def visit(directory: Path) -> None:
        nonlocal removed
        try:
            children = sorted(directory.iterdir(), key=lambda p: p.name)
        except FileNotFoundError:
            return  # removed concurrently
        except OSError as e:
            raise CleanupError(f"Cannot list {directory}: {e.strerror or e}") from e

        for child in children:
            try:
                st = child.lstat()
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning(f"cleanup_stat_failed path={child} error_type={type(e).__name__}")
                continue

            if now - st.st_mtime > max_age_s and remove_path(child):
                removed += 1
                continue

            if stat.S_ISDIR(st.st_mode):
                visit(child)

    visit(root)

    if removed > 0:
        logger.info(f"cleanup_completed removed={removed} dir={root}")
    return removed


class Reaper:
    """
    Runs the periodic sweep and deferred removals on the event loop.

    start() runs one sweep immediately, then one per interval until
    stop() is called. stop() also cancels pending deferred removals.
    """

    def __init__(
        self,
        root: Path,
        max_age_s: float,
        interval_s: float,
        delete_after_s: float,
    ):
        self.root = Path(root)
        self.max_age_s = max_age_s
        self.interval_s = interval_s
        self.delete_after_s = delete_after_s
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._pending: set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def pending_removals(self) -> int:
        return len(self._pending)

    async def run_once(self) -> int:
        """Run a single sweep off the event loop. Never raises CleanupError."""
        try:
            removed = await asyncio.to_thread(sweep_expired, self.root, self.max_age_s)
        except CleanupError as e:
            logger.error(f"cleanup_failed dir={self.root} error={e}")
            return 0
        if removed:
            metrics.inc("cleanup_removed_total", removed)
        return removed

    async def _run(self) -> None:
        assert self._stop_event is not None
        while True:
            await self.run_once()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_s)
                return
            except asyncio.TimeoutError:
                continue

    def start(self) -> None:
        """Start the periodic sweep. No-op if already running."""
        if self.is_running:
            return
        self.root.mkdir(parents=True, exist_ok=True)
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name="reaper-sweep")
        logger.info(
            f"reaper_started dir={self.root} interval_s={self.interval_s} max_age_s={self.max_age_s}"
        )

    async def stop(self) -> None:
        """Stop the sweep and cancel pending deferred removals."""
        if self._stop_event is not None:
            self._stop_event.set()
        if self._task is not None:
            await self._task
            self._task = None

        pending = list(self._pending)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._pending.clear()
        logger.info("reaper_stopped")

    def schedule_removal(self, path: Path, delay: Optional[float] = None) -> asyncio.Task:
        """Remove path once after delay seconds (default: delete_after_s)."""
        delay = self.delete_after_s if delay is None else delay
        task = asyncio.create_task(self._remove_later(Path(path), delay))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _remove_later(self, path: Path, delay: float) -> None:
        await asyncio.sleep(delay)
        if await asyncio.to_thread(remove_path, path):
            metrics.inc("cleanup_removed_total")
            logger.info(f"cleanup_deferred_removed path={path.name}")


def _build_reaper() -> Reaper:
    config = get_service_config()
    return Reaper(
        root=config.temp_dir,
        max_age_s=config.max_age_s,
        interval_s=config.sweep_interval_s,
        delete_after_s=config.delete_after_s,
    )


# Global reaper instance
reaper = _build_reaper()
