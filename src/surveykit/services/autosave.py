"""Periodic generational backups of project state files.

Each snapshot is written to ``<project>/backups/<timestamp>/``. Directory
names are derived from ISO-8601 timestamps, so sorting them by name sorts
them by creation time; generations beyond the retention count are removed
oldest first.
"""

import asyncio
import shutil
import threading
from collections.abc import Sequence
from pathlib import Path

import anyio

from surveykit.config.constants import (
    BACKUPS_DIR,
    DEFAULT_AUTOSAVE_INTERVAL_SECONDS,
    DEFAULT_BACKUP_FILES,
    DEFAULT_MAX_BACKUP_GENERATIONS,
)
from surveykit.config.settings import AutoSaveConfig
from surveykit.exceptions import BackupIOError
from surveykit.utils.fs import ensure_directory, timestamp_dirname
from surveykit.utils.logging import get_logger

log = get_logger(__name__)

PARTIAL_SUFFIX = ".partial"

# One snapshot per project at a time, across all service instances
_snapshot_locks: dict[str, threading.Lock] = {}
_snapshot_locks_guard = threading.Lock()


def _snapshot_lock(project_path: Path) -> threading.Lock:
    key = str(project_path.resolve())
    with _snapshot_locks_guard:
        lock = _snapshot_locks.get(key)
        if lock is None:
            lock = _snapshot_locks[key] = threading.Lock()
        return lock


class AutoSaveService:
    """Snapshot project files on a timer while changes are pending.

    Usage:
        autosave = AutoSaveService(interval=60, max_backup_generations=3)
        autosave.start(project_path)
        autosave.mark_dirty()      # after every edit
        ...
        await autosave.stop()
    """

    def __init__(
        self,
        interval: float = DEFAULT_AUTOSAVE_INTERVAL_SECONDS,
        max_backup_generations: int = DEFAULT_MAX_BACKUP_GENERATIONS,
        backup_files: Sequence[str] | None = None,
        backups_dir: str = BACKUPS_DIR,
    ) -> None:
        """Initialize the service.

        Args:
            interval: Seconds between ticks
            max_backup_generations: Generations kept per project
            backup_files: Project-relative files copied into each generation
            backups_dir: Directory under the project root holding generations
        """
        if interval <= 0:
            raise ValueError("interval must be positive")
        if max_backup_generations < 1:
            raise ValueError("max_backup_generations must be at least 1")
        self.interval = interval
        self.max_backup_generations = max_backup_generations
        self.backup_files = tuple(backup_files if backup_files is not None else DEFAULT_BACKUP_FILES)
        self.backups_dir = backups_dir

        self._project: Path | None = None
        self._task: asyncio.Task[None] | None = None
        self._revision = 0
        self._saved_revision = 0

    @classmethod
    def from_config(cls, config: AutoSaveConfig) -> "AutoSaveService":
        return cls(
            interval=config.interval_seconds,
            max_backup_generations=config.max_backup_generations,
            backup_files=config.backup_files,
            backups_dir=config.backups_dir,
        )

    @property
    def project_path(self) -> Path | None:
        return self._project

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def is_dirty(self) -> bool:
        return self._revision != self._saved_revision

    def start(self, project_path: Path | str) -> None:
        """Start ticking for a project, replacing any previous timer."""
        if self._task is not None:
            self._task.cancel()
        self._project = Path(project_path)
        self._task = asyncio.get_running_loop().create_task(self._run(), name="surveykit-autosave")
        log.info("Auto-save started", project=str(self._project), interval=self.interval)

    async def stop(self) -> None:
        """Stop the timer and forget the project."""
        task, self._task = self._task, None
        self._project = None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            log.info("Auto-save stopped")

    def mark_dirty(self) -> None:
        self._revision += 1

    def mark_clean(self) -> None:
        self._saved_revision = self._revision

    async def tick(self) -> Path | None:
        """Snapshot the project if it has unsaved changes.

        Failures are logged and leave the dirty flag set.

        Returns:
            The new generation directory, or None if nothing was written
        """
        project = self._project
        if project is None or not self.is_dirty:
            return None

        revision = self._revision
        try:
            backup = await self.create_backup(project)
        except Exception as e:
            log.error("Auto-save failed", project=str(project), error=str(e))
            return None

        if backup is not None:
            # Edits made while the snapshot was written stay pending
            self._saved_revision = max(self._saved_revision, revision)
            log.info("Auto-save completed", backup=backup.name)
        return backup

    async def create_backup(self, project_path: Path | str) -> Path | None:
        """Write a new backup generation and prune old ones.

        Returns:
            The generation directory, or None if another snapshot of the same
            project was already in progress

        Raises:
            BackupIOError: If the generation could not be written
        """
        return await anyio.to_thread.run_sync(self._create_backup_sync, Path(project_path))

    async def list_backups(self, project_path: Path | str) -> list[Path]:
        """List backup generations, newest first."""
        return await anyio.to_thread.run_sync(self._list_generations, Path(project_path))

    async def recover_from_backup(self, project_path: Path | str) -> bool:
        """Copy the newest generation's files over the live project files.

        Returns:
            False if no backup generation exists

        Raises:
            BackupIOError: If a file could not be restored
        """
        return await anyio.to_thread.run_sync(self._recover_sync, Path(project_path))

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await self.tick()

    def _create_backup_sync(self, project: Path) -> Path | None:
        lock = _snapshot_lock(project)
        if not lock.acquire(blocking=False):
            log.info("Backup already in progress, skipping", project=str(project))
            return None
        try:
            backups_root = project / self.backups_dir
            try:
                ensure_directory(backups_root)
                backup_dir = _next_generation_path(backups_root)
                staging = backups_root / f".{backup_dir.name}{PARTIAL_SUFFIX}"
                staging.mkdir()
            except OSError as e:
                raise BackupIOError(backups_root, str(e), cause=e) from e

            # Files land in a hidden staging dir; only a complete copy gets a generation name
            try:
                copied = self._copy_backup_files(project, staging)
                try:
                    staging.rename(backup_dir)
                except OSError as e:
                    raise BackupIOError(backup_dir, str(e), cause=e) from e
            except BackupIOError:
                shutil.rmtree(staging, ignore_errors=True)
                raise

            log.debug("Backup generation written", backup=str(backup_dir), files=copied)
            self._prune(backups_root)
            return backup_dir
        finally:
            lock.release()

    def _copy_backup_files(self, project: Path, target: Path) -> int:
        copied = 0
        for name in self.backup_files:
            source = project / name
            if not source.is_file():
                continue
            try:
                shutil.copy2(source, target / name)
            except OSError as e:
                raise BackupIOError(source, str(e), cause=e) from e
            copied += 1
        return copied

    def _list_generations(self, project: Path) -> list[Path]:
        return _generations(project / self.backups_dir)

    def _prune(self, backups_root: Path) -> None:
        stale = _generations(backups_root)[self.max_backup_generations :]
        # Staging dirs left behind by an interrupted process
        stale += [entry for entry in backups_root.iterdir() if _is_partial(entry)]
        for entry in stale:
            try:
                shutil.rmtree(entry)
                log.debug("Deleted old backup", backup=str(entry))
            except OSError as e:
                log.warning("Failed to delete old backup", backup=str(entry), error=str(e))

    def _recover_sync(self, project: Path) -> bool:
        generations = self._list_generations(project)
        if not generations:
            log.info("No backup to recover from", project=str(project))
            return False

        latest = generations[0]
        for entry in latest.iterdir():
            if not entry.is_file():
                continue
            try:
                shutil.copy2(entry, project / entry.name)
            except OSError as e:
                raise BackupIOError(entry, str(e), cause=e) from e

        log.info("Recovered from backup", backup=str(latest))
        return True


def _generations(backups_root: Path) -> list[Path]:
    """Generation directories under ``backups_root``, newest first."""
    if not backups_root.is_dir():
        return []
    generations = [
        entry
        for entry in backups_root.iterdir()
        if entry.is_dir() and not entry.name.startswith(".")
    ]
    return sorted(generations, key=lambda entry: entry.name, reverse=True)


def _is_partial(entry: Path) -> bool:
    return entry.name.startswith(".") and entry.name.endswith(PARTIAL_SUFFIX)


def _next_generation_path(backups_root: Path) -> Path:
    name = timestamp_dirname()
    candidate = backups_root / name
    counter = 1
    while candidate.exists():
        candidate = backups_root / f"{name}_{counter}"
        counter += 1
    return candidate
