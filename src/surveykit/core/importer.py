"""Import job engine.

Places survey files into a project's import area while tracking each
submission as an :class:`ImportJob` state machine:

    pending -> analyzing -> copying -> completed
                   \\           \\
                    +-> failed / cancelled

Every transition produces a new immutable job snapshot which is stored in
the registry and published on :attr:`ImportService.job_updates`.
"""

import asyncio
import os
import shutil
import uuid
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any

import anyio

from surveykit.analysis import FileAnalyzer, GeoReference
from surveykit.config.constants import IMPORTS_DIR
from surveykit.core.formats import ImportFormat
from surveykit.core.jobs import ImportJob, ImportOptions, ImportStatus
from surveykit.exceptions import ImportFailedError, SourceNotFoundError, UnsupportedFormatError
from surveykit.utils.events import EventChannel, Subscription
from surveykit.utils.fs import reserve_unique_path
from surveykit.utils.logging import get_logger, job_context

log = get_logger(__name__)

# Progress milestones
PROGRESS_ANALYZED = 0.2
PROGRESS_COPYING = 0.4
PROGRESS_PLACED = 0.6
PROGRESS_DONE = 1.0

# Fields a terminal job may still record (e.g. a copy finishing after cancel)
_TERMINAL_MUTABLE_FIELDS = frozenset({"output_path"})


class ImportService:
    """Import survey files into a project workspace.

    Usage:
        service = ImportService()
        updates = service.subscribe()
        job = await service.import_file("scan.las", project_root)
    """

    def __init__(
        self,
        analyzer: FileAnalyzer | None = None,
        imports_subdir: str = IMPORTS_DIR,
    ) -> None:
        """Initialize the import service.

        Args:
            analyzer: File analyzer used to populate job metadata
            imports_subdir: Directory under the project root receiving copies
        """
        self.analyzer = analyzer or FileAnalyzer()
        self.imports_subdir = imports_subdir
        self.job_updates: EventChannel[ImportJob] = EventChannel("import-jobs")
        self._jobs: dict[str, ImportJob] = {}
        self._lock = asyncio.Lock()

    @property
    def jobs(self) -> tuple[ImportJob, ...]:
        """Snapshot of all registered jobs in submission order."""
        return tuple(self._jobs.values())

    def get_job(self, job_id: str) -> ImportJob | None:
        return self._jobs.get(job_id)

    def subscribe(self) -> Subscription[ImportJob]:
        """Subscribe to job snapshots published after this call."""
        return self.job_updates.subscribe()

    def check_format(self, file_path: Path | str) -> ImportFormat | None:
        """Return the import format for a path, or None if unsupported."""
        return ImportFormat.from_path(file_path)

    def imports_dir(self, project_root: Path | str) -> Path:
        return Path(project_root) / self.imports_subdir

    async def import_file(
        self,
        file_path: Path | str,
        project_root: Path | str,
        options: ImportOptions | None = None,
    ) -> ImportJob:
        """Import a file into ``<project_root>/imports/``.

        Args:
            file_path: Source file
            project_root: Project directory
            options: Import options (defaults to copying into the project)

        Returns:
            The final job snapshot. A job cancelled while its copy was in
            flight is returned as cancelled, with ``output_path`` recording
            the placed copy.

        Raises:
            UnsupportedFormatError: If the extension is not importable (no job
                                    is created)
            ImportFailedError: If analysis or placement fails; the job is
                               left in ``failed``
        """
        options = options or ImportOptions()
        source = Path(file_path)
        project = Path(project_root)

        import_format = self.check_format(source)
        if import_format is None:
            raise UnsupportedFormatError(source.suffix)

        job = ImportJob(
            id=str(uuid.uuid4()),
            source_path=str(source),
            format=import_format,
            status=ImportStatus.ANALYZING,
            created_at=datetime.now(),
        )
        async with self._lock:
            self._jobs[job.id] = job
        self.job_updates.publish(job)

        with job_context(job_id=job.id[:8], file_path=str(source), project=str(project)):
            log.info("Import started", format=import_format.value, copy=options.copy_to_project)
            try:
                job = await self._analyze(job, source, options)

                if options.copy_to_project:
                    job = await self._update_job(
                        job, status=ImportStatus.COPYING, progress=PROGRESS_COPYING
                    )
                    placed = await anyio.to_thread.run_sync(
                        self._copy_to_project, source, self.imports_dir(project)
                    )
                    job = await self._update_job(
                        job, output_path=str(placed), progress=PROGRESS_PLACED
                    )
                else:
                    job = await self._update_job(
                        job, output_path=str(source), progress=PROGRESS_PLACED
                    )

                job = await self._update_job(
                    job,
                    status=ImportStatus.COMPLETED,
                    progress=PROGRESS_DONE,
                    completed_at=datetime.now(),
                )
            except Exception as e:
                failed = await self._update_job(
                    job,
                    status=ImportStatus.FAILED,
                    error_message=str(e),
                    completed_at=datetime.now(),
                )
                log.error("Import failed", error=str(e), status=failed.status.value)
                raise ImportFailedError(source, str(e), job=failed, cause=e) from e

            if job.status is ImportStatus.CANCELLED:
                log.warning("Import was cancelled after placement", output=job.output_path)
            else:
                log.info("Import completed", output=job.output_path, point_count=job.point_count)
        return job

    async def cancel_job(self, job_id: str) -> bool:
        """Mark a job as cancelled.

        An in-flight copy is not interrupted; the job keeps its cancelled
        status when the copy finishes.

        Returns:
            True if the job existed and was not yet terminal
        """
        job = self._jobs.get(job_id)
        if job is None or job.is_terminal:
            return False
        await self._update_job(job, status=ImportStatus.CANCELLED, completed_at=datetime.now())
        log.info("Import cancelled", job_id=job_id[:8])
        return True

    async def clear_completed_jobs(self) -> int:
        """Drop completed and cancelled jobs from the registry.

        Returns:
            Number of jobs removed
        """
        async with self._lock:
            cleared = [
                job_id
                for job_id, job in self._jobs.items()
                if job.status in (ImportStatus.COMPLETED, ImportStatus.CANCELLED)
            ]
            for job_id in cleared:
                del self._jobs[job_id]
        if cleared:
            log.debug("Cleared finished import jobs", count=len(cleared))
        return len(cleared)

    def close(self) -> None:
        """Close the job event channel."""
        self.job_updates.close()

    async def _analyze(self, job: ImportJob, source: Path, options: ImportOptions) -> ImportJob:
        exists = await anyio.to_thread.run_sync(source.is_file)
        if not exists:
            raise SourceNotFoundError(source)

        geo_reference: GeoReference | None
        point_count: int | None = None
        if job.format.is_point_cloud:
            info = await self.analyzer.analyze_point_cloud_file(source)
            geo_reference = info.geo_reference if info else None
            point_count = info.point_count if info else None
        else:
            geo_reference = await self.analyzer.analyze_file(source)

        if options.manual_epsg is not None:
            geo_reference = _with_epsg(geo_reference, options.manual_epsg)

        log.debug(
            "Analysis finished",
            epsg=geo_reference.epsg if geo_reference else None,
            point_count=point_count,
        )
        return await self._update_job(
            job,
            geo_reference=geo_reference,
            point_count=point_count,
            progress=PROGRESS_ANALYZED,
        )

    def _copy_to_project(self, source: Path, imports_dir: Path) -> Path:
        """Copy a file (and an OBJ's material library) into the import area."""
        target = reserve_unique_path(imports_dir / source.name)
        shutil.copy2(source, target)
        log.debug("File placed", target=str(target))

        if source.suffix.lower() == ".obj":
            mtl = source.with_suffix(".mtl")
            if mtl.is_file():
                mtl_target = reserve_unique_path(imports_dir / f"{target.stem}.mtl")
                shutil.copy2(mtl, mtl_target)
                if mtl_target.name != mtl.name:
                    _relink_material_library(target, mtl.name, mtl_target.name)
                log.debug("Material library placed", target=str(mtl_target))
        return target

    async def _update_job(self, job: ImportJob, **changes: Any) -> ImportJob:
        """Apply changes to the latest snapshot of a job and publish it.

        Progress never decreases. Once a job is terminal only
        ``output_path`` can still change. Jobs removed from the registry by
        :meth:`clear_completed_jobs` keep evolving but are not re-added.
        """
        async with self._lock:
            registered = job.id in self._jobs
            current = self._jobs.get(job.id, job)
            if current.is_terminal:
                changes = {k: v for k, v in changes.items() if k in _TERMINAL_MUTABLE_FIELDS}
                if not changes:
                    return current
            if "progress" in changes:
                changes["progress"] = max(current.progress, changes["progress"])
            updated = current.evolve(**changes)
            if registered:
                self._jobs[job.id] = updated
        self.job_updates.publish(updated)
        return updated


def _with_epsg(geo_reference: GeoReference | None, epsg: int) -> GeoReference:
    if geo_reference is None:
        return GeoReference(epsg=epsg, detection_method="manual")
    return replace(geo_reference, epsg=epsg)


def _relink_material_library(obj_path: Path, old_name: str, new_name: str) -> None:
    """Point a placed OBJ's ``mtllib`` statements at its renamed material library."""
    old, new = old_name.encode(), new_name.encode()
    staged = obj_path.with_name(f".{obj_path.name}.relink")
    with open(obj_path, "rb") as src, open(staged, "wb") as dst:
        for line in src:
            parts = line.split()
            if parts[:1] == [b"mtllib"] and old in parts[1:]:
                ending = line[len(line.rstrip(b"\r\n")) :]
                libraries = [new if part == old else part for part in parts[1:]]
                line = b" ".join([b"mtllib", *libraries]) + ending
            dst.write(line)
    shutil.copystat(obj_path, staged)
    os.replace(staged, obj_path)
