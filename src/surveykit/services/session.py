"""Project session: wires the import, conversion and autosave services.

The session is the composition root for one open project. It owns the
service instances and their start/stop lifecycle; nothing in SurveyKit is
a global singleton.
"""

from pathlib import Path

import anyio

from surveykit.analysis import FileAnalyzer
from surveykit.config.settings import SurveyKitSettings, get_settings
from surveykit.converters import (
    ConversionOptions,
    ConversionResult,
    ConverterLocator,
    PointCloudConverter,
)
from surveykit.converters.py3dtiles import ProgressCallback
from surveykit.core import ImportJob, ImportOptions, ImportService, ImportStatus
from surveykit.services.autosave import AutoSaveService
from surveykit.services.recovery import RecoveryService
from surveykit.utils.fs import ensure_directory
from surveykit.utils.logging import get_logger

log = get_logger(__name__)


class ProjectSession:
    """Services for one open project.

    Usage:
        async with ProjectSession(project_path) as session:
            if session.recovery_needed:
                await session.autosave.recover_from_backup(project_path)
            job, result = await session.import_and_convert("scan.las")
    """

    def __init__(
        self,
        project_path: Path | str,
        settings: SurveyKitSettings | None = None,
        *,
        analyzer: FileAnalyzer | None = None,
        importer: ImportService | None = None,
        converter: PointCloudConverter | None = None,
        autosave: AutoSaveService | None = None,
        recovery: RecoveryService | None = None,
    ) -> None:
        """Initialize the session.

        Args:
            project_path: Project root directory
            settings: Application settings (defaults to the cached settings)
            analyzer: Optional FileAnalyzer instance (for DI/testing)
            importer: Optional ImportService instance (for DI/testing)
            converter: Optional PointCloudConverter instance (for DI/testing)
            autosave: Optional AutoSaveService instance (for DI/testing)
            recovery: Optional RecoveryService instance (for DI/testing)
        """
        self.project_path = Path(project_path)
        self.settings = settings or get_settings()

        self.analyzer = analyzer or FileAnalyzer()
        self.importer = importer or ImportService(
            analyzer=self.analyzer,
            imports_subdir=self.settings.importing.imports_subdir,
        )
        self.converter = converter or PointCloudConverter(
            locator=ConverterLocator(
                python_executable=self.settings.converter.python_executable,
                binary_name=self.settings.converter.binary_name,
                converter_path=self.settings.converter.converter_path,
            )
        )
        self.autosave = autosave or AutoSaveService.from_config(self.settings.autosave)
        self.recovery = recovery or RecoveryService()

        self.recovery_needed = False
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    async def start(self) -> bool:
        """Open the session.

        Returns:
            True if the previous session of this project ended uncleanly
        """
        await anyio.to_thread.run_sync(ensure_directory, self.project_path)
        self.recovery_needed = await self.recovery.check_for_recovery(self.project_path)
        if self.recovery_needed:
            log.warning("Previous session did not shut down cleanly", project=str(self.project_path))

        await self.recovery.create_recovery_marker(self.project_path)
        if self.settings.autosave.enabled:
            self.autosave.start(self.project_path)
        self._started = True
        log.info("Project session started", project=str(self.project_path))
        return self.recovery_needed

    async def stop(self) -> None:
        """Close the session cleanly and remove the recovery marker."""
        if not self._started:
            return
        self.converter.cancel()
        await self.autosave.stop()
        await self.recovery.remove_recovery_marker(self.project_path)
        self._started = False
        log.info("Project session stopped", project=str(self.project_path))

    def close(self) -> None:
        """Close the event channels of the owned services."""
        self.importer.close()
        self.converter.close()

    async def __aenter__(self) -> "ProjectSession":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()
        self.close()

    def default_import_options(self) -> ImportOptions:
        return ImportOptions(
            copy_to_project=self.settings.importing.copy_to_project,
            auto_convert=self.settings.importing.auto_convert,
        )

    async def import_file(self, file_path: Path | str, options: ImportOptions | None = None) -> ImportJob:
        """Import a file into the project and mark the project dirty."""
        job = await self.importer.import_file(
            file_path, self.project_path, options or self.default_import_options()
        )
        self.autosave.mark_dirty()
        return job

    async def convert_point_cloud(
        self,
        file_path: Path | str,
        options: ConversionOptions | None = None,
        output_dir: Path | str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> ConversionResult:
        """Convert a point cloud into ``<project>/converted/<name>``.

        Without an explicit source CRS the EPSG code found in the file's
        header or sidecar is used.
        """
        options = options or ConversionOptions(jobs=self.settings.converter.default_jobs)
        if options.source_crs is None:
            geo_reference = await self.analyzer.analyze_file(file_path)
            if geo_reference is not None and geo_reference.epsg is not None:
                options = options.model_copy(update={"source_crs": geo_reference.epsg})

        target = Path(output_dir) if output_dir else self.settings.get_converted_dir(self.project_path)
        return await self.converter.convert(file_path, target, options, on_progress=on_progress)

    async def import_and_convert(
        self,
        file_path: Path | str,
        import_options: ImportOptions | None = None,
        conversion_options: ConversionOptions | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> tuple[ImportJob, ConversionResult | None]:
        """Import a file, then tile it when it is a point cloud.

        Conversion runs only for completed point cloud imports with
        ``auto_convert`` set.

        Returns:
            The import job and the conversion result (None if skipped)
        """
        import_options = import_options or self.default_import_options()
        job = await self.import_file(file_path, import_options)
        if not (
            import_options.auto_convert
            and job.format.is_point_cloud
            and job.status is ImportStatus.COMPLETED
        ):
            return job, None

        options = conversion_options or ConversionOptions(jobs=self.settings.converter.default_jobs)
        if options.source_crs is None and job.geo_reference is not None and job.geo_reference.epsg:
            options = options.model_copy(update={"source_crs": job.geo_reference.epsg})

        source = job.output_path or job.source_path
        result = await self.convert_point_cloud(source, options, on_progress=on_progress)
        if result.success:
            self.autosave.mark_dirty()
        return job, result
