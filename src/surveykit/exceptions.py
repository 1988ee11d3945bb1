"""Custom exceptions for SurveyKit."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from surveykit.core.jobs import ImportJob


class SurveyKitError(Exception):
    """Base exception class for SurveyKit."""

    pass


class UnsupportedFormatError(SurveyKitError):
    """The file extension does not map to a known import format."""

    def __init__(self, extension: str) -> None:
        self.extension = extension
        super().__init__(f"Unsupported format: {extension or '(no extension)'}")


class SourceNotFoundError(SurveyKitError):
    """The input file does not exist."""

    def __init__(self, file_path: Path | str) -> None:
        self.file_path = Path(file_path)
        super().__init__(f"Source file not found: {file_path}")


class ImportFailedError(SurveyKitError):
    """Analysis or placement of an import job failed."""

    def __init__(
        self,
        file_path: Path | str,
        message: str,
        job: ImportJob | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.file_path = Path(file_path)
        self.job = job
        self.cause = cause
        super().__init__(f"Import failed for {file_path}: {message}")


class ConversionError(SurveyKitError):
    """Error during point cloud conversion."""

    def __init__(self, file_path: Path | str, message: str, cause: Exception | None = None) -> None:
        self.file_path = Path(file_path)
        self.cause = cause
        super().__init__(f"Conversion failed for {file_path}: {message}")


class ConversionUnavailableError(ConversionError):
    """No converter executable could be resolved."""

    pass


class ConversionFailedError(ConversionError):
    """The converter exited non-zero or did not produce its manifest."""

    def __init__(
        self,
        file_path: Path | str,
        message: str,
        exit_code: int | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.exit_code = exit_code
        super().__init__(file_path, message, cause=cause)


class ConversionCancelledError(ConversionError):
    """The conversion was cancelled."""

    def __init__(self, file_path: Path | str) -> None:
        super().__init__(file_path, "Conversion was cancelled")


class ConverterBusyError(ConversionError):
    """A conversion is already running on this converter instance."""

    def __init__(self, file_path: Path | str, running: Path | str | None = None) -> None:
        self.running = running
        message = "Another conversion is already running"
        if running is not None:
            message += f" ({running})"
        super().__init__(file_path, message)


class BackupIOError(SurveyKitError):
    """Copy or delete failure while writing or pruning backups."""

    def __init__(self, path: Path | str, message: str, cause: Exception | None = None) -> None:
        self.path = Path(path)
        self.cause = cause
        super().__init__(f"Backup I/O error at {path}: {message}")
