"""Conversion options, results and progress events."""

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from surveykit.exceptions import (
    ConversionCancelledError,
    ConversionError,
    ConversionFailedError,
    ConversionUnavailableError,
    SourceNotFoundError,
)

ConversionErrorKind = Literal["source_not_found", "unavailable", "failed", "cancelled"]


class ConversionOptions(BaseModel):
    """Options for a point cloud to 3D Tiles conversion."""

    model_config = ConfigDict(frozen=True)

    downsample_ratio: float = Field(default=1.0, gt=0, le=1)
    source_crs: int | None = Field(default=None, gt=0)  # EPSG code of the input
    jobs: int = Field(default=1, ge=1)
    output_name: str | None = Field(default=None, min_length=1)


@dataclass(frozen=True)
class ConversionProgress:
    """Progress event emitted while a conversion runs."""

    progress: float
    message: str
    current_file: str | None = None


@dataclass(frozen=True)
class ConversionResult:
    """Outcome of a conversion."""

    success: bool
    output_path: str | None = None
    tileset_path: str | None = None
    error_message: str | None = None
    error_kind: ConversionErrorKind | None = None
    duration_ms: int | None = None
    exit_code: int | None = None

    @classmethod
    def succeeded(cls, output_path: Path, tileset_path: Path, duration_ms: int) -> "ConversionResult":
        return cls(
            success=True,
            output_path=str(output_path),
            tileset_path=str(tileset_path),
            duration_ms=duration_ms,
        )

    @classmethod
    def failure(
        cls,
        kind: ConversionErrorKind,
        message: str,
        output_path: Path | None = None,
        duration_ms: int | None = None,
        exit_code: int | None = None,
    ) -> "ConversionResult":
        return cls(
            success=False,
            error_kind=kind,
            error_message=message,
            output_path=str(output_path) if output_path else None,
            duration_ms=duration_ms,
            exit_code=exit_code,
        )

    @property
    def cancelled(self) -> bool:
        return self.error_kind == "cancelled"

    def raise_for_status(self, file_path: Path | str) -> "ConversionResult":
        """Raise the exception matching a failed result; return self on success.

        Raises:
            SourceNotFoundError: Input file missing
            ConversionUnavailableError: No converter could be resolved
            ConversionCancelledError: The conversion was cancelled
            ConversionFailedError: Non-zero exit or missing manifest
        """
        if self.success:
            return self
        message = self.error_message or "Conversion failed"
        if self.error_kind == "source_not_found":
            raise SourceNotFoundError(file_path)
        if self.error_kind == "unavailable":
            raise ConversionUnavailableError(file_path, message)
        if self.error_kind == "cancelled":
            raise ConversionCancelledError(file_path)
        if self.error_kind == "failed":
            raise ConversionFailedError(file_path, message, exit_code=self.exit_code)
        raise ConversionError(file_path, message)
