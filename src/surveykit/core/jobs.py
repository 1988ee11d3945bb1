"""Import job records."""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from surveykit.analysis.models import GeoReference
from surveykit.core.formats import ImportFormat


class ImportStatus(str, Enum):
    """Lifecycle states of an import job.

    ``pending -> analyzing -> copying -> completed``; ``failed`` and
    ``cancelled`` are reachable from any non-terminal state.
    """

    PENDING = "pending"
    ANALYZING = "analyzing"
    COPYING = "copying"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES


_TERMINAL_STATUSES = frozenset({ImportStatus.COMPLETED, ImportStatus.FAILED, ImportStatus.CANCELLED})


@dataclass(frozen=True)
class ImportOptions:
    """Options for a single import."""

    copy_to_project: bool = True
    auto_convert: bool = True  # Tile point clouds after placement (ProjectSession)
    manual_epsg: int | None = None  # Overrides any detected EPSG code


@dataclass(frozen=True)
class ImportJob:
    """Immutable snapshot of an import job.

    Every state change produces a new snapshot; observers can hold on to
    the ones they receive without seeing later mutations.
    """

    id: str
    source_path: str
    format: ImportFormat
    created_at: datetime
    status: ImportStatus = ImportStatus.PENDING
    progress: float = 0.0
    output_path: str | None = None
    error_message: str | None = None
    geo_reference: GeoReference | None = None
    point_count: int | None = None
    completed_at: datetime | None = None

    @property
    def file_name(self) -> str:
        return Path(self.source_path).name

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def evolve(self, **changes: Any) -> "ImportJob":
        """Return a copy with the given fields changed."""
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-compatible dictionary."""
        return {
            "id": self.id,
            "source_path": self.source_path,
            "output_path": self.output_path,
            "format": self.format.value,
            "status": self.status.value,
            "progress": self.progress,
            "error_message": self.error_message,
            "geo_reference": self.geo_reference.to_dict() if self.geo_reference else None,
            "point_count": self.point_count,
            "created_at": self.created_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ImportJob":
        """Create from dictionary."""
        geo_reference = data.get("geo_reference")
        completed_at = data.get("completed_at")
        return cls(
            id=data["id"],
            source_path=data["source_path"],
            output_path=data.get("output_path"),
            format=ImportFormat(data["format"]),
            status=ImportStatus(data.get("status", ImportStatus.PENDING.value)),
            progress=data.get("progress", 0.0),
            error_message=data.get("error_message"),
            geo_reference=GeoReference.from_dict(geo_reference) if geo_reference else None,
            point_count=data.get("point_count"),
            created_at=datetime.fromisoformat(data["created_at"]),
            completed_at=datetime.fromisoformat(completed_at) if completed_at else None,
        )
