"""Base analyzer interface."""

from abc import ABC, abstractmethod
from pathlib import Path

from surveykit.analysis.models import GeoReference, PointCloudFileInfo


class BaseFormatAnalyzer(ABC):
    """Abstract base class for per-format header analyzers.

    Analyzers are synchronous and best-effort: a file that cannot be parsed
    yields ``None`` (geo reference) or an identity-only info record, never an
    exception.
    """

    name: str = "base"
    supported_extensions: set[str] = set()

    @abstractmethod
    def analyze_geo_reference(self, file_path: Path) -> GeoReference | None:
        """Extract geo reference information from the file.

        Args:
            file_path: Path to the file

        Returns:
            GeoReference if one could be detected, None otherwise
        """
        pass

    def analyze_details(self, file_path: Path, file_size: int) -> PointCloudFileInfo:
        """Extract detailed point cloud information.

        The default returns the file identity only.

        Args:
            file_path: Path to the file
            file_size: File size in bytes

        Returns:
            PointCloudFileInfo for the file
        """
        return identity_info(file_path, file_size)

    def supports(self, extension: str) -> bool:
        """Check if this analyzer handles the given extension (with dot)."""
        return extension.lower() in self.supported_extensions


def identity_info(file_path: Path, file_size: int, **fields) -> PointCloudFileInfo:
    """Build an info record carrying the file identity plus optional fields."""
    return PointCloudFileInfo(
        file_path=str(file_path),
        file_name=file_path.name,
        file_size=file_size,
        **fields,
    )
