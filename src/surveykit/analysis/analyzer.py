"""File analyzer service: dispatches header analysis by extension."""

from pathlib import Path

import anyio

from surveykit.analysis.base import BaseFormatAnalyzer, identity_info
from surveykit.analysis.e57 import E57Analyzer
from surveykit.analysis.las import LasAnalyzer
from surveykit.analysis.mesh import GltfAnalyzer, ObjAnalyzer
from surveykit.analysis.models import GeoReference, PointCloudFileInfo
from surveykit.analysis.ply import PlyAnalyzer
from surveykit.utils.logging import get_logger

log = get_logger(__name__)


class FileAnalyzer:
    """Extract geo reference and point cloud metadata from survey files.

    Analysis is best-effort: results are optional and failures are logged,
    never raised. File reads run in a worker thread so callers on the event
    loop are not blocked.

    Usage:
        analyzer = FileAnalyzer()
        geo = await analyzer.analyze_file(Path("scan.las"))
        info = await analyzer.analyze_point_cloud_file(Path("scan.las"))
    """

    def __init__(self, analyzers: list[BaseFormatAnalyzer] | None = None) -> None:
        """Initialize the analyzer.

        Args:
            analyzers: Format analyzers to dispatch to (defaults to the
                       built-in LAS/PLY/E57/OBJ/glTF set)
        """
        self._las = LasAnalyzer()
        self.analyzers = analyzers or [
            self._las,
            PlyAnalyzer(),
            E57Analyzer(),
            ObjAnalyzer(),
            GltfAnalyzer(),
        ]

    def get_analyzer(self, file_path: Path) -> BaseFormatAnalyzer | None:
        """Return the analyzer registered for the file's extension."""
        extension = file_path.suffix.lower()
        for analyzer in self.analyzers:
            if analyzer.supports(extension):
                return analyzer
        return None

    async def analyze_file(self, file_path: Path | str) -> GeoReference | None:
        """Lightweight analysis returning the file's geo reference, if any."""
        path = Path(file_path)
        return await anyio.to_thread.run_sync(self._analyze_file_sync, path)

    async def analyze_point_cloud_file(self, file_path: Path | str) -> PointCloudFileInfo | None:
        """Detailed analysis of a point cloud file.

        Returns:
            PointCloudFileInfo, or None if the file does not exist
        """
        path = Path(file_path)
        return await anyio.to_thread.run_sync(self._analyze_point_cloud_sync, path)

    async def estimate_point_count(self, file_path: Path | str) -> int | None:
        """Quick LAS/LAZ point count from the legacy header field."""
        path = Path(file_path)
        if path.suffix.lower() not in self._las.supported_extensions:
            return None
        return await anyio.to_thread.run_sync(self._las.estimate_point_count, path)

    async def get_file_size(self, file_path: Path | str) -> int:
        path = Path(file_path)
        stat = await anyio.to_thread.run_sync(path.stat)
        return stat.st_size

    def _analyze_file_sync(self, path: Path) -> GeoReference | None:
        analyzer = self.get_analyzer(path)
        if analyzer is None:
            log.debug("No analyzer for extension", file=str(path), extension=path.suffix)
            return None
        if not path.is_file():
            log.warning("File not found", file=str(path))
            return None

        try:
            geo_reference = analyzer.analyze_geo_reference(path)
        except Exception as e:
            log.error("Analyzer failed", analyzer=analyzer.name, file=str(path), error=str(e))
            return None

        log.debug(
            "Geo reference analyzed",
            analyzer=analyzer.name,
            file=str(path),
            found=geo_reference is not None,
        )
        return geo_reference

    def _analyze_point_cloud_sync(self, path: Path) -> PointCloudFileInfo | None:
        if not path.is_file():
            log.warning("File not found", file=str(path))
            return None

        file_size = path.stat().st_size
        analyzer = self.get_analyzer(path)
        if analyzer is None:
            return identity_info(path, file_size)

        try:
            return analyzer.analyze_details(path, file_size)
        except Exception as e:
            log.error("Detailed analysis failed", analyzer=analyzer.name, file=str(path), error=str(e))
            return identity_info(path, file_size)
