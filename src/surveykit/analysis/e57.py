"""E57 analyzer.

E57 is an XML section graph over a paged binary container; reading its
pose and CRS needs libE57, so only the format tag is reported.
"""

from pathlib import Path

from surveykit.analysis.base import BaseFormatAnalyzer, identity_info
from surveykit.analysis.models import GeoReference, PointCloudFileInfo
from surveykit.utils.logging import get_logger

log = get_logger(__name__)


class E57Analyzer(BaseFormatAnalyzer):
    name = "e57"
    supported_extensions = {".e57"}

    def analyze_geo_reference(self, file_path: Path) -> GeoReference | None:
        log.info("E57 analysis is limited; full parsing requires libE57", file=str(file_path))
        return None

    def analyze_details(self, file_path: Path, file_size: int) -> PointCloudFileInfo:
        return identity_info(file_path, file_size, format_version="E57")
