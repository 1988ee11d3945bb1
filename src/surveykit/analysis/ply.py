"""PLY header analyzer."""

import re
from dataclasses import dataclass
from pathlib import Path

from surveykit.analysis.base import BaseFormatAnalyzer, identity_info
from surveykit.analysis.models import GeoReference, PointCloudFileInfo
from surveykit.config.constants import PLY_MAX_HEADER_LINES
from surveykit.utils.logging import get_logger

log = get_logger(__name__)

EPSG_COMMENT_PATTERN = re.compile(r"EPSG[:\s]*(\d+)")

# Binary bodies follow the header directly; cap each read so a file without
# newlines is never slurped whole.
_MAX_LINE_BYTES = 4096


@dataclass
class PlyHeader:
    """Facts collected from a PLY header."""

    is_binary: bool = False
    has_format_line: bool = False
    vertex_count: int | None = None
    has_color: bool = False
    has_intensity: bool = False
    has_classification: bool = False
    has_geo_comment: bool = False
    epsg: int | None = None

    @property
    def format_version(self) -> str:
        if not self.has_format_line:
            return "PLY"
        return "PLY (binary)" if self.is_binary else "PLY (ascii)"


def read_header_lines(file_path: Path, max_lines: int = PLY_MAX_HEADER_LINES) -> list[str]:
    """Read up to ``max_lines`` header lines, stopping after ``end_header``."""
    lines: list[str] = []
    with open(file_path, "rb") as f:
        while len(lines) < max_lines:
            raw = f.readline(_MAX_LINE_BYTES)
            if not raw:
                break
            line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
            lines.append(line)
            if line.strip() == "end_header":
                break
    return lines


def parse_ply_header(lines: list[str]) -> PlyHeader:
    """Interpret PLY header lines."""
    header = PlyHeader()
    for line in lines:
        stripped = line.strip()
        if stripped == "end_header":
            break
        if stripped.startswith("format"):
            header.has_format_line = True
            header.is_binary = "binary" in stripped
        elif stripped.startswith("element vertex"):
            try:
                header.vertex_count = int(stripped.split()[-1])
            except ValueError:
                header.vertex_count = None
        elif stripped.startswith("property"):
            if any(channel in stripped for channel in ("red", "green", "blue")):
                header.has_color = True
            if "intensity" in stripped:
                header.has_intensity = True
            if "classification" in stripped:
                header.has_classification = True
        elif stripped.startswith("comment") and "EPSG" in stripped:
            header.has_geo_comment = True
            match = EPSG_COMMENT_PATTERN.search(stripped)
            if match and header.epsg is None:
                header.epsg = int(match.group(1))
    return header


class PlyAnalyzer(BaseFormatAnalyzer):
    """Analyzer for Stanford PLY files (ASCII and binary headers)."""

    name = "ply"
    supported_extensions = {".ply"}

    def read_header(self, file_path: Path) -> PlyHeader:
        return parse_ply_header(read_header_lines(file_path))

    def analyze_geo_reference(self, file_path: Path) -> GeoReference | None:
        try:
            header = self.read_header(file_path)
        except OSError as e:
            log.error("Failed to analyze PLY file", file=str(file_path), error=str(e))
            return None

        if not header.has_geo_comment:
            return None
        return GeoReference(epsg=header.epsg, detection_method="ply_comment")

    def analyze_details(self, file_path: Path, file_size: int) -> PointCloudFileInfo:
        try:
            header = self.read_header(file_path)
        except OSError as e:
            log.error("Failed to analyze PLY file in detail", file=str(file_path), error=str(e))
            return identity_info(file_path, file_size)

        geo_reference = None
        if header.has_geo_comment:
            geo_reference = GeoReference(epsg=header.epsg, detection_method="ply_comment")

        return identity_info(
            file_path,
            file_size,
            format_version=header.format_version,
            point_count=header.vertex_count,
            geo_reference=geo_reference,
            has_color=header.has_color,
            has_intensity=header.has_intensity,
            has_classification=header.has_classification,
        )
