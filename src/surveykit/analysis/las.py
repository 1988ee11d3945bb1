"""LAS/LAZ public header analyzer.

Only the fixed-layout public header block is read (first 375 bytes); the
compressed LAZ payload is never touched, and since LAZ keeps the LAS header
uncompressed the same layout applies to both.
"""

import struct
from dataclasses import dataclass
from pathlib import Path

from surveykit.analysis.base import BaseFormatAnalyzer, identity_info
from surveykit.analysis.models import BoundingBox, GeoPoint, GeoReference, PointCloudFileInfo
from surveykit.config.constants import (
    LAS_BOUNDS_OFFSET,
    LAS_COLOR_POINT_FORMATS,
    LAS_HEADER_READ_SIZE,
    LAS_LEGACY_POINT_COUNT_OFFSET,
    LAS_OFFSETS_OFFSET,
    LAS_POINT_COUNT_64_MIN_SIZE,
    LAS_POINT_COUNT_64_OFFSET,
    LAS_POINT_FORMAT_OFFSET,
    LAS_SIGNATURE,
    LAS_VERSION_MAJOR_OFFSET,
    LAS_VERSION_MINOR_OFFSET,
)
from surveykit.utils.fs import read_head
from surveykit.utils.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class LasHeader:
    """The subset of the LAS public header block SurveyKit uses."""

    version_major: int
    version_minor: int
    point_data_format: int
    point_count: int
    offset: GeoPoint
    bounds: BoundingBox

    @property
    def version(self) -> str:
        return f"{self.version_major}.{self.version_minor}"

    @property
    def has_color(self) -> bool:
        return self.point_data_format in LAS_COLOR_POINT_FORMATS


def parse_las_header(data: bytes) -> LasHeader | None:
    """Decode a LAS public header block.

    Args:
        data: The first bytes of the file (at least 375)

    Returns:
        LasHeader, or None when the data is too short or not signed ``LASF``
    """
    if len(data) < LAS_HEADER_READ_SIZE or data[:4] != LAS_SIGNATURE:
        return None

    version_major = data[LAS_VERSION_MAJOR_OFFSET]
    version_minor = data[LAS_VERSION_MINOR_OFFSET]
    point_data_format = data[LAS_POINT_FORMAT_OFFSET]

    if (version_major, version_minor) >= (1, 4) and len(data) >= LAS_POINT_COUNT_64_MIN_SIZE:
        (point_count,) = struct.unpack_from("<Q", data, LAS_POINT_COUNT_64_OFFSET)
    else:
        (point_count,) = struct.unpack_from("<I", data, LAS_LEGACY_POINT_COUNT_OFFSET)

    offset_x, offset_y, offset_z = struct.unpack_from("<3d", data, LAS_OFFSETS_OFFSET)
    max_x, min_x, max_y, min_y, max_z, min_z = struct.unpack_from("<6d", data, LAS_BOUNDS_OFFSET)

    return LasHeader(
        version_major=version_major,
        version_minor=version_minor,
        point_data_format=point_data_format,
        point_count=point_count,
        offset=GeoPoint(x=offset_x, y=offset_y, z=offset_z),
        bounds=BoundingBox(
            min_x=min_x,
            min_y=min_y,
            min_z=min_z,
            max_x=max_x,
            max_y=max_y,
            max_z=max_z,
        ),
    )


class LasAnalyzer(BaseFormatAnalyzer):
    """Analyzer for ASPRS LAS and LAZ files."""

    name = "las"
    supported_extensions = {".las", ".laz"}

    def read_header(self, file_path: Path) -> LasHeader | None:
        """Read and decode the header of a LAS/LAZ file."""
        return parse_las_header(read_head(file_path, LAS_HEADER_READ_SIZE))

    def analyze_geo_reference(self, file_path: Path) -> GeoReference | None:
        try:
            header = self.read_header(file_path)
        except (OSError, struct.error) as e:
            log.error("Failed to analyze LAS file", file=str(file_path), error=str(e))
            return None

        if header is None:
            log.debug("Not a LAS file", file=str(file_path))
            return None

        return GeoReference(
            origin=header.offset,
            bounding_box=header.bounds,
            detection_method="las_header",
        )

    def analyze_details(self, file_path: Path, file_size: int) -> PointCloudFileInfo:
        try:
            header = self.read_header(file_path)
        except (OSError, struct.error) as e:
            log.error("Failed to analyze LAS file in detail", file=str(file_path), error=str(e))
            return identity_info(file_path, file_size)

        if header is None:
            return identity_info(file_path, file_size)

        return identity_info(
            file_path,
            file_size,
            format_version=f"LAS {header.version}",
            point_count=header.point_count,
            geo_reference=GeoReference(
                origin=header.offset,
                bounding_box=header.bounds,
                detection_method="las_header",
            ),
            point_data_format=header.point_data_format,
            has_color=header.has_color,
            # Every LAS point record format carries intensity and classification
            has_intensity=True,
            has_classification=True,
        )

    def estimate_point_count(self, file_path: Path) -> int | None:
        """Return the legacy 32-bit point count without checking the signature."""
        try:
            data = read_head(file_path, LAS_LEGACY_POINT_COUNT_OFFSET + 4)
        except OSError as e:
            log.error("Failed to estimate point count", file=str(file_path), error=str(e))
            return None
        if len(data) < LAS_LEGACY_POINT_COUNT_OFFSET + 4:
            return None
        (count,) = struct.unpack_from("<I", data, LAS_LEGACY_POINT_COUNT_OFFSET)
        return count
