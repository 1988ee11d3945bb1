"""Mesh format analyzers: OBJ (via .prj sidecar) and glTF/GLB."""

import json
import re
from numbers import Real
from pathlib import Path

from surveykit.analysis.base import BaseFormatAnalyzer
from surveykit.analysis.models import GeoPoint, GeoReference
from surveykit.utils.logging import get_logger

log = get_logger(__name__)

EPSG_PRJ_PATTERN = re.compile(r'EPSG[",:\s]*(\d+)')


def find_epsg(text: str) -> int | None:
    """Return the first EPSG code mentioned in a .prj / WKT text."""
    match = EPSG_PRJ_PATTERN.search(text)
    return int(match.group(1)) if match else None


class ObjAnalyzer(BaseFormatAnalyzer):
    """Wavefront OBJ carries no CRS; look for a same-named ``.prj`` sidecar."""

    name = "obj"
    supported_extensions = {".obj"}

    def analyze_geo_reference(self, file_path: Path) -> GeoReference | None:
        prj_path = file_path.with_suffix(".prj")
        if not prj_path.is_file():
            return None

        try:
            wkt = prj_path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            log.error("Failed to read .prj sidecar", file=str(prj_path), error=str(e))
            return None

        return GeoReference(epsg=find_epsg(wkt), detection_method="prj_file")


class GltfAnalyzer(BaseFormatAnalyzer):
    """glTF analyzer reading the ``CESIUM_RTC`` extension center.

    Binary glTF (``.glb``) is not inspected and yields no geo reference.
    """

    name = "gltf"
    supported_extensions = {".gltf", ".glb"}

    def analyze_geo_reference(self, file_path: Path) -> GeoReference | None:
        if file_path.suffix.lower() == ".glb":
            log.debug("GLB geo reference extraction is not supported", file=str(file_path))
            return None

        try:
            document = json.loads(file_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            log.error("Failed to analyze glTF file", file=str(file_path), error=str(e))
            return None

        center = _cesium_rtc_center(document)
        if center is None:
            return None

        return GeoReference(
            origin=GeoPoint(x=center[0], y=center[1], z=center[2]),
            detection_method="gltf_cesium_rtc",
        )


def _cesium_rtc_center(document: object) -> tuple[float, float, float] | None:
    if not isinstance(document, dict):
        return None
    extensions = document.get("extensions")
    if not isinstance(extensions, dict):
        return None
    rtc = extensions.get("CESIUM_RTC")
    if not isinstance(rtc, dict):
        return None
    center = rtc.get("center")
    if not isinstance(center, list) or len(center) != 3:
        return None
    if not all(isinstance(v, Real) and not isinstance(v, bool) for v in center):
        return None
    return float(center[0]), float(center[1]), float(center[2])
