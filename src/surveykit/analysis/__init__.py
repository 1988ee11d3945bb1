"""File format analysis for SurveyKit."""

from surveykit.analysis.analyzer import FileAnalyzer
from surveykit.analysis.base import BaseFormatAnalyzer
from surveykit.analysis.e57 import E57Analyzer
from surveykit.analysis.las import LasAnalyzer, LasHeader, parse_las_header
from surveykit.analysis.mesh import GltfAnalyzer, ObjAnalyzer
from surveykit.analysis.models import BoundingBox, GeoPoint, GeoReference, PointCloudFileInfo
from surveykit.analysis.ply import PlyAnalyzer

__all__ = [
    "FileAnalyzer",
    "BaseFormatAnalyzer",
    "LasAnalyzer",
    "LasHeader",
    "parse_las_header",
    "PlyAnalyzer",
    "E57Analyzer",
    "ObjAnalyzer",
    "GltfAnalyzer",
    "GeoPoint",
    "BoundingBox",
    "GeoReference",
    "PointCloudFileInfo",
]
