"""Core import engine for SurveyKit."""

from surveykit.core.formats import (
    ImportCategory,
    ImportFormat,
    all_extensions,
    mesh_extensions,
    point_cloud_extensions,
)
from surveykit.core.importer import ImportService
from surveykit.core.jobs import ImportJob, ImportOptions, ImportStatus

__all__ = [
    "ImportCategory",
    "ImportFormat",
    "all_extensions",
    "mesh_extensions",
    "point_cloud_extensions",
    "ImportJob",
    "ImportOptions",
    "ImportStatus",
    "ImportService",
]
