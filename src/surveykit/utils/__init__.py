"""Utility module for SurveyKit."""

from surveykit.utils.events import EventChannel
from surveykit.utils.fs import (
    ensure_directory,
    format_size,
    read_head,
    reserve_unique_path,
    timestamp_dirname,
)

__all__ = [
    # Events
    "EventChannel",
    # File system
    "ensure_directory",
    "reserve_unique_path",
    "format_size",
    "read_head",
    "timestamp_dirname",
]
