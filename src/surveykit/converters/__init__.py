"""Point cloud conversion for SurveyKit."""

from surveykit.converters.base import (
    ConversionErrorKind,
    ConversionOptions,
    ConversionProgress,
    ConversionResult,
)
from surveykit.converters.locator import ConverterCommand, ConverterLocator
from surveykit.converters.py3dtiles import PointCloudConverter, build_arguments, parse_progress
from surveykit.converters.script import ConverterScript

__all__ = [
    "ConversionErrorKind",
    "ConversionOptions",
    "ConversionProgress",
    "ConversionResult",
    "ConverterCommand",
    "ConverterLocator",
    "ConverterScript",
    "PointCloudConverter",
    "build_arguments",
    "parse_progress",
]
