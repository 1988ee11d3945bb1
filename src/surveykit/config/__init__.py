"""Configuration module for SurveyKit."""

from surveykit.config.settings import (
    AutoSaveConfig,
    ConverterConfig,
    ImportConfig,
    SurveyKitSettings,
    get_settings,
    reload_settings,
)

__all__ = [
    "AutoSaveConfig",
    "ConverterConfig",
    "ImportConfig",
    "SurveyKitSettings",
    "get_settings",
    "reload_settings",
]
