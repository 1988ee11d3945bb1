"""Configuration settings using pydantic-settings."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict, YamlConfigSettingsSource

from surveykit.config.constants import (
    BACKUPS_DIR,
    CONVERTED_DIR,
    CONVERTER_BINARY_NAME,
    CONVERTER_PYTHON,
    DEFAULT_AUTOSAVE_INTERVAL_SECONDS,
    DEFAULT_BACKUP_FILES,
    DEFAULT_CONFIG_FILE,
    DEFAULT_CONVERTER_JOBS,
    DEFAULT_LOG_DIR,
    DEFAULT_MAX_BACKUP_GENERATIONS,
    IMPORTS_DIR,
)


class AutoSaveConfig(BaseModel):
    """Periodic backup configuration."""

    enabled: bool = True
    interval_seconds: float = Field(default=DEFAULT_AUTOSAVE_INTERVAL_SECONDS, gt=0)
    max_backup_generations: int = Field(default=DEFAULT_MAX_BACKUP_GENERATIONS, ge=1)
    backups_dir: str = BACKUPS_DIR
    backup_files: list[str] = Field(default_factory=lambda: list(DEFAULT_BACKUP_FILES))


class ConverterConfig(BaseModel):
    """Point cloud converter configuration."""

    python_executable: str = CONVERTER_PYTHON
    binary_name: str = CONVERTER_BINARY_NAME
    converter_path: str | None = None  # Skips the lookup chain when set
    default_jobs: int = Field(default=DEFAULT_CONVERTER_JOBS, ge=1)
    output_subdir: str = CONVERTED_DIR


class ImportConfig(BaseModel):
    """Import configuration."""

    imports_subdir: str = IMPORTS_DIR
    copy_to_project: bool = True
    auto_convert: bool = True


class SurveyKitSettings(BaseSettings):
    """Main configuration class for SurveyKit."""

    model_config = SettingsConfigDict(
        env_prefix="SURVEYKIT_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
    ):
        """Customize settings sources to include YAML file."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=DEFAULT_CONFIG_FILE),
            file_secret_settings,
        )

    # Sub-configurations
    autosave: AutoSaveConfig = Field(default_factory=AutoSaveConfig)
    converter: ConverterConfig = Field(default_factory=ConverterConfig)
    importing: ImportConfig = Field(default_factory=ImportConfig)

    # Global settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_dir: str = DEFAULT_LOG_DIR

    def get_converted_dir(self, project_path: Path) -> Path:
        """Get the default conversion output directory for a project."""
        return project_path / self.converter.output_subdir


@lru_cache
def get_settings() -> SurveyKitSettings:
    """Get cached settings instance."""
    return SurveyKitSettings()


def reload_settings() -> SurveyKitSettings:
    """Force reload settings (clear cache)."""
    get_settings.cache_clear()
    return get_settings()
