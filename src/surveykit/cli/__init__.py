"""SurveyKit command-line interface."""

from surveykit.cli.main import app

__all__ = ["app"]
