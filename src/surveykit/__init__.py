"""SurveyKit - 3D survey data ingestion, tiling and project safety tools."""

__version__ = "0.1.0"
