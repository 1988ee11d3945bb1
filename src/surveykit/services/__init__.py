"""Project services: autosave, crash recovery and the project session."""

from surveykit.services.autosave import AutoSaveService
from surveykit.services.recovery import RecoveryService
from surveykit.services.session import ProjectSession

__all__ = [
    "AutoSaveService",
    "RecoveryService",
    "ProjectSession",
]
