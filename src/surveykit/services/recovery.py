"""Crash recovery marker.

A ``.recovery`` file is written when a project session starts and removed
on clean shutdown. Finding it at the next start means the previous session
ended uncleanly; deciding whether to restore a backup is left to the caller.
"""

from datetime import datetime
from pathlib import Path

import anyio

from surveykit.config.constants import RECOVERY_MARKER
from surveykit.utils.logging import get_logger

log = get_logger(__name__)


class RecoveryService:
    """Create, remove and detect the recovery marker of a project."""

    def __init__(self, marker_name: str = RECOVERY_MARKER) -> None:
        self.marker_name = marker_name

    def marker_path(self, project_path: Path | str) -> Path:
        return Path(project_path) / self.marker_name

    async def check_for_recovery(self, project_path: Path | str) -> bool:
        """Return True if a recovery marker is present."""
        return await anyio.to_thread.run_sync(self.marker_path(project_path).is_file)

    async def create_recovery_marker(self, project_path: Path | str) -> Path:
        """Write the marker containing the current ISO-8601 timestamp."""
        marker = self.marker_path(project_path)
        await anyio.to_thread.run_sync(marker.write_text, datetime.now().isoformat())
        log.debug("Recovery marker created", marker=str(marker))
        return marker

    async def remove_recovery_marker(self, project_path: Path | str) -> None:
        """Delete the marker if present."""
        marker = self.marker_path(project_path)
        await anyio.to_thread.run_sync(_unlink_if_exists, marker)
        log.debug("Recovery marker removed", marker=str(marker))

    async def marker_timestamp(self, project_path: Path | str) -> datetime | None:
        """Timestamp stored in the marker, or None if absent or unreadable."""
        return await anyio.to_thread.run_sync(_read_timestamp, self.marker_path(project_path))


def _unlink_if_exists(path: Path) -> None:
    path.unlink(missing_ok=True)


def _read_timestamp(marker: Path) -> datetime | None:
    try:
        return datetime.fromisoformat(marker.read_text().strip())
    except (OSError, ValueError) as e:
        log.debug("Could not read recovery marker", marker=str(marker), error=str(e))
        return None
