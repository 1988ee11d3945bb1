"""File system utilities for SurveyKit.

Provides unique path reservation, header reads and timestamped directory
names.
"""

import os
from datetime import datetime
from pathlib import Path


def ensure_directory(path: Path) -> Path:
    """Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path

    Returns:
        The directory path
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def reserve_unique_path(path: Path) -> Path:
    """Atomically claim a unique file path using exclusive creation.

    ``scan.las`` becomes ``scan_1.las``, then ``scan_2.las`` and so on. The
    chosen path is created empty before returning, so two concurrent callers
    can never be handed the same name.

    Args:
        path: Desired path

    Returns:
        The reserved (now existing, empty) path
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    candidate = path
    counter = 1
    while True:
        try:
            fd = os.open(candidate, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            candidate = path.parent / f"{path.stem}_{counter}{path.suffix}"
            counter += 1
            continue
        os.close(fd)
        return candidate


def read_head(file_path: Path, size: int) -> bytes:
    """Read at most ``size`` bytes from the start of a file."""
    with open(file_path, "rb") as f:
        return f.read(size)


def timestamp_dirname(moment: datetime | None = None) -> str:
    """Build a sortable, filesystem-safe directory name from a timestamp.

    The ISO-8601 form always carries microseconds so that names sort
    chronologically; ``:`` is replaced by ``-``.

    Example:
        >>> timestamp_dirname(datetime(2026, 10, 19, 14, 30, 52, 120))
        '2026-10-19T14-30-52.000120'
    """
    moment = moment or datetime.now()
    return moment.isoformat(timespec="microseconds").replace(":", "-")


def format_size(size: int | float) -> str:
    """Format byte size as human-readable string.

    Args:
        size: Size in bytes

    Returns:
        Human-readable size string
    """
    size_f = float(size)
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size_f < 1024:
            return f"{size_f:.1f} {unit}"
        size_f /= 1024
    return f"{size_f:.1f} PB"
