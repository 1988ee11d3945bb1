"""Resolve the external point cloud converter.

Lookup order:
1. A Python interpreter that can import ``py3dtiles`` (embedded script mode)
2. ``py3dtiles_converter`` on PATH (binary mode)
3. Bundled binaries relative to the running executable
"""

import asyncio
import shutil
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from surveykit.config.constants import (
    BUNDLE_SEARCH_DEPTH,
    CONVERTER_BINARY_NAME,
    CONVERTER_MODULE,
    CONVERTER_PYTHON,
)
from surveykit.utils.logging import get_logger

log = get_logger(__name__)

ConverterMode = Literal["script", "binary"]


@dataclass(frozen=True)
class ConverterCommand:
    """A resolved converter executable and how to drive it."""

    executable: str
    mode: ConverterMode

    @property
    def is_script(self) -> bool:
        return self.mode == "script"


class ConverterLocator:
    """Find a usable converter, caching nothing between calls.

    Args:
        python_executable: Interpreter probed for the py3dtiles module
        binary_name: Converter binary searched on PATH
        converter_path: Explicit binary path; skips the lookup chain
        executable: Running executable used for bundle lookups
                    (defaults to ``sys.executable``)
    """

    def __init__(
        self,
        python_executable: str = CONVERTER_PYTHON,
        binary_name: str = CONVERTER_BINARY_NAME,
        converter_path: str | None = None,
        executable: str | None = None,
    ) -> None:
        self.python_executable = python_executable
        self.binary_name = binary_name
        self.converter_path = converter_path
        self.executable = executable or sys.executable

    async def resolve(self) -> ConverterCommand | None:
        """Return the first available converter, or None."""
        if self.converter_path:
            path = Path(self.converter_path)
            if path.is_file():
                log.info("Using configured converter", path=str(path))
                return ConverterCommand(str(path), "binary")
            log.warning("Configured converter not found", path=str(path))
            return None

        if await self._python_has_module():
            log.info("Using py3dtiles via Python", python=self.python_executable)
            return ConverterCommand(self.python_executable, "script")

        on_path = shutil.which(self.binary_name)
        if on_path:
            log.info("Found converter in PATH", path=on_path)
            return ConverterCommand(on_path, "binary")

        for candidate in self.bundle_candidates():
            log.debug("Checking converter path", path=str(candidate))
            if candidate.is_file():
                log.info("Found bundled converter", path=str(candidate))
                return ConverterCommand(str(candidate), "binary")

        log.error("No point cloud converter found", binary=self.binary_name)
        return None

    def bundle_candidates(self) -> list[Path]:
        """Candidate binary paths relative to the running executable.

        The application bundle's resource folder comes first, followed by
        the first ``macos/Runner/Resources/tools`` found walking up from the
        executable (development checkouts).
        """
        exe = Path(self.executable)
        candidates = [exe.parent.parent / "Resources" / "tools" / self.binary_name]

        current = exe
        for _ in range(BUNDLE_SEARCH_DEPTH):
            parent = current.parent
            if parent == current:
                break
            current = parent
            dev_path = current / "macos" / "Runner" / "Resources" / "tools" / self.binary_name
            if dev_path.is_file():
                candidates.append(dev_path)
                break
        return candidates

    async def _python_has_module(self) -> bool:
        try:
            process = await asyncio.create_subprocess_exec(
                self.python_executable,
                "-c",
                f"import {CONVERTER_MODULE}; print('OK')",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
            stdout, _ = await process.communicate()
        except OSError as e:
            log.debug("Python probe failed", python=self.python_executable, error=str(e))
            return False
        return process.returncode == 0 and "OK" in stdout.decode(errors="replace")
