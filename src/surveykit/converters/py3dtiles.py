"""Point cloud to 3D Tiles conversion via py3dtiles."""

import asyncio
import os
import re
import signal
import time
from collections.abc import AsyncIterator, Callable
from pathlib import Path

import anyio

from surveykit.config.constants import (
    CONVERTER_INSTALL_HINT,
    OUTPUT_CRS_EPSG,
    OUTPUT_MAX_LINE,
    OUTPUT_READ_CHUNK,
    PROGRESS_FINISHING,
    PROGRESS_SPAN,
    PROGRESS_START,
    PROGRESS_WRITING_MANIFEST,
    TILESET_MANIFEST,
)
from surveykit.converters.base import ConversionOptions, ConversionProgress, ConversionResult
from surveykit.converters.locator import ConverterCommand, ConverterLocator
from surveykit.converters.script import ConverterScript
from surveykit.exceptions import ConverterBusyError
from surveykit.utils.events import EventChannel, Subscription
from surveykit.utils.fs import ensure_directory
from surveykit.utils.logging import get_logger, job_context

log = get_logger(__name__)

# "current/total" counters; numbers glued to path segments are ignored
PROGRESS_PATTERN = re.compile(r"(?<![\w/\\.])(\d+)\s*/\s*(\d+)(?![\w/\\.])")
MANIFEST_PATTERN = re.compile(r"writing (tileset|manifest)", re.IGNORECASE)
FINISHING_PATTERN = re.compile(r"\b(done|completed)\b", re.IGNORECASE)
LINE_BREAK = re.compile(rb"\r\n|\r|\n")

ProgressCallback = Callable[[ConversionProgress], None]


def parse_progress(line: str) -> ConversionProgress | None:
    """Infer progress from one line of converter output.

    The converter's output is not a stable format; lines that carry no
    recognizable signal return None.
    """
    match = PROGRESS_PATTERN.search(line)
    if match:
        current, total = int(match.group(1)), int(match.group(2))
        if 0 < total and current <= total:
            progress = PROGRESS_START + (current / total) * PROGRESS_SPAN
            return ConversionProgress(
                progress=min(progress, PROGRESS_WRITING_MANIFEST),
                message="Converting...",
                current_file=f"{current} / {total}",
            )

    if MANIFEST_PATTERN.search(line):
        return ConversionProgress(progress=PROGRESS_WRITING_MANIFEST, message="Writing tileset...")
    if FINISHING_PATTERN.search(line):
        return ConversionProgress(progress=PROGRESS_FINISHING, message="Finishing...")
    return None


async def iter_lines(
    stream: asyncio.StreamReader, max_line: int = OUTPUT_MAX_LINE
) -> AsyncIterator[str]:
    """Yield decoded lines from a process stream.

    ``\\n``, ``\\r\\n`` and a bare ``\\r`` all end a line. Text that runs past
    ``max_line`` bytes without a line break is yielded in ``max_line`` pieces
    instead of growing the buffer without bound.
    """
    buffer = b""
    while True:
        chunk = await stream.read(OUTPUT_READ_CHUNK)
        if not chunk:
            break
        *lines, buffer = LINE_BREAK.split(buffer + chunk)
        for line in lines:
            yield line.decode(errors="replace")
        while len(buffer) > max_line:
            yield buffer[:max_line].decode(errors="replace")
            buffer = buffer[max_line:]
    if buffer:
        yield buffer.decode(errors="replace")


def build_arguments(
    command: ConverterCommand,
    input_path: Path,
    output_dir: Path,
    options: ConversionOptions,
) -> list[str]:
    """Build the converter arguments for script or binary mode."""
    if command.is_script:
        script = ConverterScript(
            input_path=str(input_path),
            output_dir=str(output_dir),
            source_crs=options.source_crs,
            output_crs=OUTPUT_CRS_EPSG,
            jobs=options.jobs,
        )
        return ["-c", script.render()]

    args = [str(input_path), str(output_dir)]
    if options.source_crs is not None:
        args.extend(["--srs", str(options.source_crs)])
    args.extend(["--jobs", str(options.jobs)])
    return args


class PointCloudConverter:
    """Convert LAS/LAZ/PLY/E57 point clouds into a 3D Tiles directory.

    One conversion runs at a time per instance. Progress events are
    published on :attr:`progress` and optionally passed to a callback.

    Usage:
        converter = PointCloudConverter()
        result = await converter.convert("scan.las", "out/", ConversionOptions(source_crs=6677))
        if not result.success:
            print(result.error_message)
    """

    def __init__(self, locator: ConverterLocator | None = None) -> None:
        self.locator = locator or ConverterLocator()
        self.progress: EventChannel[ConversionProgress] = EventChannel("conversion-progress")
        self._process: asyncio.subprocess.Process | None = None
        self._running: Path | None = None
        self._cancelled = False
        self._last_progress = 0.0

    @property
    def is_running(self) -> bool:
        return self._running is not None

    def subscribe(self) -> Subscription[ConversionProgress]:
        return self.progress.subscribe()

    async def convert(
        self,
        input_path: Path | str,
        output_dir: Path | str,
        options: ConversionOptions | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> ConversionResult:
        """Convert a point cloud file.

        The tiles are written to ``<output_dir>/<output_name or input stem>``.
        Failures are returned as results carrying an ``error_kind``.

        Raises:
            ConverterBusyError: If a conversion is already running
        """
        options = options or ConversionOptions()
        source = Path(input_path)
        if self._running is not None:
            raise ConverterBusyError(source, running=self._running)

        self._running = source
        self._cancelled = False
        self._last_progress = 0.0
        started = time.perf_counter()
        try:
            with job_context(file_path=str(source)):
                result = await self._convert(source, Path(output_dir), options, on_progress, started)
                if result.success:
                    log.info("Conversion completed", output=result.output_path, duration_ms=result.duration_ms)
                else:
                    log.warning("Conversion failed", kind=result.error_kind, error=result.error_message)
                return result
        finally:
            self._running = None
            self._process = None

    def cancel(self) -> None:
        """Cancel the running conversion.

        Idempotent; does nothing when no conversion is running.
        """
        if self._running is None:
            return
        if not self._cancelled:
            log.info("Conversion cancelled", file=str(self._running))
        self._cancelled = True
        self._kill()

    def close(self) -> None:
        """Cancel any running conversion and close the progress channel."""
        self.cancel()
        self.progress.close()

    async def _convert(
        self,
        source: Path,
        output_dir: Path,
        options: ConversionOptions,
        on_progress: ProgressCallback | None,
        started: float,
    ) -> ConversionResult:
        if not await anyio.to_thread.run_sync(source.is_file):
            return ConversionResult.failure("source_not_found", f"Input file not found: {source}")

        self._emit(ConversionProgress(0.0, "Checking converter..."), on_progress)
        command = await self.locator.resolve()
        if command is None:
            return ConversionResult.failure(
                "unavailable",
                f"py3dtiles converter not found. Install it with: {CONVERTER_INSTALL_HINT}",
            )
        if self._cancelled:
            return ConversionResult.failure("cancelled", "Conversion was cancelled")

        tileset_dir = output_dir / (options.output_name or source.stem)
        await anyio.to_thread.run_sync(ensure_directory, tileset_dir)

        if options.downsample_ratio < 1.0:
            log.debug("Converter has no downsampling option; all points are kept", ratio=options.downsample_ratio)

        args = build_arguments(command, source, tileset_dir, options)
        log.info(
            "Running converter",
            executable=command.executable,
            mode=command.mode,
            args="(python script)" if command.is_script else " ".join(args),
        )
        self._emit(ConversionProgress(PROGRESS_START, "Starting conversion...", source.name), on_progress)

        try:
            # Own process group, so a kill also reaches worker processes
            process = await asyncio.create_subprocess_exec(
                command.executable,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as e:
            return ConversionResult.failure("failed", f"Failed to start converter: {e}")

        self._process = process
        if self._cancelled:
            self._kill()

        readers = [
            asyncio.create_task(self._read_stdout(process.stdout, on_progress)),
            asyncio.create_task(self._read_stderr(process.stderr)),
        ]
        try:
            await asyncio.gather(*readers)
            exit_code = await process.wait()
        except asyncio.CancelledError:
            for reader in readers:
                reader.cancel()
            self._kill()
            raise
        except Exception as e:
            for reader in readers:
                reader.cancel()
            self._kill()
            await process.wait()
            log.error("Reading converter output failed", error=str(e))
            return ConversionResult.failure(
                "failed",
                f"Reading converter output failed: {e}",
                output_path=tileset_dir,
                duration_ms=int((time.perf_counter() - started) * 1000),
            )

        duration_ms = int((time.perf_counter() - started) * 1000)
        if self._cancelled:
            return ConversionResult.failure(
                "cancelled", "Conversion was cancelled", output_path=tileset_dir, duration_ms=duration_ms
            )
        if exit_code != 0:
            return ConversionResult.failure(
                "failed",
                f"Converter exited with code {exit_code}",
                output_path=tileset_dir,
                duration_ms=duration_ms,
                exit_code=exit_code,
            )

        tileset_path = tileset_dir / TILESET_MANIFEST
        if not await anyio.to_thread.run_sync(tileset_path.is_file):
            return ConversionResult.failure(
                "failed",
                f"{TILESET_MANIFEST} was not generated: {tileset_path}",
                output_path=tileset_dir,
                duration_ms=duration_ms,
                exit_code=exit_code,
            )

        self._emit(ConversionProgress(1.0, "Conversion complete"), on_progress)
        return ConversionResult.succeeded(tileset_dir, tileset_path, duration_ms)

    async def _read_stdout(
        self, stream: asyncio.StreamReader | None, on_progress: ProgressCallback | None
    ) -> None:
        if stream is None:
            return
        async for raw in iter_lines(stream):
            line = raw.rstrip()
            if not line:
                continue
            log.debug("[py3dtiles] " + line)
            event = parse_progress(line)
            if event is not None:
                self._emit(event, on_progress)

    async def _read_stderr(self, stream: asyncio.StreamReader | None) -> None:
        if stream is None:
            return
        async for raw in iter_lines(stream):
            line = raw.rstrip()
            if line:
                log.warning("[py3dtiles stderr] " + line)

    def _emit(self, event: ConversionProgress, on_progress: ProgressCallback | None) -> None:
        if event.progress < self._last_progress:
            return
        self._last_progress = event.progress
        self.progress.publish(event)
        if on_progress is not None:
            try:
                on_progress(event)
            except Exception as e:
                log.warning("Progress callback failed", error=str(e))

    def _kill(self) -> None:
        process = self._process
        if process is None:
            return
        try:
            if hasattr(os, "killpg"):
                # The group outlives a reaped leader while workers still run
                os.killpg(process.pid, signal.SIGKILL)
            elif process.returncode is None:
                process.kill()
        except ProcessLookupError:
            pass
