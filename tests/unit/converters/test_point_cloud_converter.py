"""Tests for PointCloudConverter against fake converter executables."""

import asyncio
import os
import time
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from surveykit.converters.base import ConversionOptions, ConversionProgress
from surveykit.converters.locator import ConverterCommand, ConverterLocator
from surveykit.converters.py3dtiles import (
    PointCloudConverter,
    build_arguments,
    iter_lines,
    parse_progress,
)
from surveykit.exceptions import ConverterBusyError


def _converter(binary: Path) -> PointCloudConverter:
    return PointCloudConverter(ConverterLocator(converter_path=str(binary)))


async def _wait_for(event: asyncio.Event, timeout: float = 5.0) -> None:
    await asyncio.wait_for(event.wait(), timeout)


class TestParseProgress:
    """Tests for parse_progress."""

    @pytest.mark.parametrize(
        "line,expected",
        [
            ("Processing 1/4", 0.3),
            ("points 50 / 100", 0.5),
            ("Processing 4/4", 0.9),
        ],
    )
    def test_counters(self, line, expected):
        event = parse_progress(line)

        assert event is not None
        assert event.progress == pytest.approx(expected)
        assert event.message == "Converting..."

    def test_counter_label(self):
        event = parse_progress("Processing 2/8")
        assert event is not None
        assert event.current_file == "2 / 8"

    @pytest.mark.parametrize(
        "line",
        [
            "Processing 5/4",
            "Processing 0/0",
            "Reading /data/2024/05/scan.las",
            "Opening scans/3/4.las",
            "Reading points",
            "",
        ],
    )
    def test_no_signal(self, line):
        assert parse_progress(line) is None

    def test_manifest(self):
        event = parse_progress("Writing tileset")
        assert event is not None
        assert event.progress == pytest.approx(0.9)

    @pytest.mark.parametrize("line", ["Done", "conversion completed", "All DONE."])
    def test_finishing(self, line):
        event = parse_progress(line)
        assert event is not None
        assert event.progress == pytest.approx(0.95)


async def _collect(data: bytes, **kwargs) -> list[str]:
    stream = asyncio.StreamReader()
    stream.feed_data(data)
    stream.feed_eof()
    return [line async for line in iter_lines(stream, **kwargs)]


class TestIterLines:
    """Tests for iter_lines."""

    async def test_line_endings(self):
        assert await _collect(b"one\ntwo\r\nthree\rfour") == ["one", "two", "three", "four"]

    async def test_line_longer_than_stream_limit(self):
        lines = await _collect(b"x" * 200_000 + b"\nProcessing 4/4\n")

        assert lines == ["x" * 200_000, "Processing 4/4"]

    async def test_unterminated_output_is_split(self):
        assert await _collect(b"abcdefghij", max_line=4) == ["abcd", "efgh", "ij"]

    async def test_invalid_utf8_is_replaced(self):
        assert await _collect(b"caf\xe9\n") == ["caf�"]


class TestBuildArguments:
    """Tests for build_arguments."""

    def test_binary_mode(self):
        args = build_arguments(
            ConverterCommand("/bin/conv", "binary"),
            Path("/data/scan.las"),
            Path("/out/scan"),
            ConversionOptions(source_crs=6677, jobs=4),
        )

        assert args == [
            str(Path("/data/scan.las")),
            str(Path("/out/scan")),
            "--srs",
            "6677",
            "--jobs",
            "4",
        ]

    def test_binary_mode_without_crs(self):
        args = build_arguments(
            ConverterCommand("/bin/conv", "binary"),
            Path("a.las"),
            Path("out"),
            ConversionOptions(),
        )

        assert "--srs" not in args
        assert args[-2:] == ["--jobs", "1"]

    def test_script_mode(self):
        args = build_arguments(
            ConverterCommand("python3", "script"),
            Path("/data/scan.las"),
            Path("/out/scan"),
            ConversionOptions(source_crs=6677),
        )

        assert args[0] == "-c"
        assert "from py3dtiles.convert import convert" in args[1]
        assert "from_epsg(6677)" in args[1]


class TestPointCloudConverter:
    """Tests for PointCloudConverter.convert."""

    async def test_success(self, make_converter, sample_las, tmp_path):
        converter = _converter(make_converter("ok"))
        events: list[ConversionProgress] = []

        result = await converter.convert(
            sample_las, tmp_path / "out", ConversionOptions(), on_progress=events.append
        )

        tileset = tmp_path / "out" / "scan" / "tileset.json"
        assert result.success is True
        assert result.tileset_path == str(tileset)
        assert result.output_path == str(tmp_path / "out" / "scan")
        assert tileset.is_file()
        assert result.duration_ms is not None
        assert events[0].progress == 0.0
        assert events[-1].progress == 1.0
        assert not converter.is_running

    async def test_progress_never_decreases(self, make_converter, sample_las, tmp_path):
        converter = _converter(make_converter("regress"))
        subscription = converter.subscribe()

        result = await converter.convert(sample_las, tmp_path / "out")

        progress = [event.progress for event in subscription.pending()]
        assert result.success is True
        assert progress == sorted(progress)
        assert not any(p == pytest.approx(0.3) for p in progress)

    async def test_arguments_passed_to_binary(self, make_converter, sample_las, tmp_path):
        binary = make_converter("ok")

        await _converter(binary).convert(
            sample_las, tmp_path / "out", ConversionOptions(source_crs=6677, jobs=3)
        )

        args = Path(f"{binary}.args").read_text().splitlines()
        assert args == [
            str(sample_las),
            str(tmp_path / "out" / "scan"),
            "--srs",
            "6677",
            "--jobs",
            "3",
        ]

    async def test_output_name(self, make_converter, sample_las, tmp_path):
        result = await _converter(make_converter("ok")).convert(
            sample_las, tmp_path / "out", ConversionOptions(output_name="site-a")
        )

        assert result.output_path == str(tmp_path / "out" / "site-a")

    async def test_downsample_ratio_is_not_forwarded(self, make_converter, sample_las, tmp_path):
        binary = make_converter("ok")

        result = await _converter(binary).convert(
            sample_las, tmp_path / "out", ConversionOptions(downsample_ratio=0.5)
        )

        assert result.success is True
        assert "0.5" not in Path(f"{binary}.args").read_text()

    async def test_nonzero_exit(self, make_converter, sample_las, tmp_path):
        result = await _converter(make_converter("fail")).convert(sample_las, tmp_path / "out")

        assert result.success is False
        assert result.error_kind == "failed"
        assert result.exit_code == 3
        assert "3" in result.error_message

    async def test_missing_manifest(self, make_converter, sample_las, tmp_path):
        result = await _converter(make_converter("no_manifest")).convert(
            sample_las, tmp_path / "out"
        )

        assert result.success is False
        assert result.error_kind == "failed"
        assert "tileset.json" in result.error_message

    async def test_missing_source_spawns_nothing(self, tmp_path):
        locator = MagicMock(spec=ConverterLocator)
        locator.resolve = AsyncMock()
        converter = PointCloudConverter(locator)

        result = await converter.convert(tmp_path / "gone.las", tmp_path / "out")

        assert result.error_kind == "source_not_found"
        assert "Input file not found" in result.error_message
        locator.resolve.assert_not_awaited()
        assert not (tmp_path / "out").exists()

    async def test_unavailable(self, sample_las, tmp_path):
        converter = _converter(tmp_path / "no-such-converter")

        result = await converter.convert(sample_las, tmp_path / "out")

        assert result.error_kind == "unavailable"
        assert 'pip install "py3dtiles[las]"' in result.error_message

    async def test_cancel_while_running(self, make_converter, sample_las, tmp_path):
        converter = _converter(make_converter("slow"))
        started = asyncio.Event()

        def on_progress(event: ConversionProgress) -> None:
            if event.current_file == "1 / 10":
                started.set()

        task = asyncio.create_task(
            converter.convert(sample_las, tmp_path / "out", on_progress=on_progress)
        )
        await _wait_for(started)
        converter.cancel()
        converter.cancel()
        result = await asyncio.wait_for(task, 10)

        assert result.success is False
        assert result.cancelled
        assert not converter.is_running

    @pytest.mark.skipif(os.name != "posix", reason="process groups are POSIX only")
    async def test_cancel_kills_forked_workers(self, make_converter, sample_las, tmp_path):
        converter = _converter(make_converter("forking"))
        started = asyncio.Event()

        def on_progress(event: ConversionProgress) -> None:
            if event.current_file == "1 / 10":
                started.set()

        task = asyncio.create_task(
            converter.convert(sample_las, tmp_path / "out", on_progress=on_progress)
        )
        await _wait_for(started)
        cancelled_at = time.perf_counter()
        converter.cancel()
        result = await asyncio.wait_for(task, 10)

        assert result.cancelled
        assert time.perf_counter() - cancelled_at < 5
        assert not converter.is_running

    async def test_cancel_wins_over_clean_exit(self, make_converter, sample_las, tmp_path):
        converter = _converter(make_converter("ok"))

        def on_progress(event: ConversionProgress) -> None:
            if event.current_file == "1 / 4":
                converter.cancel()

        # The child finishes on its own as if the kill arrived too late
        with patch.object(converter, "_kill"):
            result = await converter.convert(sample_las, tmp_path / "out", on_progress=on_progress)

        assert (tmp_path / "out" / "scan" / "tileset.json").is_file()
        assert result.success is False
        assert result.cancelled
        assert result.error_kind == "cancelled"
        assert result.exit_code is None

    async def test_overlong_output_lines(self, make_converter, sample_las, tmp_path):
        events: list[ConversionProgress] = []

        result = await _converter(make_converter("long_line")).convert(
            sample_las, tmp_path / "out", on_progress=events.append
        )

        assert result.success is True
        assert any(e.current_file == "4 / 4" for e in events)

    async def test_output_read_failure_returns_result(self, make_converter, sample_las, tmp_path):
        converter = _converter(make_converter("slow"))

        with patch.object(converter, "_read_stderr", side_effect=RuntimeError("pipe broke")):
            result = await asyncio.wait_for(converter.convert(sample_las, tmp_path / "out"), 10)

        assert result.success is False
        assert result.error_kind == "failed"
        assert "pipe broke" in result.error_message
        assert not converter.is_running

    async def test_cancel_when_idle(self):
        converter = PointCloudConverter(ConverterLocator(converter_path="/nonexistent"))
        converter.cancel()
        assert not converter.is_running

    async def test_busy(self, make_converter, sample_las, tmp_path):
        converter = _converter(make_converter("slow"))
        started = asyncio.Event()

        task = asyncio.create_task(
            converter.convert(sample_las, tmp_path / "out", on_progress=lambda e: started.set())
        )
        await _wait_for(started)

        with pytest.raises(ConverterBusyError):
            await converter.convert(sample_las, tmp_path / "other")

        converter.cancel()
        result = await asyncio.wait_for(task, 10)
        assert result.cancelled

    async def test_task_cancellation_kills_child(self, make_converter, sample_las, tmp_path):
        converter = _converter(make_converter("slow"))
        started = asyncio.Event()

        def on_progress(event: ConversionProgress) -> None:
            if event.current_file == "1 / 10":
                started.set()

        task = asyncio.create_task(
            converter.convert(sample_las, tmp_path / "out", on_progress=on_progress)
        )
        await _wait_for(started)
        process = converter._process
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert process is not None
        await asyncio.wait_for(process.wait(), 5)
        assert process.returncode is not None
        assert not converter.is_running

    async def test_failing_callback_does_not_break_run(self, make_converter, sample_las, tmp_path):
        def explode(event: ConversionProgress) -> None:
            raise RuntimeError("ui gone")

        result = await _converter(make_converter("ok")).convert(
            sample_las, tmp_path / "out", on_progress=explode
        )

        assert result.success is True

    async def test_close_ends_subscriptions(self, make_converter):
        converter = _converter(make_converter("ok"))
        subscription = converter.subscribe()

        converter.close()

        with pytest.raises(StopAsyncIteration):
            await subscription.get()
