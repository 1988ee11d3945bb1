"""Pytest configuration and fixtures."""

import json
import os
import stat
import struct
from collections.abc import Callable
from pathlib import Path

import pytest

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent


def build_las_header(
    version: tuple[int, int] = (1, 2),
    point_format: int = 3,
    point_count: int = 1000,
    point_count_64: int | None = None,
    offset: tuple[float, float, float] = (500000.0, 4000000.0, 0.0),
    bounds: tuple[float, float, float, float, float, float] = (
        500000.0,
        4000000.0,
        10.0,
        500100.0,
        4000200.0,
        55.5,
    ),
    size: int = 375,
) -> bytes:
    """Build a LAS public header block.

    ``bounds`` is given as (min_x, min_y, min_z, max_x, max_y, max_z) and is
    written in the on-disk order max-X, min-X, max-Y, min-Y, max-Z, min-Z.
    """
    data = bytearray(size)
    data[0:4] = b"LASF"
    data[24] = version[0]
    data[25] = version[1]
    data[104] = point_format
    struct.pack_into("<I", data, 107, point_count)
    struct.pack_into("<3d", data, 131, *offset)
    min_x, min_y, min_z, max_x, max_y, max_z = bounds
    struct.pack_into("<6d", data, 179, max_x, min_x, max_y, min_y, max_z, min_z)
    if point_count_64 is not None and size >= 255:
        struct.pack_into("<Q", data, 247, point_count_64)
    return bytes(data)


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Working directory for a test."""
    return tmp_path


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """An empty project directory."""
    project = tmp_path / "project"
    project.mkdir()
    return project


@pytest.fixture
def make_las(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing a synthetic LAS file (header plus a little payload)."""

    def _make(name: str = "scan.las", payload: bytes = b"\x00" * 64, **header) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(build_las_header(**header) + payload)
        return path

    return _make


@pytest.fixture
def sample_las(make_las) -> Path:
    """A LAS 1.2 file with color (point data format 3)."""
    return make_las()


@pytest.fixture
def make_ply(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing a PLY file from header lines."""

    def _make(
        name: str = "cloud.ply",
        header_lines: list[str] | None = None,
        body: bytes = b"",
    ) -> Path:
        lines = header_lines or [
            "ply",
            "format ascii 1.0",
            "comment EPSG:6677",
            "element vertex 3",
            "property float x",
            "property float y",
            "property float z",
            "property uchar red",
            "property uchar green",
            "property uchar blue",
            "end_header",
        ]
        path = tmp_path / name
        path.write_bytes(("\n".join(lines) + "\n").encode("utf-8") + body)
        return path

    return _make


@pytest.fixture
def sample_ply(make_ply) -> Path:
    """An ASCII PLY with an EPSG comment and RGB properties."""
    return make_ply(body=b"0 0 0 255 0 0\n1 0 0 0 255 0\n0 1 0 0 0 255\n")


@pytest.fixture
def sample_obj(tmp_path: Path) -> Path:
    """An OBJ mesh with a material library and a .prj sidecar."""
    obj = tmp_path / "building.obj"
    obj.write_text("mtllib building.mtl\nv 0 0 0\nv 1 0 0\nv 0 1 0\nf 1 2 3\n", encoding="utf-8")
    (tmp_path / "building.mtl").write_text("newmtl wall\nKd 0.8 0.8 0.8\n", encoding="utf-8")
    (tmp_path / "building.prj").write_text(
        'PROJCS["JGD2011 / Japan Plane Rectangular CS IX",AUTHORITY["EPSG","6677"]]',
        encoding="utf-8",
    )
    return obj


@pytest.fixture
def sample_gltf(tmp_path: Path) -> Path:
    """A glTF document with a CESIUM_RTC center."""
    path = tmp_path / "site.gltf"
    document = {
        "asset": {"version": "2.0"},
        "extensionsUsed": ["CESIUM_RTC"],
        "extensions": {"CESIUM_RTC": {"center": [-3959000.5, 3352000.25, 3697000.0]}},
    }
    path.write_text(json.dumps(document), encoding="utf-8")
    return path


def _write_executable(path: Path, content: str) -> Path:
    path.write_text(content, encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


_CONVERTER_SCRIPTS = {
    # Well-behaved converter: progress, a stderr warning, then tileset.json
    "ok": """#!/bin/sh
printf '%s\\n' "$@" > "$0.args"
out="$2"
echo "Reading points"
echo "Processing 1/4"
echo "Processing 2/4"
echo "Processing 4/4"
echo "warning: slow disk" >&2
echo "Writing tileset"
mkdir -p "$out"
echo '{"asset": {"version": "1.0"}}' > "$out/tileset.json"
echo "Done"
exit 0
""",
    # Non-zero exit
    "fail": """#!/bin/sh
echo "Processing 1/4"
echo "error: unsupported point format" >&2
exit 3
""",
    # Exit 0 without writing the manifest
    "no_manifest": """#!/bin/sh
echo "Processing 4/4"
echo "Done"
exit 0
""",
    # Reports progress, then blocks until killed
    "slow": """#!/bin/sh
echo "Processing 1/10"
exec sleep 30
""",
    # Forks a worker without exec, so the worker also holds the pipes
    "forking": """#!/bin/sh
echo "Processing 1/10"
sleep 30
echo "Done"
exit 0
""",
    # A single stdout line and a single stderr line far past 64 KiB
    "long_line": """#!/bin/sh
out="$2"
head -c 100000 /dev/zero | tr "\\\\000" x
echo
head -c 100000 /dev/zero | tr "\\\\000" y >&2
echo >&2
echo "Processing 4/4"
mkdir -p "$out"
echo "{}" > "$out/tileset.json"
exit 0
""",
    # Progress that goes backwards
    "regress": """#!/bin/sh
out="$2"
echo "Processing 3/4"
echo "Processing 1/4"
mkdir -p "$out"
echo '{}' > "$out/tileset.json"
exit 0
""",
}


@pytest.fixture
def make_converter(tmp_path: Path) -> Callable[[str], Path]:
    """Factory writing a fake ``py3dtiles_converter`` shell script.

    Behaviors: ok, fail, no_manifest, slow, forking, long_line, regress.
    """
    if os.name == "nt":
        pytest.skip("fake converter is a POSIX shell script")

    def _make(behavior: str = "ok") -> Path:
        tools = tmp_path / "tools" / behavior
        tools.mkdir(parents=True, exist_ok=True)
        return _write_executable(tools / "py3dtiles_converter", _CONVERTER_SCRIPTS[behavior])

    return _make


@pytest.fixture
def fake_python(tmp_path: Path) -> Path:
    """An executable that answers the py3dtiles import probe with OK."""
    if os.name == "nt":
        pytest.skip("fake interpreter is a POSIX shell script")
    bin_dir = tmp_path / "fake-python"
    bin_dir.mkdir()
    return _write_executable(bin_dir / "python3", "#!/bin/sh\necho OK\n")


@pytest.fixture
def isolated_settings(tmp_path: Path, monkeypatch):
    """Run in a temp directory with no surveykit.yaml and fresh settings."""
    monkeypatch.chdir(tmp_path)
    for key in list(os.environ):
        if key.startswith("SURVEYKIT_"):
            monkeypatch.delenv(key)

    from surveykit.config.settings import get_settings

    get_settings.cache_clear()
    yield tmp_path
    get_settings.cache_clear()
