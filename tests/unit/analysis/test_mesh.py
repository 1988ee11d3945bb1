"""Tests for OBJ, glTF and E57 analyzers."""

import json

import pytest

from surveykit.analysis.e57 import E57Analyzer
from surveykit.analysis.mesh import GltfAnalyzer, ObjAnalyzer, find_epsg


class TestFindEpsg:
    """Tests for find_epsg."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ('AUTHORITY["EPSG","6677"]', 6677),
            ("EPSG:4326", 4326),
            ("EPSG 3857", 3857),
            ('GEOGCS["WGS 84"]', None),
        ],
    )
    def test_patterns(self, text, expected):
        assert find_epsg(text) == expected

    def test_first_match_wins(self):
        assert find_epsg('AUTHORITY["EPSG","6668"] ... AUTHORITY["EPSG","6677"]') == 6668


class TestObjAnalyzer:
    """Tests for ObjAnalyzer."""

    def test_prj_sidecar(self, sample_obj):
        geo = ObjAnalyzer().analyze_geo_reference(sample_obj)

        assert geo is not None
        assert geo.epsg == 6677
        assert geo.detection_method == "prj_file"

    def test_prj_without_code_still_reports_sidecar(self, tmp_path):
        obj = tmp_path / "model.obj"
        obj.write_text("v 0 0 0\n")
        (tmp_path / "model.prj").write_text('LOCAL_CS["site grid"]')

        geo = ObjAnalyzer().analyze_geo_reference(obj)

        assert geo is not None
        assert geo.epsg is None
        assert geo.detection_method == "prj_file"

    def test_no_sidecar(self, tmp_path):
        obj = tmp_path / "model.obj"
        obj.write_text("v 0 0 0\n")

        assert ObjAnalyzer().analyze_geo_reference(obj) is None


class TestGltfAnalyzer:
    """Tests for GltfAnalyzer."""

    def test_cesium_rtc_center(self, sample_gltf):
        geo = GltfAnalyzer().analyze_geo_reference(sample_gltf)

        assert geo is not None
        assert geo.detection_method == "gltf_cesium_rtc"
        assert geo.origin is not None
        assert (geo.origin.x, geo.origin.y, geo.origin.z) == (-3959000.5, 3352000.25, 3697000.0)

    def test_without_extension(self, tmp_path):
        path = tmp_path / "plain.gltf"
        path.write_text(json.dumps({"asset": {"version": "2.0"}}))

        assert GltfAnalyzer().analyze_geo_reference(path) is None

    @pytest.mark.parametrize(
        "center",
        [[1.0, 2.0], [1.0, "2", 3.0], [True, 2.0, 3.0], "1,2,3"],
    )
    def test_malformed_center(self, tmp_path, center):
        path = tmp_path / "bad.gltf"
        path.write_text(json.dumps({"extensions": {"CESIUM_RTC": {"center": center}}}))

        assert GltfAnalyzer().analyze_geo_reference(path) is None

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.gltf"
        path.write_text("{not json")

        assert GltfAnalyzer().analyze_geo_reference(path) is None

    def test_glb_not_inspected(self, tmp_path):
        path = tmp_path / "model.glb"
        path.write_bytes(b"glTF\x02\x00\x00\x00")

        assert GltfAnalyzer().analyze_geo_reference(path) is None


class TestE57Analyzer:
    """Tests for E57Analyzer."""

    def test_no_geo_reference(self, tmp_path):
        path = tmp_path / "scan.e57"
        path.write_bytes(b"ASTM-E57" + b"\x00" * 32)

        assert E57Analyzer().analyze_geo_reference(path) is None

    def test_details_carry_format_only(self, tmp_path):
        path = tmp_path / "scan.e57"
        path.write_bytes(b"ASTM-E57" + b"\x00" * 32)

        info = E57Analyzer().analyze_details(path, 40)

        assert info.format_version == "E57"
        assert info.point_count is None
        assert info.geo_reference is None
