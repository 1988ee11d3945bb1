"""Data classes produced by the file format analyzers."""

from dataclasses import dataclass
from typing import Any, Literal

DetectionMethod = Literal["las_header", "ply_comment", "prj_file", "gltf_cesium_rtc", "manual", "auto"]


@dataclass(frozen=True)
class GeoPoint:
    """A point in the file's coordinate system.

    For geographic systems x/y/z are longitude/latitude/height.
    """

    x: float
    y: float
    z: float

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GeoPoint":
        return cls(x=float(data["x"]), y=float(data["y"]), z=float(data["z"]))


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned 3D extent."""

    min_x: float
    min_y: float
    min_z: float
    max_x: float
    max_y: float
    max_z: float

    @property
    def width(self) -> float:
        """Extent along X."""
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        """Extent along Y."""
        return self.max_y - self.min_y

    @property
    def depth(self) -> float:
        """Extent along Z."""
        return self.max_z - self.min_z

    @property
    def center(self) -> GeoPoint:
        return GeoPoint(
            x=(self.min_x + self.max_x) / 2,
            y=(self.min_y + self.max_y) / 2,
            z=(self.min_z + self.max_z) / 2,
        )

    def to_dict(self) -> dict[str, float]:
        return {
            "min_x": self.min_x,
            "min_y": self.min_y,
            "min_z": self.min_z,
            "max_x": self.max_x,
            "max_y": self.max_y,
            "max_z": self.max_z,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BoundingBox":
        return cls(**{key: float(data[key]) for key in cls.__dataclass_fields__})


@dataclass(frozen=True)
class GeoReference:
    """Coordinate-system and extent metadata read from a header or sidecar."""

    epsg: int | None = None
    origin: GeoPoint | None = None
    bounding_box: BoundingBox | None = None
    detection_method: DetectionMethod = "auto"

    @property
    def has_coordinate_system(self) -> bool:
        return self.epsg is not None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, omitting absent fields."""
        data: dict[str, Any] = {}
        if self.epsg is not None:
            data["epsg"] = self.epsg
        if self.origin is not None:
            data["origin"] = self.origin.to_dict()
        if self.bounding_box is not None:
            data["bounding_box"] = self.bounding_box.to_dict()
        data["detection_method"] = self.detection_method
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GeoReference":
        origin = data.get("origin")
        bounding_box = data.get("bounding_box")
        return cls(
            epsg=data.get("epsg"),
            origin=GeoPoint.from_dict(origin) if origin else None,
            bounding_box=BoundingBox.from_dict(bounding_box) if bounding_box else None,
            detection_method=data.get("detection_method", "auto"),
        )


@dataclass(frozen=True)
class PointCloudFileInfo:
    """Detailed header information for a point cloud file."""

    file_path: str
    file_name: str
    file_size: int
    format_version: str | None = None
    point_count: int | None = None
    geo_reference: GeoReference | None = None
    point_data_format: int | None = None
    has_color: bool = False
    has_intensity: bool = False
    has_classification: bool = False

    @property
    def file_size_display(self) -> str:
        """Human-readable file size."""
        size = self.file_size
        if size < 1024:
            return f"{size} B"
        if size < 1024 * 1024:
            return f"{size / 1024:.1f} KB"
        if size < 1024 * 1024 * 1024:
            return f"{size / (1024 * 1024):.1f} MB"
        return f"{size / (1024 * 1024 * 1024):.2f} GB"

    @property
    def point_count_display(self) -> str:
        """Compact point count (``12.3K``, ``4.56M``), or ``unknown``."""
        if self.point_count is None:
            return "unknown"
        if self.point_count < 1000:
            return str(self.point_count)
        if self.point_count < 1_000_000:
            return f"{self.point_count / 1000:.1f}K"
        return f"{self.point_count / 1_000_000:.2f}M"
