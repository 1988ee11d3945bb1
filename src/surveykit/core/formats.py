"""Importable file formats."""

from enum import Enum
from pathlib import Path


class ImportCategory(str, Enum):
    """Kind of data a format carries."""

    POINT_CLOUD = "point_cloud"
    MESH = "mesh"

    @property
    def display_name(self) -> str:
        return {"point_cloud": "Point cloud", "mesh": "Mesh"}[self.value]


class ImportFormat(str, Enum):
    """Formats accepted by the import engine, keyed by extension."""

    LAS = "las"
    LAZ = "laz"
    PLY = "ply"
    E57 = "e57"
    OBJ = "obj"
    FBX = "fbx"
    GLTF = "gltf"
    GLB = "glb"

    @property
    def extension(self) -> str:
        """Extension including the dot."""
        return f".{self.value}"

    @property
    def display_name(self) -> str:
        return _FORMAT_INFO[self][0]

    @property
    def category(self) -> ImportCategory:
        return _FORMAT_INFO[self][1]

    @property
    def description(self) -> str:
        return _FORMAT_INFO[self][2]

    @property
    def is_point_cloud(self) -> bool:
        return self.category is ImportCategory.POINT_CLOUD

    @property
    def is_mesh(self) -> bool:
        return self.category is ImportCategory.MESH

    @classmethod
    def from_extension(cls, extension: str) -> "ImportFormat | None":
        """Resolve a format from an extension (``.las``, ``LAS`` or ``las``)."""
        key = extension.lower().lstrip(".")
        try:
            return cls(key)
        except ValueError:
            return None

    @classmethod
    def from_path(cls, file_path: Path | str) -> "ImportFormat | None":
        return cls.from_extension(Path(file_path).suffix)


_FORMAT_INFO: dict[ImportFormat, tuple[str, ImportCategory, str]] = {
    ImportFormat.LAS: ("LAS", ImportCategory.POINT_CLOUD, "ASPRS LAS point cloud"),
    ImportFormat.LAZ: ("LAZ", ImportCategory.POINT_CLOUD, "ASPRS LAZ compressed point cloud"),
    ImportFormat.PLY: ("PLY", ImportCategory.POINT_CLOUD, "PLY point cloud"),
    ImportFormat.E57: ("E57", ImportCategory.POINT_CLOUD, "ASTM E57 point cloud"),
    ImportFormat.OBJ: ("OBJ", ImportCategory.MESH, "Wavefront OBJ mesh"),
    ImportFormat.FBX: ("FBX", ImportCategory.MESH, "Autodesk FBX mesh"),
    ImportFormat.GLTF: ("glTF", ImportCategory.MESH, "glTF 2.0"),
    ImportFormat.GLB: ("GLB", ImportCategory.MESH, "glTF binary mesh"),
}


def all_extensions() -> list[str]:
    return [fmt.extension for fmt in ImportFormat]


def point_cloud_extensions() -> list[str]:
    return [fmt.extension for fmt in ImportFormat if fmt.is_point_cloud]


def mesh_extensions() -> list[str]:
    return [fmt.extension for fmt in ImportFormat if fmt.is_mesh]
