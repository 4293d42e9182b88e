from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Sequence

import numpy as np


@dataclass(frozen=True)
class Vec2:
    x: float
    y: float

    def as_tuple(self) -> tuple[float, float]:
        return (self.x, self.y)

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Vec2":
        return cls(float(data["x"]), float(data["y"]))


@dataclass(frozen=True)
class Vec3:
    x: float
    y: float
    z: float

    def as_tuple(self) -> tuple[float, float, float]:
        return (self.x, self.y, self.z)

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Vec3":
        return cls(float(data["x"]), float(data["y"]), float(data["z"]))


def _optional(cls, data: Dict[str, Any], key: str):
    value = data.get(key)
    return None if value is None else cls.from_dict(value)


@dataclass(frozen=True)
class Vertex:
    position: Vec3
    normal: Optional[Vec3] = None
    tex_coord: Optional[Vec2] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"position": self.position.to_dict()}
        if self.normal is not None:
            data["normal"] = self.normal.to_dict()
        if self.tex_coord is not None:
            data["texCoord"] = self.tex_coord.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Vertex":
        return cls(
            position=Vec3.from_dict(data["position"]),
            normal=_optional(Vec3, data, "normal"),
            tex_coord=_optional(Vec2, data, "texCoord"),
        )


@dataclass(frozen=True)
class Face:
    indices: tuple[int, ...]
    material: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"indices": list(self.indices)}
        if self.material is not None:
            data["material"] = self.material
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Face":
        return create_face(data["indices"], data.get("material"))


@dataclass(frozen=True)
class Material:
    name: str
    ambient: Optional[Vec3] = None
    diffuse: Optional[Vec3] = None
    specular: Optional[Vec3] = None
    shininess: Optional[float] = None
    texture_map: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name}
        for key, value in (("ambient", self.ambient), ("diffuse", self.diffuse),
                           ("specular", self.specular)):
            if value is not None:
                data[key] = value.to_dict()
        if self.shininess is not None:
            data["shininess"] = self.shininess
        if self.texture_map is not None:
            data["textureMap"] = self.texture_map
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Material":
        return cls(
            name=data["name"],
            ambient=_optional(Vec3, data, "ambient"),
            diffuse=_optional(Vec3, data, "diffuse"),
            specular=_optional(Vec3, data, "specular"),
            shininess=data.get("shininess"),
            texture_map=data.get("textureMap"),
        )


@dataclass(frozen=True)
class Mesh:
    name: str
    vertices: tuple[Vertex, ...] = ()
    faces: tuple[Face, ...] = ()
    material: Optional[Material] = None

    def vertex_count(self) -> int:
        return len(self.vertices)

    def face_count(self) -> int:
        return len(self.faces)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "vertices": [v.to_dict() for v in self.vertices],
            "faces": [f.to_dict() for f in self.faces],
        }
        if self.material is not None:
            data["material"] = self.material.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Mesh":
        return create_mesh(
            data["name"],
            [Vertex.from_dict(v) for v in data.get("vertices", [])],
            [Face.from_dict(f) for f in data.get("faces", [])],
            _optional(Material, data, "material"),
        )


@dataclass(frozen=True)
class BoundingBox:
    min: Vec3
    max: Vec3

    def to_dict(self) -> Dict[str, Any]:
        return {"min": self.min.to_dict(), "max": self.max.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BoundingBox":
        return cls(Vec3.from_dict(data["min"]), Vec3.from_dict(data["max"]))


@dataclass(frozen=True)
class SceneMetadata:
    format: str
    vertex_count: int
    face_count: int
    bounding_box: Optional[BoundingBox] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "format": self.format,
            "vertexCount": self.vertex_count,
            "faceCount": self.face_count,
        }
        if self.bounding_box is not None:
            data["boundingBox"] = self.bounding_box.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SceneMetadata":
        return cls(
            format=data["format"],
            vertex_count=int(data["vertexCount"]),
            face_count=int(data["faceCount"]),
            bounding_box=_optional(BoundingBox, data, "boundingBox"),
        )


@dataclass(frozen=True)
class Scene:
    meshes: tuple[Mesh, ...]
    materials: tuple[Material, ...]
    metadata: SceneMetadata

    def to_dict(self) -> Dict[str, Any]:
        return {
            "meshes": [m.to_dict() for m in self.meshes],
            "materials": [m.to_dict() for m in self.materials],
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Scene":
        return create_scene(
            [Mesh.from_dict(m) for m in data.get("meshes", [])],
            [Material.from_dict(m) for m in data.get("materials", [])],
            SceneMetadata.from_dict(data["metadata"]),
        )


def create_vec2(x: float, y: float) -> Vec2:
    return Vec2(float(x), float(y))


def create_vec3(x: float, y: float, z: float) -> Vec3:
    return Vec3(float(x), float(y), float(z))


def create_vertex(position: Vec3, normal: Optional[Vec3] = None,
                  tex_coord: Optional[Vec2] = None) -> Vertex:
    return Vertex(position=position, normal=normal, tex_coord=tex_coord)


def create_face(indices: Iterable[int], material: Optional[str] = None) -> Face:
    return Face(indices=tuple(indices), material=material)


def create_material(name: str, ambient: Optional[Vec3] = None,
                    diffuse: Optional[Vec3] = None, specular: Optional[Vec3] = None,
                    shininess: Optional[float] = None,
                    texture_map: Optional[str] = None) -> Material:
    return Material(name=name, ambient=ambient, diffuse=diffuse, specular=specular,
                    shininess=shininess, texture_map=texture_map)


def create_mesh(name: str, vertices: Iterable[Vertex], faces: Iterable[Face],
                material: Optional[Material] = None) -> Mesh:
    return Mesh(name=name, vertices=tuple(vertices), faces=tuple(faces), material=material)


def create_scene(meshes: Iterable[Mesh], materials: Iterable[Material],
                 metadata: SceneMetadata) -> Scene:
    return Scene(meshes=tuple(meshes), materials=tuple(materials), metadata=metadata)


def compute_bounding_box(vertices: Sequence[Vertex]) -> Optional[BoundingBox]:
    """Axis-aligned bounds of the vertex positions, or None when empty."""
    if not vertices:
        return None

    positions = np.array([v.position.as_tuple() for v in vertices], dtype=np.float64)
    lo = positions.min(axis=0)
    hi = positions.max(axis=0)

    return BoundingBox(
        min=create_vec3(*lo.tolist()),
        max=create_vec3(*hi.tolist()),
    )


def summarize_meshes(fmt: str, meshes: Sequence[Mesh]) -> SceneMetadata:
    """Metadata with totals and bounding box derived from ``meshes``."""
    all_vertices = [v for mesh in meshes for v in mesh.vertices]
    return SceneMetadata(
        format=fmt,
        vertex_count=len(all_vertices),
        face_count=sum(len(mesh.faces) for mesh in meshes),
        bounding_box=compute_bounding_box(all_vertices),
    )
