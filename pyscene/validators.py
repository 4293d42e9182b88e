"""
Structural checks applied to a Scene before it is handed to a consumer.

Every validator returns ``Ok(value)`` or the first violation as
``Err(SceneError)`` with a path such as ``mesh.default.faces[3]``.
"""

import math
from typing import Sequence

from pyscene.model import Mesh, Scene, Vec2, Vec3, Vertex
from pyscene.result import Err, Ok, Result
from utils.error_handler import make_error


def validate_number(value) -> Result:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return Err(make_error('INVALID_NUMBER', f"Invalid number: {value}"))
    return Ok(value)


def _validate_components(vec, names: Sequence[str]) -> Result:
    for name in names:
        result = validate_number(getattr(vec, name))
        if result.is_err():
            return result.map_error(lambda e, n=name: e.with_path(n))
    return Ok(vec)


def validate_vec2(vec: Vec2) -> Result:
    return _validate_components(vec, ("x", "y"))


def validate_vec3(vec: Vec3) -> Result:
    return _validate_components(vec, ("x", "y", "z"))


def validate_vertex(vertex: Vertex) -> Result:
    result = validate_vec3(vertex.position)
    if result.is_err():
        return result.map_error(lambda e: e.with_path("position"))

    if vertex.normal is not None:
        result = validate_vec3(vertex.normal)
        if result.is_err():
            return result.map_error(lambda e: e.with_path("normal"))

    return Ok(vertex)


def validate_face_indices(indices: Sequence[int], vertex_count: int) -> Result:
    if len(indices) < 3:
        return Err(make_error('INVALID_FACE_SIZE',
                              f"Face must have at least 3 indices, got {len(indices)}"))

    for index in indices:
        if isinstance(index, bool) or not isinstance(index, int):
            return Err(make_error('INVALID_INDEX', f"Face index {index!r} is not an integer"))
        if index < 0 or index >= vertex_count:
            return Err(make_error('INDEX_OUT_OF_BOUNDS',
                                  f"Face index {index} is out of bounds (0-{vertex_count - 1})"))

    return Ok(indices)


def validate_mesh(mesh: Mesh) -> Result:
    prefix = f"mesh.{mesh.name}"

    if not mesh.vertices:
        return Err(make_error('EMPTY_MESH', "Mesh must have at least one vertex", path=prefix))

    for i, vertex in enumerate(mesh.vertices):
        result = validate_vertex(vertex)
        if result.is_err():
            return result.map_error(lambda e, i=i: e.with_path(f"{prefix}.vertices[{i}]"))

    vertex_count = len(mesh.vertices)
    for i, face in enumerate(mesh.faces):
        result = validate_face_indices(face.indices, vertex_count)
        if result.is_err():
            return result.map_error(lambda e, i=i: e.with_path(f"{prefix}.faces[{i}]"))

    return Ok(mesh)


def validate_scene(scene: Scene) -> Result:
    """Check every scene invariant, failing on the first violation."""
    if not scene.meshes:
        return Err(make_error('EMPTY_SCENE', "Scene must have at least one mesh", path="scene.meshes"))

    for mesh in scene.meshes:
        result = validate_mesh(mesh)
        if result.is_err():
            return result

    total_vertices = sum(len(mesh.vertices) for mesh in scene.meshes)
    total_faces = sum(len(mesh.faces) for mesh in scene.meshes)

    if scene.metadata.vertex_count != total_vertices:
        return Err(make_error(
            'METADATA_MISMATCH',
            f"Metadata vertex count ({scene.metadata.vertex_count}) doesn't match actual count ({total_vertices})",
            path="scene.metadata.vertexCount",
        ))

    if scene.metadata.face_count != total_faces:
        return Err(make_error(
            'METADATA_MISMATCH',
            f"Metadata face count ({scene.metadata.face_count}) doesn't match actual count ({total_faces})",
            path="scene.metadata.faceCount",
        ))

    return Ok(scene)
