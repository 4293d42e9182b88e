import logging
from typing import List

from exporters.common import format_number
from pyscene.model import Scene
from pyscene.result import Err, Ok, Result
from utils.error_handler import make_error

logger = logging.getLogger(__name__)

VERTEX_PROPERTIES = ("x", "y", "z", "nx", "ny", "nz")


class PLYEncoder:
    """Scene to ASCII PLY. Only the first mesh is written."""

    def encode(self, scene: Scene) -> Result:
        if not scene.meshes:
            return Err(make_error('EMPTY_SCENE', "Scene contains no meshes", path="scene.meshes"))

        mesh = scene.meshes[0]
        if not mesh.vertices:
            return Err(make_error('EMPTY_MESH', "Mesh contains no vertices", path=f"mesh.{mesh.name}"))
        if not mesh.faces:
            return Err(make_error('NO_FACES', "Mesh contains no faces", path=f"mesh.{mesh.name}"))

        if len(scene.meshes) > 1:
            logger.warning(f"PLY export writes only the first of {len(scene.meshes)} meshes")

        lines: List[str] = [
            "ply",
            "format ascii 1.0",
            f"element vertex {len(mesh.vertices)}",
        ]
        lines.extend(f"property float {name}" for name in VERTEX_PROPERTIES)
        lines.extend([
            f"element face {len(mesh.faces)}",
            "property list uchar int vertex_indices",
            "end_header",
        ])

        for vertex in mesh.vertices:
            normal = vertex.normal.as_tuple() if vertex.normal is not None else (0, 0, 0)
            values = vertex.position.as_tuple() + normal
            lines.append(" ".join(format_number(v) for v in values))

        for face in mesh.faces:
            lines.append(" ".join(str(i) for i in (len(face.indices),) + face.indices))

        return Ok("\n".join(lines) + "\n")


def encode_ply(scene: Scene) -> Result:
    """Encode the first mesh of ``scene`` as ASCII PLY text."""
    return PLYEncoder().encode(scene)
