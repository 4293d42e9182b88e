import logging
from dataclasses import dataclass
from typing import List, Optional

from config import Config, get_config
from exporters.common import format_number
from pyscene.model import Scene
from pyscene.result import Err, Ok, Result
from utils.error_handler import make_error

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OBJVertexRef:
    """Global 1-based OBJ indices written for one canonical vertex"""
    pos: int
    tex: Optional[int] = None
    norm: Optional[int] = None

    def to_string(self) -> str:
        if self.tex is not None and self.norm is not None:
            return f"{self.pos}/{self.tex}/{self.norm}"
        if self.tex is not None:
            return f"{self.pos}/{self.tex}"
        if self.norm is not None:
            return f"{self.pos}//{self.norm}"
        return str(self.pos)


class OBJEncoder:
    """Scene to Wavefront OBJ text. Materials are referenced, no MTL is written."""

    def __init__(self, config: Optional[Config] = None):
        self.config = config or get_config()

    def encode(self, scene: Scene) -> Result:
        if not scene.meshes:
            return Err(make_error('EMPTY_SCENE', "Scene contains no meshes", path="scene.meshes"))

        lines: List[str] = []
        if self.config.export.obj_header_comment:
            lines.append("# Exported by meshconv")
            lines.append(f"# format: {scene.metadata.format} -> OBJ")

        pos_count = tex_count = norm_count = 0

        for mesh in scene.meshes:
            lines.append(f"o {mesh.name or 'mesh'}")

            refs: List[OBJVertexRef] = []
            for vertex in mesh.vertices:
                p = vertex.position
                lines.append(f"v {format_number(p.x)} {format_number(p.y)} {format_number(p.z)}")
                pos_count += 1
                tex = norm = None

                if vertex.tex_coord is not None:
                    t = vertex.tex_coord
                    lines.append(f"vt {format_number(t.x)} {format_number(t.y)}")
                    tex_count += 1
                    tex = tex_count

                if vertex.normal is not None:
                    n = vertex.normal
                    lines.append(f"vn {format_number(n.x)} {format_number(n.y)} {format_number(n.z)}")
                    norm_count += 1
                    norm = norm_count

                refs.append(OBJVertexRef(pos_count, tex, norm))

            current_material = mesh.material.name if mesh.material is not None else None
            if current_material:
                lines.append(f"usemtl {current_material}")

            for face_index, face in enumerate(mesh.faces):
                if face.material and face.material != current_material:
                    current_material = face.material
                    lines.append(f"usemtl {current_material}")

                parts = []
                for index in face.indices:
                    if index < 0 or index >= len(refs):
                        return Err(make_error(
                            'INDEX_OUT_OF_BOUNDS',
                            f"Face index {index} out of bounds for mesh {mesh.name}",
                            path=f"mesh.{mesh.name}.faces[{face_index}]",
                        ))
                    parts.append(refs[index].to_string())
                lines.append("f " + " ".join(parts))

        logger.debug(f"OBJ export: {pos_count} positions, {tex_count} texcoords, {norm_count} normals")
        return Ok("\n".join(lines) + "\n")


def encode_obj(scene: Scene, config: Optional[Config] = None) -> Result:
    """Encode every mesh of ``scene`` as OBJ text."""
    return OBJEncoder(config).encode(scene)
