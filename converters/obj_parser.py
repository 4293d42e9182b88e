import logging
import math
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from config import Config, get_config
from pyscene.model import (
    Face,
    Vec2,
    Vec3,
    Vertex,
    create_face,
    create_material,
    create_mesh,
    create_scene,
    create_vec2,
    create_vec3,
    create_vertex,
    summarize_meshes,
)
from pyscene.result import Err, Ok, Result, traverse
from pyscene.validators import validate_scene
from utils.error_handler import make_error

logger = logging.getLogger(__name__)

TOKEN_RE = re.compile(r"\S+")
LINE_SPLIT_RE = re.compile(r"\r?\n")

# (position, texcoord or None, normal or None), all 0-based
VertexKey = Tuple[int, Optional[int], Optional[int]]


@dataclass(frozen=True)
class FaceRef:
    """One ``pos/tex/norm`` reference, 1-based with relative indices resolved"""
    pos: int
    tex: Optional[int]
    norm: Optional[int]
    column: int


@dataclass(frozen=True)
class RawFace:
    refs: Tuple[FaceRef, ...]
    material: Optional[str]
    line_number: int


class OBJParser:
    """Wavefront OBJ decoder producing a validated Scene."""

    def __init__(self, config: Optional[Config] = None):
        self.config = config or get_config()

    def parse(self, content: str) -> Result:
        positions: List[Vec3] = []
        tex_coords: List[Vec2] = []
        normals: List[Vec3] = []
        faces: List[RawFace] = []
        material_names: List[str] = []
        current_material: Optional[str] = None
        mesh_name: Optional[str] = None

        lines = LINE_SPLIT_RE.split(content)
        if lines and not lines[-1]:
            lines.pop()

        for line_number, raw in enumerate(lines, start=1):
            line = raw.strip()
            if not line or line.startswith("#"):
                continue

            tokens = [(m.group(0), m.start() + 1) for m in TOKEN_RE.finditer(raw)]
            directive, args = tokens[0][0], tokens[1:]

            if directive == "v":
                result = self._parse_floats(args, 3, "Vertex position", line_number)
                if result.is_err():
                    return result
                positions.append(create_vec3(*result.value[:3]))
            elif directive == "vt":
                result = self._parse_floats(args, 2, "Texture coordinate", line_number)
                if result.is_err():
                    return result
                tex_coords.append(create_vec2(*result.value[:2]))
            elif directive == "vn":
                result = self._parse_floats(args, 3, "Normal", line_number)
                if result.is_err():
                    return result
                normals.append(create_vec3(*result.value[:3]))
            elif directive == "f":
                counts = (len(positions), len(tex_coords), len(normals))
                result = self._parse_face(args, line_number, counts)
                if result.is_err():
                    return result
                faces.append(RawFace(tuple(result.value), current_material, line_number))
            elif directive == "usemtl":
                current_material = args[0][0] if args else None
                if current_material and current_material not in material_names:
                    material_names.append(current_material)
            elif directive == "o":
                if mesh_name is None and args:
                    mesh_name = args[0][0]

        logger.debug(
            f"OBJ directives: {len(positions)} positions, {len(tex_coords)} texcoords, "
            f"{len(normals)} normals, {len(faces)} faces"
        )

        if not positions and not faces:
            return Err(make_error('NO_VERTICES', "No vertices found in OBJ file",
                                  line=max(len(lines), 1)))

        name = mesh_name or self.config.obj.mesh_name
        built = self._build_vertices(name, positions, tex_coords, normals, faces)
        if built.is_err():
            return built
        vertices, canonical_faces = built.value

        mesh = create_mesh(name, vertices, canonical_faces)
        materials = [create_material(m) for m in material_names]
        scene = create_scene([mesh], materials, summarize_meshes("OBJ", [mesh]))

        if self.config.obj.validate_scene:
            return validate_scene(scene)
        return Ok(scene)

    def _parse_floats(self, args, minimum: int, what: str, line_number: int) -> Result:
        if len(args) < minimum:
            return Err(make_error(
                'INVALID_NUMBER',
                f"{what} requires at least {minimum} components",
                line=line_number,
            ))

        values = []
        for token, column in args[:minimum]:
            try:
                value = float(token)
            except ValueError:
                return Err(make_error(
                    'INVALID_NUMBER', f"Invalid {what.lower()} value: {token}",
                    line=line_number, column=column,
                ))
            if not math.isfinite(value):
                return Err(make_error(
                    'INVALID_NUMBER', f"Non-finite {what.lower()} value: {token}",
                    line=line_number, column=column,
                ))
            values.append(value)
        return Ok(values)

    def _parse_face(self, args, line_number: int, counts: Tuple[int, int, int]) -> Result:
        if len(args) < 3:
            return Err(make_error(
                'INVALID_FACE_SIZE', "Face must have at least 3 vertices", line=line_number,
            ))
        return traverse(
            lambda arg: self._parse_face_ref(arg[0], arg[1], line_number, counts), args
        )

    def _parse_face_ref(self, ref: str, column: int, line_number: int,
                        counts: Tuple[int, int, int]) -> Result:
        parts = ref.split("/")
        if len(parts) > 3 or parts[0] == "":
            return Err(make_error(
                'INVALID_INDEX', f"Invalid face index: {ref}", line=line_number, column=column,
            ))

        indices: List[Optional[int]] = []
        for part, declared in zip(parts, counts):
            if part == "":
                indices.append(None)
                continue
            try:
                value = int(part)
            except ValueError:
                return Err(make_error(
                    'INVALID_INDEX', f"Invalid face index: {ref}", line=line_number, column=column,
                ))
            if value == 0:
                return Err(make_error(
                    'INDEX_OUT_OF_BOUNDS', f"Face index 0 is invalid, OBJ indices start at 1: {ref}",
                    line=line_number, column=column,
                ))
            # Negative indices count back from the latest declared element
            if value < 0:
                value = declared + value + 1
                if value < 1:
                    return Err(make_error(
                        'INDEX_OUT_OF_BOUNDS',
                        f"Relative face index {part} reaches before the first element",
                        line=line_number, column=column,
                    ))
            indices.append(value)

        indices.extend([None] * (3 - len(indices)))
        return Ok(FaceRef(indices[0], indices[1], indices[2], column))

    def _build_vertices(self, mesh_name: str, positions: List[Vec3], tex_coords: List[Vec2],
                        normals: List[Vec3], faces: List[RawFace]) -> Result:
        if not faces:
            return Ok(([create_vertex(p) for p in positions], []))

        vertex_map: Dict[VertexKey, int] = {}
        vertices: List[Vertex] = []
        canonical_faces: List[Face] = []

        for face_index, face in enumerate(faces):
            face_path = f"mesh.{mesh_name}.faces[{face_index}]"
            indices = []
            for ref in face.refs:
                key_result = self._resolve_key(ref, positions, tex_coords, normals,
                                               face.line_number, face_path)
                if key_result.is_err():
                    return key_result
                key = key_result.value

                index = vertex_map.get(key)
                if index is None:
                    pos, tex, norm = key
                    index = len(vertices)
                    vertex_map[key] = index
                    vertices.append(create_vertex(
                        positions[pos],
                        normals[norm] if norm is not None else None,
                        tex_coords[tex] if tex is not None else None,
                    ))
                indices.append(index)
            canonical_faces.append(create_face(indices, face.material))

        return Ok((vertices, canonical_faces))

    def _resolve_key(self, ref: FaceRef, positions, tex_coords, normals,
                     line_number: int, face_path: str) -> Result:
        key: List[Optional[int]] = []
        for value, pool, what in ((ref.pos, positions, "Position"),
                                  (ref.tex, tex_coords, "Texture coordinate"),
                                  (ref.norm, normals, "Normal")):
            if value is None:
                key.append(None)
                continue
            index = value - 1
            if index >= len(pool):
                return Err(make_error(
                    'INDEX_OUT_OF_BOUNDS',
                    f"{what} index {value} is out of bounds ({len(pool)} declared)",
                    line=line_number, column=ref.column, path=face_path,
                ))
            key.append(index)
        return Ok(tuple(key))


def parse_obj(content: str, config: Optional[Config] = None) -> Result:
    """Parse OBJ text into a validated Scene."""
    return OBJParser(config).parse(content)
