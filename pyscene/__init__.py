from pyscene.result import Ok, Err, Result, UnwrapError, collect_all, traverse
from pyscene.model import (
    BoundingBox,
    Face,
    Material,
    Mesh,
    Scene,
    SceneMetadata,
    Vec2,
    Vec3,
    Vertex,
    compute_bounding_box,
    create_face,
    create_material,
    create_mesh,
    create_scene,
    create_vec2,
    create_vec3,
    create_vertex,
    summarize_meshes,
)
from pyscene.validators import validate_scene

IO_FUNCTIONS = ("detect_format", "dumps", "load", "loads", "save")

__version__ = "0.1.0"
__all__ = [
    "Ok",
    "Err",
    "Result",
    "UnwrapError",
    "collect_all",
    "traverse",
    "BoundingBox",
    "Face",
    "Material",
    "Mesh",
    "Scene",
    "SceneMetadata",
    "Vec2",
    "Vec3",
    "Vertex",
    "compute_bounding_box",
    "create_face",
    "create_material",
    "create_mesh",
    "create_scene",
    "create_vec2",
    "create_vec3",
    "create_vertex",
    "summarize_meshes",
    "validate_scene",
    "detect_format",
    "dumps",
    "load",
    "loads",
    "save",
]


def __getattr__(name):
    # pyscene.io pulls in the parsers, which import pyscene.model
    if name in IO_FUNCTIONS:
        from pyscene import io
        return getattr(io, name)
    raise AttributeError(name)
