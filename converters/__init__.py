from .obj_parser import OBJParser, parse_obj
from .ply_parser import PLYParser, parse_ply, parse_header
from .gltf_parser import GLTFParser, parse_gltf
from .binary_reader import BinaryCursor, UnexpectedEndOfData

__all__ = [
    # OBJ Parser
    'OBJParser',
    'parse_obj',

    # PLY Parser
    'PLYParser',
    'parse_ply',
    'parse_header',
    'BinaryCursor',
    'UnexpectedEndOfData',

    # glTF Parser
    'GLTFParser',
    'parse_gltf',
]
