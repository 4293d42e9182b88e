from exporters.ply_encoder import PLYEncoder, encode_ply
from exporters.obj_encoder import OBJEncoder, encode_obj

__all__ = [
    "PLYEncoder",
    "encode_ply",
    "OBJEncoder",
    "encode_obj",
]
