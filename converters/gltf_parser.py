import base64
import binascii
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from config import Config, get_config
from pyscene.model import (
    Face,
    Material,
    Mesh,
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
from pyscene.result import Err, Ok, Result, collect_all
from utils.error_handler import make_error

logger = logging.getLogger(__name__)

FLOAT = 5126
UNSIGNED_SHORT = 5123
UNSIGNED_INT = 5125

# componentType -> (name, byte width, numpy dtype or None when unreadable)
COMPONENT_TYPES: Dict[int, Tuple[str, int, Optional[str]]] = {
    5120: ("BYTE", 1, None),
    5121: ("UNSIGNED_BYTE", 1, None),
    5122: ("SHORT", 2, None),
    UNSIGNED_SHORT: ("UNSIGNED_SHORT", 2, "<u2"),
    UNSIGNED_INT: ("UNSIGNED_INT", 4, "<u4"),
    FLOAT: ("FLOAT", 4, "<f4"),
}

COMPONENTS_PER_ELEMENT: Dict[str, int] = {
    "SCALAR": 1,
    "VEC2": 2,
    "VEC3": 3,
    "VEC4": 4,
    "MAT2": 4,
    "MAT3": 9,
    "MAT4": 16,
}

# Divisors mapping normalized integer accessors onto [0, 1]
NORMALIZE_DIVISORS = {
    UNSIGNED_SHORT: 65535.0,
    UNSIGNED_INT: 4294967295.0,
}

DATA_URI_PREFIX = "data:"
BASE64_MARKER = ";base64,"

SHININESS_SCALE = 128.0


def components_per_element(type_name: str) -> Optional[int]:
    return COMPONENTS_PER_ELEMENT.get(type_name)


def _is_index(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _entry(items: List[Any], index: Any, what: str, path: str) -> Result:
    if not _is_index(index) or index >= len(items):
        return Err(make_error('INVALID_REFERENCE', f"{what} {index!r} does not exist", path=path))
    return Ok(items[index])


def _list_field(doc: Dict[str, Any], key: str) -> Result:
    value = doc.get(key, [])
    if not isinstance(value, list):
        return Err(make_error('INVALID_TYPE', f"'{key}' must be an array", path=key))
    return Ok(value)


def _vec3_field(values: Any, path: str) -> Result:
    if values is None:
        return Ok(None)
    if (not isinstance(values, list) or len(values) < 3
            or not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in values[:3])):
        return Err(make_error('INVALID_TYPE', "Expected an array of at least 3 numbers", path=path))
    return Ok(create_vec3(*values[:3]))


def decode_data_uri(uri: Any, index: int) -> Result:
    """Decode a base64 ``data:`` buffer URI into bytes."""
    path = f"buffers[{index}].uri"
    if not isinstance(uri, str) or not uri.startswith(DATA_URI_PREFIX):
        return Err(make_error(
            'EXTERNAL_BUFFER', f"External buffer URIs are not supported (buffer {index})", path=path,
        ))

    marker = uri.find(BASE64_MARKER)
    if marker < 0:
        return Err(make_error(
            'INVALID_DATA_URI', f"Buffer {index} data URI is not base64 encoded", path=path,
        ))

    try:
        return Ok(base64.b64decode(uri[marker + len(BASE64_MARKER):], validate=True))
    except (binascii.Error, ValueError) as e:
        return Err(make_error('INVALID_DATA_URI', f"Buffer {index} has invalid base64 data: {e}",
                              path=path))


class GLTFParser:
    """glTF 2.0 JSON decoder for documents with embedded buffers."""

    def __init__(self, config: Optional[Config] = None):
        self.config = config or get_config()

    def parse(self, content) -> Result:
        try:
            doc = json.loads(content)
        except json.JSONDecodeError as e:
            return Err(make_error('INVALID_JSON', f"Invalid JSON: {e.msg}", line=e.lineno, column=e.colno))
        except ValueError as e:
            return Err(make_error('DECODE_ERROR', f"glTF content is not valid text: {e}"))

        if not isinstance(doc, dict):
            return Err(make_error('INVALID_TYPE', "glTF root must be a JSON object"))

        asset = doc.get("asset")
        if not isinstance(asset, dict) or asset.get("version") in (None, ""):
            return Err(make_error('MISSING_ATTRIBUTE', "Missing asset.version", path="asset.version"))
        logger.debug(f"glTF asset version {asset['version']}")

        buffers = self._decode_buffers(doc)
        if buffers.is_err():
            return buffers

        materials = self._read_materials(doc)
        if materials.is_err():
            return materials

        meshes = self._read_meshes(doc, buffers.value, materials.value)
        if meshes.is_err():
            return meshes

        return Ok(create_scene(meshes.value, materials.value,
                               summarize_meshes("GLTF", meshes.value)))

    def _decode_buffers(self, doc: Dict[str, Any]) -> Result:
        listed = _list_field(doc, "buffers")
        if listed.is_err():
            return listed

        buffers: List[bytes] = []
        for i, buffer in enumerate(listed.value):
            if not isinstance(buffer, dict) or "uri" not in buffer:
                return Err(make_error(
                    'MISSING_ATTRIBUTE', f"Buffer {i} has no uri (binary chunks are not supported)",
                    path=f"buffers[{i}].uri",
                ))

            decoded = decode_data_uri(buffer["uri"], i)
            if decoded.is_err():
                return decoded

            byte_length = buffer.get("byteLength")
            if _is_index(byte_length) and len(decoded.value) < byte_length:
                return Err(make_error(
                    'UNEXPECTED_EOF',
                    f"Buffer {i} decodes to {len(decoded.value)} bytes, byteLength is {byte_length}",
                    path=f"buffers[{i}]",
                ))
            buffers.append(decoded.value)

        logger.debug(f"Decoded {len(buffers)} glTF buffers")
        return Ok(buffers)

    def read_accessor(self, doc: Dict[str, Any], buffers: List[bytes], index: Any) -> Result:
        """Materialize accessor ``index`` as a (count, components) numpy array."""
        path = f"accessors[{index}]"
        accessors = _list_field(doc, "accessors")
        if accessors.is_err():
            return accessors
        accessor = _entry(accessors.value, index, "Accessor", path)
        if accessor.is_err():
            return accessor
        accessor = accessor.value
        if not isinstance(accessor, dict):
            return Err(make_error('INVALID_TYPE', "Accessor must be an object", path=path))

        component_type = accessor.get("componentType")
        if not isinstance(component_type, int) or component_type not in COMPONENT_TYPES:
            return Err(make_error('INVALID_TYPE', f"Unknown componentType {component_type!r}",
                                  path=f"{path}.componentType"))
        type_label, width, dtype = COMPONENT_TYPES[component_type]
        if dtype is None:
            return Err(make_error(
                'UNSUPPORTED_COMPONENT_TYPE',
                f"Unsupported componentType {type_label} ({component_type})",
                path=f"{path}.componentType",
            ))

        type_name = accessor.get("type")
        components = components_per_element(type_name) if isinstance(type_name, str) else None
        if components is None:
            return Err(make_error('INVALID_TYPE', f"Unknown accessor type {accessor.get('type')!r}",
                                  path=f"{path}.type"))

        count = accessor.get("count")
        if not _is_index(count):
            return Err(make_error('INVALID_TYPE', "Accessor count must be a non-negative integer",
                                  path=f"{path}.count"))

        if "bufferView" not in accessor:
            return Err(make_error('MISSING_ATTRIBUTE', "Accessor has no bufferView",
                                  path=f"{path}.bufferView"))

        views = _list_field(doc, "bufferViews")
        if views.is_err():
            return views
        view = _entry(views.value, accessor["bufferView"], "BufferView", f"{path}.bufferView")
        if view.is_err():
            return view
        view = view.value
        if not isinstance(view, dict):
            return Err(make_error('INVALID_TYPE', "BufferView must be an object",
                                  path=f"bufferViews[{accessor['bufferView']}]"))

        buffer = _entry(buffers, view.get("buffer"), "Buffer",
                        f"bufferViews[{accessor['bufferView']}].buffer")
        if buffer.is_err():
            return buffer
        buffer = buffer.value

        view_path = f"bufferViews[{accessor['bufferView']}]"
        layout = {
            f"{view_path}.byteOffset": view.get("byteOffset", 0),
            f"{view_path}.byteLength": view.get("byteLength", len(buffer)),
            f"{view_path}.byteStride": view.get("byteStride", 0),
            f"{path}.byteOffset": accessor.get("byteOffset", 0),
        }
        for field_path, value in layout.items():
            if not _is_index(value):
                return Err(make_error('INVALID_TYPE', "Byte offsets and lengths must be non-negative integers",
                                      path=field_path))

        view_offset = view.get("byteOffset", 0)
        view_end = view_offset + view.get("byteLength", len(buffer) - view_offset)
        element_size = width * components
        stride = view.get("byteStride") or element_size
        start = view_offset + accessor.get("byteOffset", 0)

        if count == 0:
            return Ok(np.zeros((0, components), dtype=np.dtype(dtype)))

        end = start + stride * (count - 1) + element_size
        if end > view_end or view_end > len(buffer):
            return Err(make_error(
                'UNEXPECTED_EOF',
                f"Accessor {index} needs bytes {start}-{end} but its buffer view ends at "
                f"{min(view_end, len(buffer))}",
                path=path,
            ))

        array = np.ndarray(
            shape=(count, components),
            dtype=np.dtype(dtype),
            buffer=buffer,
            offset=start,
            strides=(stride, width),
        )

        if accessor.get("normalized") and component_type in NORMALIZE_DIVISORS:
            return Ok(array.astype(np.float64) / NORMALIZE_DIVISORS[component_type])
        return Ok(np.array(array))

    def _read_attribute(self, doc, buffers, attributes: Dict[str, Any], name: str,
                        components: int, path: str) -> Result:
        if name not in attributes:
            return Ok(None)
        result = self.read_accessor(doc, buffers, attributes[name])
        if result.is_err():
            return result
        if result.value.shape[1] != components:
            return Err(make_error(
                'INVALID_TYPE', f"{name} accessor must have {components} components",
                path=f"{path}.attributes.{name}",
            ))
        return result

    def _read_primitive(self, doc, buffers, primitive: Dict[str, Any], path: str,
                        base: int, materials: List[Material]) -> Result:
        attributes = primitive.get("attributes") if isinstance(primitive, dict) else None
        if not isinstance(attributes, dict) or "POSITION" not in attributes:
            return Err(make_error('MISSING_ATTRIBUTE', "Primitive has no POSITION attribute",
                                  path=f"{path}.attributes.POSITION"))

        positions = self._read_attribute(doc, buffers, attributes, "POSITION", 3, path)
        if positions.is_err():
            return positions
        positions = positions.value.tolist()

        normals = self._read_attribute(doc, buffers, attributes, "NORMAL", 3, path)
        if normals.is_err():
            return normals
        tex_coords = self._read_attribute(doc, buffers, attributes, "TEXCOORD_0", 2, path)
        if tex_coords.is_err():
            return tex_coords

        for name, values in (("NORMAL", normals.value), ("TEXCOORD_0", tex_coords.value)):
            if values is not None and len(values) != len(positions):
                return Err(make_error(
                    'INVALID_TYPE',
                    f"{name} has {len(values)} elements but POSITION has {len(positions)}",
                    path=f"{path}.attributes.{name}",
                ))

        normal_list = normals.value.tolist() if normals.value is not None else None
        tex_list = tex_coords.value.tolist() if tex_coords.value is not None else None

        vertices: List[Vertex] = [
            create_vertex(
                create_vec3(*p),
                create_vec3(*normal_list[i]) if normal_list is not None else None,
                create_vec2(*tex_list[i]) if tex_list is not None else None,
            )
            for i, p in enumerate(positions)
        ]

        material_name = None
        material_ref = None
        if "material" in primitive:
            material = _entry(materials, primitive["material"], "Material", f"{path}.material")
            if material.is_err():
                return material
            material_ref = material.value
            material_name = material_ref.name

        if "indices" in primitive:
            indices = self.read_accessor(doc, buffers, primitive["indices"])
            if indices.is_err():
                return indices
            if indices.value.dtype.kind != "u":
                return Err(make_error('INVALID_TYPE', "Index accessor must use an unsigned integer componentType",
                                      path=f"{path}.indices"))
            flat = indices.value.astype(np.int64).ravel().tolist()
            if len(flat) % 3 != 0:
                return Err(make_error(
                    'INVALID_TYPE', f"Index count {len(flat)} is not a multiple of 3",
                    path=f"{path}.indices",
                ))
        else:
            flat = list(range(len(vertices) - len(vertices) % 3))

        faces: List[Face] = [
            create_face((base + flat[i], base + flat[i + 1], base + flat[i + 2]), material_name)
            for i in range(0, len(flat), 3)
        ]
        return Ok((vertices, faces, material_ref))

    def _read_meshes(self, doc: Dict[str, Any], buffers: List[bytes],
                     materials: List[Material]) -> Result:
        listed = _list_field(doc, "meshes")
        if listed.is_err():
            return listed

        meshes: List[Mesh] = []
        for mesh_index, mesh in enumerate(listed.value):
            path = f"meshes[{mesh_index}]"
            if not isinstance(mesh, dict) or not isinstance(mesh.get("primitives", []), list):
                return Err(make_error('INVALID_TYPE', "Mesh must have a primitives array", path=path))

            vertices: List[Vertex] = []
            faces: List[Face] = []
            mesh_material: Optional[Material] = None

            for prim_index, primitive in enumerate(mesh.get("primitives", [])):
                result = self._read_primitive(doc, buffers, primitive,
                                              f"{path}.primitives[{prim_index}]",
                                              len(vertices), materials)
                if result.is_err():
                    return result
                prim_vertices, prim_faces, material = result.value
                vertices.extend(prim_vertices)
                faces.extend(prim_faces)
                if mesh_material is None:
                    mesh_material = material

            name = mesh.get("name") or f"{self.config.gltf.mesh_name_prefix}_{mesh_index}"
            meshes.append(create_mesh(name, vertices, faces, mesh_material))
            logger.debug(f"glTF mesh {name}: {len(vertices)} vertices, {len(faces)} faces")

        return Ok(meshes)

    def _read_materials(self, doc: Dict[str, Any]) -> Result:
        listed = _list_field(doc, "materials")
        if listed.is_err():
            return listed
        return collect_all(
            self._read_material(doc, i, m) for i, m in enumerate(listed.value)
        )

    def _read_material(self, doc: Dict[str, Any], index: int, material: Any) -> Result:
        path = f"materials[{index}]"
        if not isinstance(material, dict):
            return Err(make_error('INVALID_TYPE', "Material must be an object", path=path))

        name = material.get("name") or f"{self.config.gltf.material_name_prefix}_{index}"
        pbr = material.get("pbrMetallicRoughness") or {}
        if not isinstance(pbr, dict):
            return Err(make_error('INVALID_TYPE', "pbrMetallicRoughness must be an object",
                                  path=f"{path}.pbrMetallicRoughness"))

        diffuse = _vec3_field(pbr.get("baseColorFactor"), f"{path}.pbrMetallicRoughness.baseColorFactor")
        if diffuse.is_err():
            return diffuse
        ambient = _vec3_field(material.get("emissiveFactor"), f"{path}.emissiveFactor")
        if ambient.is_err():
            return ambient

        shininess = None
        roughness = pbr.get("roughnessFactor")
        if roughness is not None:
            if isinstance(roughness, bool) or not isinstance(roughness, (int, float)):
                return Err(make_error('INVALID_TYPE', "roughnessFactor must be a number",
                                      path=f"{path}.pbrMetallicRoughness.roughnessFactor"))
            shininess = (1.0 - roughness) * SHININESS_SCALE

        texture_map = self._texture_source(doc, pbr.get("baseColorTexture"))
        if texture_map.is_err():
            return texture_map

        return Ok(create_material(
            name,
            ambient=ambient.value,
            diffuse=diffuse.value,
            shininess=shininess,
            texture_map=texture_map.value,
        ))

    def _texture_source(self, doc: Dict[str, Any], texture_info: Any) -> Result:
        """Image uri (or name) behind a textureInfo; Ok(None) when it cannot be resolved."""
        if not isinstance(texture_info, dict):
            return Ok(None)
        textures = _list_field(doc, "textures")
        if textures.is_err():
            return textures
        images = _list_field(doc, "images")
        if images.is_err():
            return images
        textures, images = textures.value, images.value

        texture_index = texture_info.get("index")
        if not _is_index(texture_index) or texture_index >= len(textures):
            return Ok(None)
        texture = textures[texture_index]
        source = texture.get("source") if isinstance(texture, dict) else None
        if not _is_index(source) or source >= len(images):
            return Ok(None)

        image = images[source]
        if not isinstance(image, dict):
            return Ok(None)
        uri = image.get("uri")
        if isinstance(uri, str) and not uri.startswith(DATA_URI_PREFIX):
            return Ok(uri)
        return Ok(image.get("name") or f"image_{source}")


def parse_gltf(content, config: Optional[Config] = None) -> Result:
    """Parse glTF JSON with embedded buffers into a Scene."""
    return GLTFParser(config).parse(content)
