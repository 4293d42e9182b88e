import base64
import json
import unittest

import numpy as np

from config import Config
from converters.gltf_parser import decode_data_uri, parse_gltf

POSITIONS = np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0]], dtype="<f4")
NORMALS = np.array([[0, 0, 1]] * 3, dtype="<f4")
TEXCOORDS = np.array([[0, 0], [1, 0], [0, 1]], dtype="<f4")
INDICES = np.array([0, 1, 2], dtype="<u2")


def data_uri(payload: bytes) -> str:
    return "data:application/octet-stream;base64," + base64.b64encode(payload).decode("ascii")


def build_document():
    """One indexed triangle with normals, texcoords and a red material."""
    chunks = [POSITIONS.tobytes(), NORMALS.tobytes(), TEXCOORDS.tobytes(), INDICES.tobytes()]
    views = []
    offset = 0
    for chunk in chunks:
        views.append({"buffer": 0, "byteOffset": offset, "byteLength": len(chunk)})
        offset += len(chunk)
    payload = b"".join(chunks)

    return {
        "asset": {"version": "2.0"},
        "buffers": [{"byteLength": len(payload), "uri": data_uri(payload)}],
        "bufferViews": views,
        "accessors": [
            {"bufferView": 0, "componentType": 5126, "count": 3, "type": "VEC3"},
            {"bufferView": 1, "componentType": 5126, "count": 3, "type": "VEC3"},
            {"bufferView": 2, "componentType": 5126, "count": 3, "type": "VEC2"},
            {"bufferView": 3, "componentType": 5123, "count": 3, "type": "SCALAR"},
        ],
        "materials": [{
            "name": "red",
            "pbrMetallicRoughness": {"baseColorFactor": [1, 0, 0, 1], "roughnessFactor": 0.5},
            "emissiveFactor": [0, 0, 0],
        }],
        "meshes": [{
            "name": "tri",
            "primitives": [{
                "attributes": {"POSITION": 0, "NORMAL": 1, "TEXCOORD_0": 2},
                "indices": 3,
                "material": 0,
            }],
        }],
    }


class TestGLTFParser(unittest.TestCase):
    def setUp(self):
        self.config = Config()

    def parse(self, doc):
        return parse_gltf(json.dumps(doc), self.config)

    def test_parse_triangle(self):
        scene = self.parse(build_document()).unwrap()
        mesh = scene.meshes[0]

        self.assertEqual(mesh.name, "tri")
        self.assertEqual(len(mesh.vertices), 3)
        self.assertEqual(mesh.faces[0].indices, (0, 1, 2))
        self.assertEqual(mesh.faces[0].material, "red")
        self.assertEqual(mesh.vertices[1].position.as_tuple(), (1.0, 0.0, 0.0))
        self.assertEqual(mesh.vertices[1].normal.as_tuple(), (0.0, 0.0, 1.0))
        self.assertEqual(mesh.vertices[2].tex_coord.as_tuple(), (0.0, 1.0))
        self.assertEqual(scene.metadata.format, "GLTF")
        self.assertEqual(scene.metadata.face_count, 1)

    def test_material_mapping(self):
        scene = self.parse(build_document()).unwrap()
        material = scene.materials[0]

        self.assertEqual(material.diffuse.as_tuple(), (1.0, 0.0, 0.0))
        self.assertEqual(material.ambient.as_tuple(), (0.0, 0.0, 0.0))
        self.assertEqual(material.shininess, 64.0)
        self.assertEqual(scene.meshes[0].material, material)

    def test_texture_map(self):
        doc = build_document()
        doc["materials"][0]["pbrMetallicRoughness"]["baseColorTexture"] = {"index": 0}
        doc["textures"] = [{"source": 0}]
        doc["images"] = [{"uri": "red.png"}]
        self.assertEqual(self.parse(doc).unwrap().materials[0].texture_map, "red.png")

    def test_primitives_are_flattened(self):
        doc = build_document()
        doc["meshes"][0]["primitives"].append(dict(doc["meshes"][0]["primitives"][0]))
        mesh = self.parse(doc).unwrap().meshes[0]

        self.assertEqual(len(mesh.vertices), 6)
        self.assertEqual([f.indices for f in mesh.faces], [(0, 1, 2), (3, 4, 5)])

    def test_non_indexed_primitive(self):
        doc = build_document()
        del doc["meshes"][0]["primitives"][0]["indices"]
        self.assertEqual(self.parse(doc).unwrap().meshes[0].faces[0].indices, (0, 1, 2))

    def test_default_names(self):
        doc = build_document()
        del doc["meshes"][0]["name"]
        del doc["materials"][0]["name"]
        scene = self.parse(doc).unwrap()
        self.assertEqual(scene.meshes[0].name, "mesh_0")
        self.assertEqual(scene.materials[0].name, "material_0")

    def test_interleaved_byte_stride(self):
        interleaved = np.hstack([POSITIONS, NORMALS]).astype("<f4")
        payload = interleaved.tobytes() + INDICES.tobytes()
        doc = build_document()
        doc["buffers"] = [{"byteLength": len(payload), "uri": data_uri(payload)}]
        doc["bufferViews"] = [
            {"buffer": 0, "byteOffset": 0, "byteLength": 72, "byteStride": 24},
            {"buffer": 0, "byteOffset": 72, "byteLength": 6},
        ]
        doc["accessors"] = [
            {"bufferView": 0, "componentType": 5126, "count": 3, "type": "VEC3"},
            {"bufferView": 0, "byteOffset": 12, "componentType": 5126, "count": 3, "type": "VEC3"},
            {"bufferView": 1, "componentType": 5123, "count": 3, "type": "SCALAR"},
        ]
        doc["meshes"][0]["primitives"][0] = {
            "attributes": {"POSITION": 0, "NORMAL": 1}, "indices": 2,
        }
        mesh = self.parse(doc).unwrap().meshes[0]

        self.assertEqual(mesh.vertices[2].position.as_tuple(), (0.0, 1.0, 0.0))
        self.assertEqual(mesh.vertices[2].normal.as_tuple(), (0.0, 0.0, 1.0))
        self.assertIsNone(mesh.vertices[2].tex_coord)

    def test_normalized_texcoords(self):
        uv = np.array([[0, 0], [65535, 0], [0, 65535]], dtype="<u2")
        payload = POSITIONS.tobytes() + uv.tobytes()
        doc = build_document()
        doc["buffers"] = [{"byteLength": len(payload), "uri": data_uri(payload)}]
        doc["bufferViews"] = [
            {"buffer": 0, "byteOffset": 0, "byteLength": 36},
            {"buffer": 0, "byteOffset": 36, "byteLength": 12},
        ]
        doc["accessors"] = [
            {"bufferView": 0, "componentType": 5126, "count": 3, "type": "VEC3"},
            {"bufferView": 1, "componentType": 5123, "count": 3, "type": "VEC2", "normalized": True},
        ]
        doc["meshes"][0]["primitives"][0] = {"attributes": {"POSITION": 0, "TEXCOORD_0": 1}}
        mesh = self.parse(doc).unwrap().meshes[0]
        self.assertEqual(mesh.vertices[1].tex_coord.as_tuple(), (1.0, 0.0))

    def test_unsigned_int_indices(self):
        doc = build_document()
        payload = POSITIONS.tobytes() + np.array([2, 1, 0], dtype="<u4").tobytes()
        doc["buffers"] = [{"byteLength": len(payload), "uri": data_uri(payload)}]
        doc["bufferViews"] = [
            {"buffer": 0, "byteOffset": 0, "byteLength": 36},
            {"buffer": 0, "byteOffset": 36, "byteLength": 12},
        ]
        doc["accessors"] = [
            {"bufferView": 0, "componentType": 5126, "count": 3, "type": "VEC3"},
            {"bufferView": 1, "componentType": 5125, "count": 3, "type": "SCALAR"},
        ]
        doc["meshes"][0]["primitives"][0] = {"attributes": {"POSITION": 0}, "indices": 1}
        self.assertEqual(self.parse(doc).unwrap().meshes[0].faces[0].indices, (2, 1, 0))

    def test_mesh_material_is_the_referenced_entry(self):
        doc = build_document()
        doc["materials"].insert(0, {"name": "red", "emissiveFactor": [1, 1, 1]})
        doc["meshes"][0]["primitives"][0]["material"] = 1
        scene = self.parse(doc).unwrap()

        self.assertIs(scene.meshes[0].material, scene.materials[1])
        self.assertEqual(scene.meshes[0].material.shininess, 64.0)


class TestGLTFErrors(unittest.TestCase):
    def setUp(self):
        self.config = Config()

    def parse(self, doc):
        return parse_gltf(json.dumps(doc), self.config)

    def test_missing_asset_version_checked_before_buffers(self):
        doc = {"asset": {}, "buffers": [{"uri": "not-a-data-uri.bin"}]}
        error = self.parse(doc).error

        self.assertEqual(error.code, 'MISSING_ATTRIBUTE')
        self.assertEqual(error.path, "asset.version")

    def test_missing_asset(self):
        self.assertEqual(self.parse({"meshes": []}).error.path, "asset.version")

    def test_external_buffer(self):
        doc = build_document()
        doc["buffers"][0]["uri"] = "triangle.bin"
        error = self.parse(doc).error

        self.assertEqual(error.code, 'EXTERNAL_BUFFER')
        self.assertIn("buffer 0", error.message)

    def test_invalid_base64(self):
        error = decode_data_uri("data:application/octet-stream;base64,@@@", 2).error
        self.assertEqual(error.code, 'INVALID_DATA_URI')
        self.assertEqual(error.path, "buffers[2].uri")

    def test_invalid_json(self):
        error = parse_gltf('{"asset": ', self.config).error
        self.assertEqual(error.code, 'INVALID_JSON')
        self.assertEqual(error.line, 1)

    def test_unsupported_component_type(self):
        doc = build_document()
        doc["accessors"][3]["componentType"] = 5121
        error = self.parse(doc).error

        self.assertEqual(error.code, 'UNSUPPORTED_COMPONENT_TYPE')
        self.assertEqual(error.path, "accessors[3].componentType")

    def test_missing_position(self):
        doc = build_document()
        del doc["meshes"][0]["primitives"][0]["attributes"]["POSITION"]
        error = self.parse(doc).error

        self.assertEqual(error.code, 'MISSING_ATTRIBUTE')
        self.assertEqual(error.path, "meshes[0].primitives[0].attributes.POSITION")

    def test_accessor_past_buffer_view(self):
        doc = build_document()
        doc["accessors"][0]["count"] = 4
        self.assertEqual(self.parse(doc).error.code, 'UNEXPECTED_EOF')

    def test_short_buffer(self):
        doc = build_document()
        doc["buffers"][0]["byteLength"] += 10
        self.assertEqual(self.parse(doc).error.code, 'UNEXPECTED_EOF')

    def test_missing_accessor(self):
        doc = build_document()
        doc["meshes"][0]["primitives"][0]["indices"] = 9
        error = self.parse(doc).error
        self.assertEqual(error.code, 'INVALID_REFERENCE')
        self.assertEqual(error.path, "accessors[9]")

    def test_index_count_not_triangles(self):
        doc = build_document()
        doc["accessors"][3]["count"] = 2
        self.assertEqual(self.parse(doc).error.code, 'INVALID_TYPE')


    def test_component_type_must_be_a_number(self):
        doc = build_document()
        doc["accessors"][0]["componentType"] = [5126]
        error = self.parse(doc).error

        self.assertEqual(error.code, 'INVALID_TYPE')
        self.assertEqual(error.path, "accessors[0].componentType")

    def test_accessor_type_must_be_a_string(self):
        doc = build_document()
        doc["accessors"][0]["type"] = ["VEC3"]
        error = self.parse(doc).error

        self.assertEqual(error.code, 'INVALID_TYPE')
        self.assertEqual(error.path, "accessors[0].type")

    def test_pbr_must_be_an_object(self):
        doc = build_document()
        doc["materials"][0]["pbrMetallicRoughness"] = "shiny"
        error = self.parse(doc).error

        self.assertEqual(error.code, 'INVALID_TYPE')
        self.assertEqual(error.path, "materials[0].pbrMetallicRoughness")

    def test_textures_must_be_an_array(self):
        doc = build_document()
        doc["materials"][0]["pbrMetallicRoughness"]["baseColorTexture"] = {"index": 0}
        doc["textures"] = {"0": {"source": 0}}
        doc["images"] = [{"uri": "red.png"}]
        error = self.parse(doc).error

        self.assertEqual(error.code, 'INVALID_TYPE')
        self.assertEqual(error.path, "textures")

    def test_float_indices_rejected(self):
        doc = build_document()
        doc["meshes"][0]["primitives"][0]["indices"] = 0
        error = self.parse(doc).error

        self.assertEqual(error.code, 'INVALID_TYPE')
        self.assertEqual(error.path, "meshes[0].primitives[0].indices")


if __name__ == '__main__':
    unittest.main()
