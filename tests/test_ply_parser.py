import re
import struct
import unittest

from config import Config
from converters.binary_reader import BinaryCursor, UnexpectedEndOfData
from converters.ply_parser import parse_header, parse_ply, split_lines

VERTICES = [
    (0.0, 0.0, 0.0, 0.0, 0.0, 1.0),
    (1.0, 0.0, 0.0, 0.0, 0.0, 1.0),
    (0.0, 1.0, 0.0, 0.0, 0.0, 1.0),
    (1.0, 1.0, 0.0, 0.0, 0.0, 1.0),
]
FACES = [(0, 1, 2), (1, 3, 2)]


def ply_header(fmt, vertex_count=len(VERTICES), face_count=len(FACES)):
    return "\n".join([
        "ply",
        f"format {fmt} 1.0",
        "comment generated for tests",
        f"element vertex {vertex_count}",
        "property float x",
        "property float y",
        "property float z",
        "property float nx",
        "property float ny",
        "property float nz",
        "property uchar red",
        f"element face {face_count}",
        "property list uchar int vertex_indices",
        "end_header",
    ]) + "\n"


def ascii_ply():
    body = [" ".join(f"{v:g}" for v in vertex) + " 255" for vertex in VERTICES]
    body += [f"3 {a} {b} {c}" for a, b, c in FACES]
    return ply_header("ascii") + "\n".join(body) + "\n"


def binary_ply(order="<", fmt="binary_little_endian", vertices=VERTICES, faces=FACES):
    data = ply_header(fmt).encode("ascii")
    for vertex in vertices:
        data += struct.pack(order + "6fB", *vertex, 255)
    for face in faces:
        data += struct.pack(order + "B3i", 3, *face)
    return data


class TestPLYHeader(unittest.TestCase):
    def test_parse_header(self):
        header = parse_header(split_lines(ascii_ply())).unwrap()

        self.assertEqual(header.format, "ascii")
        self.assertEqual([e.name for e in header.elements], ["vertex", "face"])
        self.assertEqual(header.element("vertex").count, 4)
        face_prop = header.element("face").properties[0]
        self.assertTrue(face_prop.is_list)
        self.assertEqual(face_prop.count_type, "uchar")
        self.assertEqual(header.data_start, 14)

    def test_missing_end_header(self):
        text = "ply\nformat ascii 1.0\nelement vertex 0\nproperty float x\n"
        error = parse_ply(text, Config()).error

        self.assertEqual(error.code, 'MISSING_END_HEADER')
        self.assertIn("Missing end_header", error.message)
        self.assertEqual(error.line, len(re.split(r"\r?\n", text)))

    def test_missing_end_header_binary(self):
        data = b"ply\nformat binary_little_endian 1.0\nelement vertex 1\n"
        error = parse_ply(data, Config()).error
        self.assertEqual(error.message, "Missing end_header")
        self.assertEqual(error.line, 4)

    def test_missing_magic(self):
        error = parse_ply("format ascii 1.0\nend_header\n", Config()).error
        self.assertEqual(error.code, 'MISSING_MAGIC')
        self.assertEqual(error.line, 1)

    def test_property_without_element(self):
        error = parse_ply("ply\nformat ascii 1.0\nproperty float x\nend_header\n", Config()).error
        self.assertEqual(error.code, 'PROPERTY_WITHOUT_ELEMENT')
        self.assertEqual(error.line, 3)

    def test_unsupported_format(self):
        error = parse_ply("ply\nformat binary_middle_endian 1.0\nend_header\n", Config()).error
        self.assertEqual(error.code, 'UNSUPPORTED_FORMAT')

    def test_unknown_keyword(self):
        error = parse_ply("ply\nformat ascii 1.0\nbogus line\nend_header\n", Config()).error
        self.assertEqual(error.code, 'INVALID_HEADER_LINE')
        self.assertEqual(error.line, 3)


class TestPLYParser(unittest.TestCase):
    def setUp(self):
        self.config = Config()

    def test_parse_ascii(self):
        scene = parse_ply(ascii_ply(), self.config).unwrap()
        mesh = scene.meshes[0]

        self.assertEqual(mesh.name, "default")
        self.assertEqual(len(mesh.vertices), 4)
        self.assertEqual([f.indices for f in mesh.faces], FACES)
        self.assertEqual(mesh.vertices[3].position.as_tuple(), (1.0, 1.0, 0.0))
        self.assertEqual(mesh.vertices[0].normal.as_tuple(), (0.0, 0.0, 1.0))
        self.assertIsNone(mesh.vertices[0].tex_coord)
        self.assertEqual(scene.metadata.format, "PLY")
        self.assertEqual(scene.materials, ())

    def test_ascii_from_bytes(self):
        from_text = parse_ply(ascii_ply(), self.config).unwrap()
        from_bytes = parse_ply(ascii_ply().encode("utf-8"), self.config).unwrap()
        self.assertEqual(from_text, from_bytes)

    def test_binary_matches_ascii(self):
        ascii_scene = parse_ply(ascii_ply(), self.config).unwrap()
        binary_scene = parse_ply(binary_ply(), self.config).unwrap()

        self.assertEqual(binary_scene.meshes, ascii_scene.meshes)
        self.assertEqual(binary_scene.metadata, ascii_scene.metadata)

    def test_binary_big_endian(self):
        scene = parse_ply(binary_ply(">", "binary_big_endian"), self.config).unwrap()
        self.assertEqual([f.indices for f in scene.meshes[0].faces], FACES)
        self.assertEqual(scene.meshes[0].vertices[1].position.as_tuple(), (1.0, 0.0, 0.0))

    def test_binary_with_crlf_header(self):
        data = binary_ply().replace(b"end_header\n", b"end_header\r\n", 1)
        scene = parse_ply(data, self.config).unwrap()
        self.assertEqual(len(scene.meshes[0].vertices), 4)

    def test_truncated_binary(self):
        data = binary_ply()[:-6]
        error = parse_ply(data, self.config).error

        self.assertEqual(error.code, 'UNEXPECTED_EOF')
        self.assertIn("Unexpected end of file", error.message)
        self.assertEqual(error.path, "face[1]")

    def test_truncated_binary_vertices(self):
        data = binary_ply(vertices=VERTICES[:2], faces=[])
        error = parse_ply(data, self.config).error
        self.assertEqual(error.code, 'UNEXPECTED_EOF')
        self.assertEqual(error.path, "vertex[2]")

    def test_truncated_ascii(self):
        text = ascii_ply().rsplit("3 1 3 2", 1)[0]
        error = parse_ply(text, self.config).error
        self.assertEqual(error.code, 'UNEXPECTED_EOF')
        self.assertIn("face", error.message)

    def test_binary_header_from_text_is_rejected(self):
        error = parse_ply(ply_header("binary_little_endian"), self.config).error
        self.assertEqual(error.code, 'UNSUPPORTED_FORMAT')

    def test_short_face(self):
        text = ascii_ply().replace("3 0 1 2", "2 0 1")
        error = parse_ply(text, self.config).error
        self.assertEqual(error.code, 'INVALID_FACE_SIZE')
        self.assertEqual(error.line, 19)

    def test_invalid_number(self):
        text = ascii_ply().replace("1 1 0 0 0 1 255", "1 oops 0 0 0 1 255")
        error = parse_ply(text, self.config).error
        self.assertEqual(error.code, 'INVALID_NUMBER')
        self.assertEqual(error.line, 18)

    def test_ascii_integer_properties_accept_decimal_text(self):
        text = ascii_ply().replace("1 1 0 0 0 1 255", "1 1 0 0 0 1 255.0").replace("3 0 1 2", "3.0 0 1 2.0")
        mesh = parse_ply(text, self.config).unwrap().meshes[0]
        self.assertEqual([f.indices for f in mesh.faces], FACES)

    def test_fractional_list_length(self):
        text = ascii_ply().replace("3 0 1 2", "2.5 0 1 2")
        error = parse_ply(text, self.config).error
        self.assertEqual(error.code, 'INVALID_NUMBER')
        self.assertEqual(error.line, 19)

    def test_fractional_face_index(self):
        text = ascii_ply().replace("3 0 1 2", "3 0 1.5 2")
        self.assertEqual(parse_ply(text, self.config).error.code, 'INVALID_INDEX')

    def test_binary_face_extra_properties_are_skipped(self):
        header = "\n".join([
            "ply",
            "format binary_little_endian 1.0",
            "element vertex 3",
            "property float x",
            "property float y",
            "property float z",
            "element face 1",
            "property uchar red",
            "property list uchar int vertex_indices",
            "property float quality",
            "end_header",
        ]) + "\n"
        data = header.encode("ascii")
        for vertex in VERTICES[:3]:
            data += struct.pack("<3f", *vertex[:3])
        data += struct.pack("<BB3if", 200, 3, 0, 1, 2, 0.5)

        mesh = parse_ply(data, self.config).unwrap().meshes[0]
        self.assertEqual([f.indices for f in mesh.faces], [(0, 1, 2)])

    def test_missing_vertex_element(self):
        text = "ply\nformat ascii 1.0\nelement face 0\nproperty list uchar int vertex_indices\nend_header\n"
        self.assertEqual(parse_ply(text, self.config).error.code, 'MISSING_ELEMENT')

    def test_missing_position_property(self):
        text = "ply\nformat ascii 1.0\nelement vertex 1\nproperty float x\nproperty float y\nend_header\n0 0\n"
        self.assertEqual(parse_ply(text, self.config).error.code, 'MISSING_ATTRIBUTE')

    def test_texcoords_and_other_elements(self):
        text = "\n".join([
            "ply",
            "format ascii 1.0",
            "element camera 1",
            "property float view_px",
            "property float view_py",
            "element vertex 3",
            "property float32 x",
            "property float32 y",
            "property float32 z",
            "property float s",
            "property float t",
            "element face 1",
            "property list uint8 int32 vertex_index",
            "end_header",
            "5 5",
            "0 0 0 0 0",
            "1 0 0 1 0",
            "0 1 0 0 1",
            "3 0 1 2",
        ]) + "\n"
        mesh = parse_ply(text, self.config).unwrap().meshes[0]

        self.assertEqual(len(mesh.vertices), 3)
        self.assertEqual(mesh.vertices[2].tex_coord.as_tuple(), (0.0, 1.0))
        self.assertIsNone(mesh.vertices[2].normal)
        self.assertEqual(mesh.faces[0].indices, (0, 1, 2))

    def test_no_vertices_has_no_bounding_box(self):
        text = "ply\nformat ascii 1.0\nelement vertex 0\nproperty float x\nproperty float y\nproperty float z\nend_header\n"
        scene = parse_ply(text, self.config).unwrap()
        self.assertIsNone(scene.metadata.bounding_box)

    def test_configured_mesh_name(self):
        self.config.ply.mesh_name = "scan"
        self.assertEqual(parse_ply(ascii_ply(), self.config).unwrap().meshes[0].name, "scan")


class TestBinaryCursor(unittest.TestCase):
    def test_reads_in_order(self):
        cursor = BinaryCursor(struct.pack("<Hd", 7, 2.5))
        self.assertEqual(cursor.read("ushort"), 7)
        self.assertEqual(cursor.read("double"), 2.5)
        self.assertEqual(cursor.remaining(), 0)

    def test_big_endian_list(self):
        cursor = BinaryCursor(struct.pack(">Bii", 2, 10, 20), byte_order="big")
        self.assertEqual(cursor.read_list("uchar", "int"), [10, 20])

    def test_read_past_end(self):
        cursor = BinaryCursor(b"\x00\x01")
        with self.assertRaises(UnexpectedEndOfData) as ctx:
            cursor.read("int")
        self.assertEqual(ctx.exception.offset, 0)
        self.assertEqual(cursor.offset, 0)


if __name__ == '__main__':
    unittest.main()
