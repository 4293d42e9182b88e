import logging
import math
import re
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Tuple, Union

from config import Config, get_config
from converters.binary_reader import (
    FLOAT_TYPES,
    SCALAR_FORMATS,
    BinaryCursor,
    InvalidListLength,
    UnexpectedEndOfData,
)
from pyscene.model import (
    Face,
    Vertex,
    create_face,
    create_mesh,
    create_scene,
    create_vec2,
    create_vec3,
    create_vertex,
    summarize_meshes,
)
from pyscene.result import Err, Ok, Result
from utils.error_handler import make_error

logger = logging.getLogger(__name__)

# format token -> byte order (None for ascii)
FORMATS: Dict[str, Optional[str]] = {
    "ascii": None,
    "binary_little_endian": "little",
    "binary_big_endian": "big",
}

POSITION_NAMES = ("x", "y", "z")
NORMAL_NAMES = ("nx", "ny", "nz")
U_NAMES = ("s", "u", "texture_u")
V_NAMES = ("t", "v", "texture_v")
COLOR_NAMES = frozenset({"r", "g", "b", "red", "green", "blue", "alpha"})
FACE_LIST_NAMES = ("vertex_indices", "vertex_index")

END_HEADER_RE = re.compile(rb"(?:^|\n)[ \t]*end_header")
LINE_SPLIT_RE = re.compile(r"\r?\n")


@dataclass(frozen=True)
class PLYProperty:
    name: str
    type: str
    is_list: bool = False
    count_type: Optional[str] = None


@dataclass(frozen=True)
class PLYElement:
    name: str
    count: int
    properties: Tuple[PLYProperty, ...] = ()

    def with_property(self, prop: PLYProperty) -> "PLYElement":
        return replace(self, properties=self.properties + (prop,))

    def property_names(self) -> Tuple[str, ...]:
        return tuple(p.name for p in self.properties)


@dataclass(frozen=True)
class PLYHeader:
    format: str
    version: str
    elements: Tuple[PLYElement, ...]
    # Index of the first body line in the split input
    data_start: int

    @property
    def byte_order(self) -> Optional[str]:
        return FORMATS[self.format]

    @property
    def is_binary(self) -> bool:
        return self.byte_order is not None

    def element(self, name: str) -> Optional[PLYElement]:
        for element in self.elements:
            if element.name == name:
                return element
        return None


def split_lines(text: str) -> List[str]:
    return LINE_SPLIT_RE.split(text)


def _parse_format(parts: List[str], line_number: int) -> Result:
    if len(parts) < 3:
        return Err(make_error('INVALID_HEADER_LINE', "Invalid format line", line=line_number))
    if parts[1] not in FORMATS:
        return Err(make_error('UNSUPPORTED_FORMAT', f"Unsupported format: {parts[1]}", line=line_number))
    return Ok((parts[1], parts[2]))


def _parse_element(parts: List[str], line_number: int) -> Result:
    if len(parts) < 3:
        return Err(make_error('INVALID_HEADER_LINE', "Invalid element line", line=line_number))
    try:
        count = int(parts[2])
    except ValueError:
        return Err(make_error('INVALID_HEADER_LINE', "Invalid element count", line=line_number))
    if count < 0:
        return Err(make_error('INVALID_HEADER_LINE', "Invalid element count", line=line_number))
    return Ok(PLYElement(name=parts[1], count=count))


def _parse_property(parts: List[str], line_number: int) -> Result:
    if len(parts) >= 2 and parts[1] == "list":
        if len(parts) != 5:
            return Err(make_error('INVALID_HEADER_LINE', "Invalid list property line", line=line_number))
        _, _, count_type, item_type, name = parts
        if count_type not in SCALAR_FORMATS or count_type in FLOAT_TYPES:
            return Err(make_error(
                'INVALID_HEADER_LINE', f"Invalid list count type: {count_type}", line=line_number,
            ))
        if item_type not in SCALAR_FORMATS:
            return Err(make_error(
                'INVALID_HEADER_LINE', f"Unknown property type: {item_type}", line=line_number,
            ))
        return Ok(PLYProperty(name=name, type=item_type, is_list=True, count_type=count_type))

    if len(parts) != 3:
        return Err(make_error('INVALID_HEADER_LINE', "Invalid property line", line=line_number))
    if parts[1] not in SCALAR_FORMATS:
        return Err(make_error(
            'INVALID_HEADER_LINE', f"Unknown property type: {parts[1]}", line=line_number,
        ))
    return Ok(PLYProperty(name=parts[2], type=parts[1]))


def parse_header(lines: List[str]) -> Result:
    """Parse header lines up to ``end_header`` into a PLYHeader."""
    if not lines or lines[0].strip() != "ply":
        return Err(make_error('MISSING_MAGIC', "Missing 'ply' header", line=1))

    fmt, version = "ascii", "1.0"
    elements: List[PLYElement] = []

    for i in range(1, len(lines)):
        line_number = i + 1
        line = lines[i].strip()

        if line == "end_header":
            return Ok(PLYHeader(format=fmt, version=version,
                                elements=tuple(elements), data_start=i + 1))
        if not line:
            continue

        parts = line.split()
        keyword = parts[0]

        if keyword in ("comment", "obj_info"):
            continue
        elif keyword == "format":
            result = _parse_format(parts, line_number)
            if result.is_err():
                return result
            fmt, version = result.value
        elif keyword == "element":
            result = _parse_element(parts, line_number)
            if result.is_err():
                return result
            elements.append(result.value)
        elif keyword == "property":
            if not elements:
                return Err(make_error('PROPERTY_WITHOUT_ELEMENT', "Property without element",
                                      line=line_number))
            result = _parse_property(parts, line_number)
            if result.is_err():
                return result
            elements[-1] = elements[-1].with_property(result.value)
        else:
            return Err(make_error('INVALID_HEADER_LINE', f"Unknown header keyword: {keyword}",
                                  line=line_number))

    return Err(make_error('MISSING_END_HEADER', "Missing end_header", line=len(lines)))


class VertexLayout:
    """Which vertex attributes an element declares"""

    def __init__(self, element: PLYElement):
        names = {p.name for p in element.properties if not p.is_list}
        self.has_position = all(n in names for n in POSITION_NAMES)
        self.has_normal = all(n in names for n in NORMAL_NAMES)
        self.u_name = next((n for n in U_NAMES if n in names), None)
        self.v_name = next((n for n in V_NAMES if n in names), None)

        known = set(POSITION_NAMES + NORMAL_NAMES + U_NAMES + V_NAMES) | COLOR_NAMES
        unknown = sorted(n for n in element.property_names() if n not in known)
        if unknown:
            logger.debug(f"Ignoring vertex properties: {', '.join(unknown)}")

    @property
    def has_tex_coord(self) -> bool:
        return self.u_name is not None and self.v_name is not None

    def build(self, record: Dict[str, Any], line: Optional[int] = None,
              path: Optional[str] = None) -> Result:
        checks = [(n, record[n]) for n in POSITION_NAMES]
        if self.has_normal:
            checks += [(n, record[n]) for n in NORMAL_NAMES]
        if self.has_tex_coord:
            checks += [(self.u_name, record[self.u_name]), (self.v_name, record[self.v_name])]

        for name, value in checks:
            if not math.isfinite(value):
                return Err(make_error(
                    'INVALID_NUMBER', f"Non-finite value for vertex property {name}: {value}",
                    line=line, path=path,
                ))

        position = create_vec3(*(record[n] for n in POSITION_NAMES))
        normal = create_vec3(*(record[n] for n in NORMAL_NAMES)) if self.has_normal else None
        tex_coord = (create_vec2(record[self.u_name], record[self.v_name])
                     if self.has_tex_coord else None)
        return Ok(create_vertex(position, normal, tex_coord))


def _face_list_property(element: PLYElement) -> Optional[PLYProperty]:
    for prop in element.properties:
        if prop.is_list and prop.name in FACE_LIST_NAMES:
            return prop
    return None


def _build_face(values: List[Union[int, float]], line: Optional[int] = None,
                path: Optional[str] = None) -> Result:
    if len(values) < 3:
        return Err(make_error('INVALID_FACE_SIZE', "Invalid face vertex count",
                              line=line, path=path))
    indices = []
    for value in values:
        if isinstance(value, float):
            if not value.is_integer():
                return Err(make_error('INVALID_INDEX', f"Face index {value} is not an integer",
                                      line=line, path=path))
            value = int(value)
        indices.append(value)
    return Ok(create_face(indices))


def _convert_token(token: str, type_name: str, line_number: int) -> Result:
    # ASCII bodies are read as numbers regardless of the declared type (e.g. "255.0" for uchar)
    try:
        return Ok(float(token))
    except ValueError:
        return Err(make_error(
            'INVALID_NUMBER', f"Invalid {type_name} value: {token}", line=line_number,
        ))


def _read_ascii_record(tokens: List[str], element: PLYElement, line_number: int) -> Result:
    record: Dict[str, Any] = {}
    position = 0

    def take(type_name: str) -> Result:
        nonlocal position
        if position >= len(tokens):
            return Err(make_error(
                'UNEXPECTED_EOF',
                f"Unexpected end of line: {element.name} record has {len(tokens)} values",
                line=line_number,
            ))
        token = tokens[position]
        position += 1
        return _convert_token(token, type_name, line_number)

    for prop in element.properties:
        if prop.is_list:
            count = take(prop.count_type)
            if count.is_err():
                return count
            if count.value < 0 or not count.value.is_integer():
                return Err(make_error('INVALID_NUMBER', f"Invalid list length {count.value:g}",
                                      line=line_number))
            items = []
            for _ in range(int(count.value)):
                item = take(prop.type)
                if item.is_err():
                    return item
                items.append(item.value)
            record[prop.name] = items
        else:
            value = take(prop.type)
            if value.is_err():
                return value
            record[prop.name] = value.value

    return Ok(record)


class PLYParser:
    """PLY decoder for ASCII and binary (little/big endian) bodies."""

    def __init__(self, config: Optional[Config] = None):
        self.config = config or get_config()

    def parse(self, content: Union[str, bytes]) -> Result:
        if isinstance(content, (bytes, bytearray, memoryview)):
            return self.parse_bytes(bytes(content))
        return self.parse_text(content)

    def parse_text(self, text: str) -> Result:
        lines = split_lines(text)
        header_result = parse_header(lines)
        if header_result.is_err():
            return header_result
        header = header_result.value

        if header.is_binary:
            return Err(make_error(
                'UNSUPPORTED_FORMAT', f"{header.format} PLY must be parsed from bytes",
            ))

        return self._check_elements(header).and_then(
            lambda layout: self._decode_ascii(lines, header, layout)
        ).and_then(self._build_scene)

    def parse_bytes(self, data: bytes) -> Result:
        window = data[:self.config.ply.detect_window].decode("latin-1")
        if "format binary_" in window:
            return self._parse_binary(data)

        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as e:
            return Err(make_error('DECODE_ERROR', f"PLY content is not valid UTF-8: {e}"))
        return self.parse_text(text)

    def _parse_binary(self, data: bytes) -> Result:
        match = END_HEADER_RE.search(data)
        if match is None:
            return parse_header(split_lines(data.decode("latin-1")))

        header_text = data[:match.end()].decode("latin-1")
        header_result = parse_header(split_lines(header_text))
        if header_result.is_err():
            return header_result
        header = header_result.value

        if not header.is_binary:
            try:
                return self.parse_text(data.decode("utf-8"))
            except UnicodeDecodeError as e:
                return Err(make_error('DECODE_ERROR', f"PLY content is not valid UTF-8: {e}"))

        offset = match.end()
        if data[offset:offset + 2] == b"\r\n":
            offset += 2
        elif data[offset:offset + 1] in (b"\n", b"\r"):
            offset += 1

        logger.debug(f"Binary PLY ({header.format}), payload at byte {offset} of {len(data)}")

        return self._check_elements(header).and_then(
            lambda layout: self._decode_binary(data, offset, header, layout)
        ).and_then(self._build_scene)

    def _check_elements(self, header: PLYHeader) -> Result:
        vertex_element = header.element("vertex")
        if vertex_element is None:
            return Err(make_error('MISSING_ELEMENT', "Missing vertex element", line=header.data_start))

        layout = VertexLayout(vertex_element)
        if not layout.has_position:
            return Err(make_error(
                'MISSING_ATTRIBUTE', "Vertex element must declare x, y and z properties",
                line=header.data_start,
            ))

        face_element = header.element("face")
        if face_element is not None and _face_list_property(face_element) is None:
            return Err(make_error(
                'MISSING_ATTRIBUTE', "Face element has no vertex_indices list property",
                line=header.data_start,
            ))

        return Ok(layout)

    def _decode_ascii(self, lines: List[str], header: PLYHeader, layout: VertexLayout) -> Result:
        vertices: List[Vertex] = []
        faces: List[Face] = []
        line_index = header.data_start

        for element in header.elements:
            face_prop = _face_list_property(element) if element.name == "face" else None

            for _ in range(element.count):
                while line_index < len(lines) and not lines[line_index].strip():
                    line_index += 1
                if line_index >= len(lines):
                    return Err(make_error(
                        'UNEXPECTED_EOF', f"Unexpected end of file in {element.name} list",
                        line=len(lines),
                    ))

                line_number = line_index + 1
                record = _read_ascii_record(lines[line_index].split(), element, line_number)
                line_index += 1
                if record.is_err():
                    return record

                if element.name == "vertex":
                    result = layout.build(record.value, line=line_number)
                    if result.is_err():
                        return result
                    vertices.append(result.value)
                elif element.name == "face":
                    result = _build_face(record.value[face_prop.name], line=line_number)
                    if result.is_err():
                        return result
                    faces.append(result.value)

        return Ok((vertices, faces))

    def _decode_binary(self, data: bytes, offset: int, header: PLYHeader,
                       layout: VertexLayout) -> Result:
        vertices: List[Vertex] = []
        faces: List[Face] = []
        cursor = BinaryCursor(data, offset, header.byte_order)

        for element in header.elements:
            face_prop = _face_list_property(element) if element.name == "face" else None

            for record_index in range(element.count):
                path = f"{element.name}[{record_index}]"
                record: Dict[str, Any] = {}
                try:
                    for prop in element.properties:
                        if prop.is_list:
                            record[prop.name] = cursor.read_list(prop.count_type, prop.type)
                        else:
                            record[prop.name] = cursor.read(prop.type)
                except UnexpectedEndOfData as e:
                    return Err(make_error(
                        'UNEXPECTED_EOF',
                        f"Unexpected end of file while reading {element.name} {record_index} "
                        f"(offset {e.offset})",
                        path=path,
                    ))
                except InvalidListLength as e:
                    return Err(make_error('INVALID_NUMBER', str(e), path=path))

                if element.name == "vertex":
                    result = layout.build(record, path=path)
                    if result.is_err():
                        return result
                    vertices.append(result.value)
                elif element.name == "face":
                    result = _build_face(record[face_prop.name], path=path)
                    if result.is_err():
                        return result
                    faces.append(result.value)

        return Ok((vertices, faces))

    def _build_scene(self, body: Tuple[List[Vertex], List[Face]]) -> Result:
        vertices, faces = body
        logger.debug(f"PLY body: {len(vertices)} vertices, {len(faces)} faces")

        mesh = create_mesh(self.config.ply.mesh_name, vertices, faces)
        return Ok(create_scene([mesh], [], summarize_meshes("PLY", [mesh])))


def parse_ply(content: Union[str, bytes], config: Optional[Config] = None) -> Result:
    """Parse PLY text or bytes into a Scene."""
    return PLYParser(config).parse(content)
