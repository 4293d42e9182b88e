import struct
from typing import Dict, List, Union

# PLY scalar type name -> struct format character
SCALAR_FORMATS: Dict[str, str] = {
    "char": "b",
    "uchar": "B",
    "short": "h",
    "ushort": "H",
    "int": "i",
    "uint": "I",
    "float": "f",
    "double": "d",
    "int8": "b",
    "uint8": "B",
    "int16": "h",
    "uint16": "H",
    "int32": "i",
    "uint32": "I",
    "float32": "f",
    "float64": "d",
}

FLOAT_TYPES = frozenset({"float", "double", "float32", "float64"})

BYTE_ORDER = {
    "little": "<",
    "big": ">",
}


class BinaryReadError(Exception):
    """Base class for cursor failures"""


class UnexpectedEndOfData(BinaryReadError):
    """A read would run past the end of the buffer"""

    def __init__(self, offset: int, needed: int, available: int):
        super().__init__(
            f"Unexpected end of file: needed {needed} bytes at offset {offset}, "
            f"{available} available"
        )
        self.offset = offset
        self.needed = needed
        self.available = available


class InvalidListLength(BinaryReadError):
    """A list count decoded as a negative number"""

    def __init__(self, count: int, offset: int):
        super().__init__(f"Negative list length {count} at offset {offset}")
        self.count = count
        self.offset = offset


class BinaryCursor:
    """Read position over an immutable byte buffer.

    Every read checks bounds first and raises UnexpectedEndOfData instead
    of returning short data.
    """

    def __init__(self, data: bytes, offset: int = 0, byte_order: str = "little"):
        self.data = data
        self.offset = offset
        self.prefix = BYTE_ORDER[byte_order]
        self._structs: Dict[str, struct.Struct] = {}

    def remaining(self) -> int:
        return len(self.data) - self.offset

    def _struct(self, type_name: str) -> struct.Struct:
        compiled = self._structs.get(type_name)
        if compiled is None:
            compiled = struct.Struct(self.prefix + SCALAR_FORMATS[type_name])
            self._structs[type_name] = compiled
        return compiled

    def read(self, type_name: str) -> Union[int, float]:
        compiled = self._struct(type_name)
        if self.offset + compiled.size > len(self.data):
            raise UnexpectedEndOfData(self.offset, compiled.size, self.remaining())
        (value,) = compiled.unpack_from(self.data, self.offset)
        self.offset += compiled.size
        return value

    def read_list(self, count_type: str, item_type: str) -> List[Union[int, float]]:
        count = self.read(count_type)
        if count < 0:
            raise InvalidListLength(count, self.offset)
        return [self.read(item_type) for _ in range(count)]
