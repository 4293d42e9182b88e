"""
meshconv - Error Handler
Typed, location-aware errors shared by every parser, validator and encoder
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class ErrorCategory(Enum):
    """Error categories"""
    MALFORMED_HEADER = "Malformed header"
    UNEXPECTED_EOF = "Unexpected end of input"
    INVALID_NUMBER = "Invalid numeric value"
    INDEX_OUT_OF_BOUNDS = "Index out of bounds"
    MISSING_ATTRIBUTE = "Missing required attribute"
    UNSUPPORTED_FEATURE = "Unsupported feature"
    INVALID_STRUCTURE = "Invalid structure"
    FILE_IO = "File I/O"


# Error code definitions: code -> (category, description)
ERROR_CODES: Dict[str, Tuple[ErrorCategory, str]] = {
    # Header and document structure
    'MISSING_MAGIC': (ErrorCategory.MALFORMED_HEADER, "File does not start with the format magic"),
    'INVALID_HEADER_LINE': (ErrorCategory.MALFORMED_HEADER, "Header line could not be parsed"),
    'MISSING_END_HEADER': (ErrorCategory.MALFORMED_HEADER, "Header is not terminated"),
    'PROPERTY_WITHOUT_ELEMENT': (ErrorCategory.MALFORMED_HEADER, "Property declared before any element"),
    'INVALID_JSON': (ErrorCategory.MALFORMED_HEADER, "Document is not valid JSON"),
    'INVALID_DATA_URI': (ErrorCategory.MALFORMED_HEADER, "Buffer data URI is malformed"),
    'INVALID_REFERENCE': (ErrorCategory.MALFORMED_HEADER, "Document references a missing entry"),

    # Truncation
    'UNEXPECTED_EOF': (ErrorCategory.UNEXPECTED_EOF, "Input ended before all declared data was read"),

    # Numbers
    'INVALID_NUMBER': (ErrorCategory.INVALID_NUMBER, "Value is not a finite number"),
    'INVALID_INDEX': (ErrorCategory.INVALID_NUMBER, "Index is not an integer"),

    # Indices
    'INDEX_OUT_OF_BOUNDS': (ErrorCategory.INDEX_OUT_OF_BOUNDS, "Index outside the referenced list"),

    # Required data
    'MISSING_ELEMENT': (ErrorCategory.MISSING_ATTRIBUTE, "Required element is missing"),
    'MISSING_ATTRIBUTE': (ErrorCategory.MISSING_ATTRIBUTE, "Required attribute is missing"),
    'NO_VERTICES': (ErrorCategory.MISSING_ATTRIBUTE, "No vertices found"),

    # Unsupported input
    'UNSUPPORTED_FORMAT': (ErrorCategory.UNSUPPORTED_FEATURE, "Format is not supported"),
    'UNSUPPORTED_COMPONENT_TYPE': (ErrorCategory.UNSUPPORTED_FEATURE, "Accessor component type is not supported"),
    'EXTERNAL_BUFFER': (ErrorCategory.UNSUPPORTED_FEATURE, "External buffer URIs are not supported"),

    # Scene structure
    'EMPTY_SCENE': (ErrorCategory.INVALID_STRUCTURE, "Scene has no meshes"),
    'EMPTY_MESH': (ErrorCategory.INVALID_STRUCTURE, "Mesh has no vertices"),
    'NO_FACES': (ErrorCategory.INVALID_STRUCTURE, "Mesh has no faces"),
    'INVALID_FACE_SIZE': (ErrorCategory.INVALID_STRUCTURE, "Face has fewer than 3 indices"),
    'METADATA_MISMATCH': (ErrorCategory.INVALID_STRUCTURE, "Metadata totals disagree with meshes"),
    'INVALID_TYPE': (ErrorCategory.INVALID_STRUCTURE, "Value has the wrong shape"),

    # File helpers
    'FILE_NOT_FOUND': (ErrorCategory.FILE_IO, "File not found"),
    'READ_ERROR': (ErrorCategory.FILE_IO, "File could not be read"),
    'WRITE_ERROR': (ErrorCategory.FILE_IO, "File could not be written"),
    'DECODE_ERROR': (ErrorCategory.FILE_IO, "File content is not valid text"),
}


@dataclass(frozen=True)
class SceneError:
    """Detailed error information"""
    message: str
    code: str
    category: ErrorCategory
    line: Optional[int] = None
    column: Optional[int] = None
    path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire shape; absent locations are omitted"""
        data: Dict[str, Any] = {
            'message': self.message,
            'code': self.code,
        }
        if self.line is not None:
            data['line'] = self.line
        if self.column is not None:
            data['column'] = self.column
        if self.path is not None:
            data['path'] = self.path
        return data

    def to_string(self) -> str:
        """Convert to string representation"""
        location = []
        if self.line is not None:
            location.append(f"line {self.line}")
        if self.column is not None:
            location.append(f"column {self.column}")
        if self.path is not None:
            location.append(self.path)

        text = f"{self.code}: {self.message}"
        if location:
            text += f" ({', '.join(location)})"
        return text

    def with_path(self, prefix: str) -> 'SceneError':
        """Return a copy whose path is nested under ``prefix``"""
        if self.path is None:
            return replace(self, path=prefix)
        if self.path.startswith('['):
            return replace(self, path=f"{prefix}{self.path}")
        return replace(self, path=f"{prefix}.{self.path}")

    def __str__(self) -> str:
        return self.to_string()


def make_error(code: str, message: Optional[str] = None,
               line: Optional[int] = None, column: Optional[int] = None,
               path: Optional[str] = None) -> SceneError:
    """Build a SceneError, looking up its category in ERROR_CODES."""
    category, description = ERROR_CODES[code]
    return SceneError(
        message=message or description,
        code=code,
        category=category,
        line=line,
        column=column,
        path=path,
    )


def log_error(error: SceneError, log: Optional[logging.Logger] = None,
              context: str = "") -> None:
    """Log a SceneError at WARNING level with its category."""
    log = log or logger
    prefix = f"{context}: " if context else ""
    log.warning(f"{prefix}[{error.category.value}] {error.to_string()}")
