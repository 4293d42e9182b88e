import logging
from pathlib import Path
from typing import Optional, Union

from config import Config, get_config
from converters.gltf_parser import parse_gltf
from converters.obj_parser import parse_obj
from converters.ply_parser import parse_ply
from exporters.obj_encoder import encode_obj
from exporters.ply_encoder import encode_ply
from pyscene.model import Scene
from pyscene.result import Err, Ok, Result
from pyscene.validators import validate_scene
from utils.error_handler import log_error, make_error

logger = logging.getLogger(__name__)

EXTENSIONS = {
    ".obj": "obj",
    ".ply": "ply",
    ".gltf": "gltf",
}

# Recognised but not decodable
UNSUPPORTED_EXTENSIONS = {
    ".stl": "STL support is not implemented",
    ".glb": "Binary glTF (.glb) is not supported, use .gltf with embedded buffers",
}

ENCODABLE = ("obj", "ply")


def detect_format(path: Union[str, Path]) -> Result:
    """Map a file name to one of ``obj``, ``ply`` or ``gltf``."""
    suffix = Path(path).suffix.lower()
    if suffix in EXTENSIONS:
        return Ok(EXTENSIONS[suffix])
    if suffix in UNSUPPORTED_EXTENSIONS:
        return Err(make_error('UNSUPPORTED_FORMAT', UNSUPPORTED_EXTENSIONS[suffix]))
    return Err(make_error('UNSUPPORTED_FORMAT', f"Unknown file extension: {suffix or '(none)'}"))


def _as_text(data: Union[str, bytes]) -> Result:
    if isinstance(data, str):
        return Ok(data)
    try:
        return Ok(bytes(data).decode("utf-8-sig"))
    except UnicodeDecodeError as e:
        return Err(make_error('DECODE_ERROR', f"Content is not valid UTF-8: {e}"))


def loads(data: Union[str, bytes], fmt: str, config: Optional[Config] = None) -> Result:
    """
    Decode in-memory content into a Scene.

    Args:
        data: File content; PLY accepts bytes for binary bodies
        fmt: One of ``obj``, ``ply``, ``gltf``
        config: Optional configuration, defaults to the global one

    Returns:
        Ok(Scene) or Err(SceneError)
    """
    config = config or get_config()
    fmt = fmt.lower()

    if fmt == "obj":
        result = _as_text(data).and_then(lambda text: parse_obj(text, config))
    elif fmt == "ply":
        result = parse_ply(data, config)
    elif fmt == "gltf":
        result = _as_text(data).and_then(lambda text: parse_gltf(text, config))
    else:
        result = Err(make_error('UNSUPPORTED_FORMAT', f"Unsupported format: {fmt}"))

    if config.validation.enabled:
        result = result.and_then(validate_scene)

    if result.is_err():
        log_error(result.error, logger, context=f"{fmt.upper()} parse")
    else:
        meta = result.value.metadata
        logger.info(f"Parsed {meta.format}: {meta.vertex_count} vertices, {meta.face_count} faces")
    return result


def load(path: Union[str, Path], fmt: Optional[str] = None,
         config: Optional[Config] = None) -> Result:
    """Read a file and decode it, detecting the format from its extension."""
    path = Path(path)
    if fmt is None:
        detected = detect_format(path)
        if detected.is_err():
            return detected
        fmt = detected.value

    try:
        data = path.read_bytes()
    except FileNotFoundError:
        return Err(make_error('FILE_NOT_FOUND', f"File not found: {path}", path=str(path)))
    except OSError as e:
        return Err(make_error('READ_ERROR', f"Cannot read {path}: {e}", path=str(path)))

    logger.debug(f"Read {len(data)} bytes from {path}")
    return loads(data, fmt, config)


def dumps(scene: Scene, fmt: str, config: Optional[Config] = None) -> Result:
    """Encode a Scene as ``obj`` or ``ply`` text."""
    fmt = fmt.lower()
    if fmt == "ply":
        return encode_ply(scene)
    if fmt == "obj":
        return encode_obj(scene, config)
    return Err(make_error('UNSUPPORTED_FORMAT', f"Cannot encode to {fmt}, supported: {', '.join(ENCODABLE)}"))


def save(scene: Scene, path: Union[str, Path], fmt: Optional[str] = None,
         config: Optional[Config] = None) -> Result:
    """Encode a Scene and write it to ``path``; returns Ok(path)."""
    path = Path(path)
    if fmt is None:
        detected = detect_format(path)
        if detected.is_err():
            return detected
        fmt = detected.value

    encoded = dumps(scene, fmt, config)
    if encoded.is_err():
        return encoded

    try:
        path.write_text(encoded.value, encoding="utf-8")
    except OSError as e:
        return Err(make_error('WRITE_ERROR', f"Cannot write {path}: {e}", path=str(path)))

    logger.info(f"Wrote {fmt.upper()} to {path}")
    return Ok(path)
