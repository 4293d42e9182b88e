"""
meshconv - command line entry point

    meshconv inspect model.ply [--json]
    meshconv convert model.gltf model.obj
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from config import Config, get_config
from pyscene.io import load, save
from pyscene.model import Scene
from utils.logger import get_logger, setup_logging

logger = get_logger("main")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="meshconv",
        description="Decode, validate and re-encode OBJ, PLY and glTF geometry",
    )
    parser.add_argument("--config", help="JSON configuration file")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--log-json", action="store_true", help="Write log records to stderr as JSON lines")

    commands = parser.add_subparsers(dest="command", required=True)

    inspect_cmd = commands.add_parser("inspect", help="Parse a file and print a summary")
    inspect_cmd.add_argument("input")
    inspect_cmd.add_argument("--format", dest="fmt", help="Override format detection")
    inspect_cmd.add_argument("--json", action="store_true", help="Print the full Result as JSON")

    convert_cmd = commands.add_parser("convert", help="Parse a file and write it in another format")
    convert_cmd.add_argument("input")
    convert_cmd.add_argument("output")
    convert_cmd.add_argument("--format", dest="fmt", help="Override input format detection")

    return parser


def summarize(scene: Scene) -> str:
    meta = scene.metadata
    lines = [
        f"Format: {meta.format}",
        f"  Meshes: {len(scene.meshes)}",
        f"  Materials: {len(scene.materials)}",
        f"  Total vertices: {meta.vertex_count}",
        f"  Total faces: {meta.face_count}",
    ]
    if meta.bounding_box is not None:
        lo, hi = meta.bounding_box.min, meta.bounding_box.max
        lines.append(f"  Bounds: ({lo.x:g}, {lo.y:g}, {lo.z:g}) - ({hi.x:g}, {hi.y:g}, {hi.z:g})")
    for mesh in scene.meshes:
        lines.append(f"  Mesh {mesh.name}: {len(mesh.vertices)} vertices, {len(mesh.faces)} faces")
    return "\n".join(lines)


def run_inspect(args, config: Config) -> int:
    result = load(args.input, args.fmt, config)
    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    elif result.is_ok():
        print(summarize(result.value))
    else:
        print(f"Error: {result.error.to_string()}", file=sys.stderr)
    return 0 if result.is_ok() else 1


def run_convert(args, config: Config) -> int:
    result = load(args.input, args.fmt, config).and_then(
        lambda scene: save(scene, args.output, config=config)
    )
    if result.is_err():
        print(f"Error: {result.error.to_string()}", file=sys.stderr)
        return 1
    print(f"Exported to: {Path(args.output)}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    config = Config(args.config) if args.config else get_config()
    if config.has_errors():
        print(f"Invalid configuration:{config.get_error_summary()}", file=sys.stderr)
        return 2

    setup_logging(
        level=args.log_level or config.logging.level,
        log_file=config.logging.log_file,
        use_colors=config.logging.use_colors,
        detailed=config.logging.detailed,
        json_output=args.log_json or config.logging.json_output,
    )

    logger.debug(f"Running {args.command} on {args.input}")

    if args.command == "inspect":
        return run_inspect(args, config)
    return run_convert(args, config)


if __name__ == "__main__":
    sys.exit(main())
