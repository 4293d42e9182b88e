import json
import logging
import os
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "MESHCONV_CONFIG"


@dataclass
class PLYConfig:
    """Configuration for PLY decoding"""
    # Bytes decoded as text when sniffing for a binary format line
    detect_window: int = 1024
    mesh_name: str = "default"

    def validate(self) -> List[str]:
        errors = []
        if self.detect_window < 16:
            errors.append("PLY detect window must be at least 16 bytes")
        if not self.mesh_name:
            errors.append("PLY mesh name cannot be empty")
        return errors


@dataclass
class OBJConfig:
    """Configuration for OBJ decoding"""
    mesh_name: str = "default"
    validate_scene: bool = True

    def validate(self) -> List[str]:
        errors = []
        if not self.mesh_name:
            errors.append("OBJ mesh name cannot be empty")
        return errors


@dataclass
class GLTFConfig:
    """Configuration for glTF decoding"""
    mesh_name_prefix: str = "mesh"
    material_name_prefix: str = "material"

    def validate(self) -> List[str]:
        errors = []
        if not self.mesh_name_prefix:
            errors.append("glTF mesh name prefix cannot be empty")
        if not self.material_name_prefix:
            errors.append("glTF material name prefix cannot be empty")
        return errors


@dataclass
class ValidationConfig:
    """Configuration for post-parse validation in the load helpers"""
    enabled: bool = True

    def validate(self) -> List[str]:
        return []


@dataclass
class ExportConfig:
    """Configuration for encoders"""
    obj_header_comment: bool = True

    def validate(self) -> List[str]:
        return []


@dataclass
class LoggingConfig:
    """Configuration for logging output"""
    level: str = "INFO"
    log_file: Optional[str] = None
    use_colors: bool = True
    detailed: bool = False
    json_output: bool = False

    def validate(self) -> List[str]:
        errors = []
        if self.level.upper() not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            errors.append(f"Unknown log level: {self.level}")
        return errors


class Config:
    """Main configuration class"""

    SECTIONS = ('ply', 'obj', 'gltf', 'validation', 'export', 'logging')

    def __init__(self, config_path: Optional[str] = None):
        self.ply = PLYConfig()
        self.obj = OBJConfig()
        self.gltf = GLTFConfig()
        self.validation = ValidationConfig()
        self.export = ExportConfig()
        self.logging = LoggingConfig()

        self.config_file = config_path
        if config_path:
            self.load(config_path)

    def validate_all(self) -> Dict[str, List[str]]:
        """Validate all configuration sections"""
        return {name: getattr(self, name).validate() for name in self.SECTIONS}

    def has_errors(self) -> bool:
        """Check if any configuration has errors"""
        return any(self.validate_all().values())

    def get_error_summary(self) -> str:
        """Get a summary of all configuration errors"""
        summary = ""
        for section, section_errors in self.validate_all().items():
            if section_errors:
                summary += f"\n{section.upper()}:\n"
                for error in section_errors:
                    summary += f"  - {error}\n"
        return summary

    def load(self, config_path: Optional[str] = None):
        """Load configuration from a JSON file; unknown keys are ignored"""
        path = config_path or self.config_file
        if not path or not os.path.exists(path):
            logger.debug(f"No configuration file at {path}, using defaults")
            return

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Error loading config {path}: {e}, using defaults")
            self.reset_to_defaults()
            return

        if not isinstance(data, dict):
            logger.warning(f"Config {path} is not a JSON object, using defaults")
            self.reset_to_defaults()
            return

        self.from_dict(data)
        self.config_file = path
        logger.debug(f"Loaded configuration from {path}")

    def save(self, config_path: Optional[str] = None):
        """Save configuration to a JSON file"""
        path = config_path or self.config_file
        if not path:
            raise ValueError("No configuration path given")

        Path(path).parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(), f, indent=4)
        self.config_file = path

    def _load_section(self, data: dict, section_name: str, section_obj):
        """Load a configuration section"""
        section = data.get(section_name)
        if section is None:
            return
        if not isinstance(section, dict):
            logger.warning(f"Ignoring config section '{section_name}': expected an object")
            return
        for key, value in section.items():
            if not hasattr(section_obj, key):
                continue
            current = getattr(section_obj, key)
            if current is not None and type(value) is not type(current):
                logger.warning(f"Ignoring {section_name}.{key}: expected {type(current).__name__}")
                continue
            setattr(section_obj, key, value)

    def to_dict(self) -> Dict[str, Any]:
        return {name: asdict(getattr(self, name)) for name in self.SECTIONS}

    def from_dict(self, data: Dict[str, Any]):
        for name in self.SECTIONS:
            self._load_section(data, name, getattr(self, name))

    def reset_to_defaults(self):
        """Reset all configuration to defaults"""
        self.ply = PLYConfig()
        self.obj = OBJConfig()
        self.gltf = GLTFConfig()
        self.validation = ValidationConfig()
        self.export = ExportConfig()
        self.logging = LoggingConfig()


# Singleton instance
_config_instance = None

def get_config() -> Config:
    """Get global configuration instance"""
    global _config_instance
    if _config_instance is None:
        _config_instance = Config(os.environ.get(CONFIG_ENV_VAR))
    return _config_instance
