"""
Configuration for the picture calibration engine.

Loaded from a YAML file with a ``calibration`` section, or built from a
dictionary. Every field has a default so an empty section is valid.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List
import logging

import yaml

from picture_calibration.matrix3d import SINGULAR_EPSILON
from picture_calibration.projection import WEB_MERCATOR_CODE

logger = logging.getLogger(__name__)

DEFAULT_SELECTION_RADIUS_PX = 10.0


@dataclass
class CalibrationConfig:
    """Engine configuration.

    Attributes:
        projection_code: CRS of the host map (e.g. "EPSG:3857")
        selection_radius_px: Maximum distance, in picture-local pixels, at
            which a click selects a control point
        singular_epsilon: Determinant magnitude under which three control
            points are treated as colinear
        calibration_extension: Suffix appended to an image name for its
            calibration sidecar
        world_file_extensions: Extra world file suffixes tried after the
            image-specific ones (.jgw, .jpgw, ...)
    """
    projection_code: str = WEB_MERCATOR_CODE
    selection_radius_px: float = DEFAULT_SELECTION_RADIUS_PX
    singular_epsilon: float = SINGULAR_EPSILON
    calibration_extension: str = ".cal"
    world_file_extensions: List[str] = field(default_factory=lambda: [".wld"])

    @classmethod
    def from_yaml(cls, path: str) -> 'CalibrationConfig':
        """Load configuration from YAML file.

        Args:
            path: Path to YAML configuration file

        Returns:
            CalibrationConfig instance loaded from file

        Raises:
            FileNotFoundError: If configuration file does not exist
            ValueError: If configuration file is malformed or contains invalid values
        """
        config_path = Path(path)

        if not config_path.exists():
            raise FileNotFoundError(
                f"Configuration file not found: {path}\n"
                f"Please create a configuration file or use get_default_config()"
            )

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Failed to parse YAML configuration file: {e}") from e

        if not data:
            raise ValueError(
                f"Configuration file is empty: {path}\n"
                f"Expected a 'calibration' section"
            )

        if 'calibration' not in data:
            raise ValueError(
                f"Configuration file missing 'calibration' section: {path}\n"
                f"Expected structure: calibration:\n  projection_code: ...\n  ..."
            )

        return cls.from_dict(data['calibration'] or {})

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> 'CalibrationConfig':
        """Create configuration from dictionary.

        Raises:
            ValueError: If a value has the wrong type or range, or a key is unknown
        """
        if not isinstance(config, dict):
            raise ValueError(f"Configuration must be a dictionary, got {type(config)}")

        known = {f for f in cls.__dataclass_fields__}
        unknown = set(config) - known
        if unknown:
            raise ValueError(
                f"Unknown configuration keys: {', '.join(sorted(unknown))}. "
                f"Valid keys: {', '.join(sorted(known))}"
            )

        instance = cls(**config)
        instance.validate()
        return instance

    def validate(self):
        """Check value types and ranges.

        Raises:
            ValueError: On the first invalid value
        """
        if not isinstance(self.projection_code, str) or not self.projection_code:
            raise ValueError(f"projection_code must be a non-empty string, got {self.projection_code!r}")

        for name in ('selection_radius_px', 'singular_epsilon'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                raise ValueError(f"{name} must be a positive number, got {value!r}")

        if not isinstance(self.calibration_extension, str) or \
                not self.calibration_extension.startswith('.'):
            raise ValueError(
                f"calibration_extension must start with '.', got {self.calibration_extension!r}"
            )

        if not isinstance(self.world_file_extensions, list) or not all(
                isinstance(ext, str) and ext.startswith('.') for ext in self.world_file_extensions):
            raise ValueError(
                f"world_file_extensions must be a list of '.ext' strings, "
                f"got {self.world_file_extensions!r}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'projection_code': self.projection_code,
            'selection_radius_px': self.selection_radius_px,
            'singular_epsilon': self.singular_epsilon,
            'calibration_extension': self.calibration_extension,
            'world_file_extensions': list(self.world_file_extensions),
        }


def get_default_config() -> CalibrationConfig:
    """Return the default configuration."""
    return CalibrationConfig()
