"""
Configuration for the georeferencing engine.

Selects the projection backend, validation thresholds and the provenance
values stamped into new documents. Loaded from the ``georef`` section of a
YAML file or built from a dictionary.

Example YAML:
    georef:
      projection: spherical_mercator
      earth_radius_m: 6378137.0
      pixel_epsilon: 1.0
      ground_epsilon_m: 1.0
      coordinate_system: WGS84
      transform_type: similarity
"""

import logging
import math
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from georef_overlay.control_points import GROUND_EPSILON_M, PIXEL_EPSILON
from georef_overlay.document import (
    DEFAULT_COORDINATE_SYSTEM,
    DEFAULT_SOFTWARE,
    TRANSFORM_TYPE_SIMILARITY,
    TRANSFORM_TYPES,
)
from georef_overlay.projection import (
    EARTH_RADIUS_M,
    PROJECTORS,
    WEB_MERCATOR_CRS,
    CoordinateProjector,
    PyprojProjector,
    SphericalMercatorProjector,
)

logger = logging.getLogger(__name__)

CONFIG_SECTION = "georef"


@dataclass(frozen=True)
class GeorefConfig:
    """Engine configuration.

    Attributes:
        projection: Projector backend ("spherical_mercator" or "pyproj")
        earth_radius_m: Sphere radius for the spherical backend
        pyproj_crs: Planar CRS for the pyproj backend
        pixel_epsilon: Minimum control point separation in the image (pixels)
        ground_epsilon_m: Minimum control point separation on the ground (meters)
        coordinate_system: Datum identifier written to new documents
        transform_type: Transformation label written to new documents
        software: Producer name written to new documents
        json_indent: Indentation of saved documents (None for compact output)
    """
    projection: str = SphericalMercatorProjector.name
    earth_radius_m: float = EARTH_RADIUS_M
    pyproj_crs: str = WEB_MERCATOR_CRS
    pixel_epsilon: float = PIXEL_EPSILON
    ground_epsilon_m: float = GROUND_EPSILON_M
    coordinate_system: str = DEFAULT_COORDINATE_SYSTEM
    transform_type: str = TRANSFORM_TYPE_SIMILARITY
    software: str = DEFAULT_SOFTWARE
    json_indent: int | None = 2

    def __post_init__(self) -> None:
        if self.projection not in PROJECTORS:
            raise ValueError(
                f"Invalid projection '{self.projection}'. "
                f"Must be one of: {', '.join(PROJECTORS)}"
            )
        if self.transform_type not in TRANSFORM_TYPES:
            raise ValueError(
                f"Invalid transform_type '{self.transform_type}'. "
                f"Must be one of: {', '.join(TRANSFORM_TYPES)}"
            )
        for name in ("earth_radius_m", "pixel_epsilon", "ground_epsilon_m"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) \
                    or not math.isfinite(value) or value <= 0:
                raise ValueError(f"'{name}' must be a positive number, got {value!r}")
        if self.json_indent is not None and (
            isinstance(self.json_indent, bool) or not isinstance(self.json_indent, int)
            or self.json_indent < 0
        ):
            raise ValueError(f"'json_indent' must be a non-negative integer or null, got {self.json_indent!r}")

    def make_projector(self) -> CoordinateProjector:
        """Instantiate the configured projector."""
        if self.projection == PyprojProjector.name:
            return PyprojProjector(crs=self.pyproj_crs)
        return SphericalMercatorProjector(radius=self.earth_radius_m)

    @classmethod
    def from_dict(cls, config: dict) -> 'GeorefConfig':
        """Create configuration from dictionary.

        Unknown keys are rejected so typos do not silently fall back to defaults.

        Raises:
            ValueError: If configuration is invalid
        """
        if not isinstance(config, dict):
            raise ValueError(f"Configuration must be a dictionary, got {type(config)}")

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(config) - known)
        if unknown:
            raise ValueError(
                f"Unknown configuration keys: {', '.join(unknown)}. "
                f"Valid keys: {', '.join(sorted(known))}"
            )
        return cls(**config)

    @classmethod
    def from_yaml(cls, path: str | Path) -> 'GeorefConfig':
        """Load configuration from the ``georef`` section of a YAML file.

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
            with open(config_path, 'r') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Failed to parse YAML configuration file: {e}") from e

        if not data:
            raise ValueError(f"Configuration file is empty: {path}")

        if not isinstance(data, dict) or CONFIG_SECTION not in data:
            raise ValueError(
                f"Configuration file missing '{CONFIG_SECTION}' section: {path}\n"
                f"Expected structure: {CONFIG_SECTION}:\n  projection: ...\n  ..."
            )

        config = cls.from_dict(data[CONFIG_SECTION] or {})
        logger.debug(f"Loaded configuration from {path}: {config}")
        return config

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to a dictionary suitable for YAML serialization."""
        return asdict(self)

    def save_to_yaml(self, path: str | Path) -> None:
        """Save configuration to a YAML file under a ``georef`` section.

        Raises:
            IOError: If file cannot be written
        """
        config_path = Path(path)
        config_path.parent.mkdir(parents=True, exist_ok=True)

        output = {CONFIG_SECTION: self.to_dict()}

        try:
            with open(config_path, 'w') as f:
                yaml.safe_dump(output, f, default_flow_style=False, sort_keys=False)
        except IOError as e:
            raise IOError(f"Failed to write configuration file: {e}") from e


def get_default_config() -> GeorefConfig:
    """Return the default configuration (spherical Web Mercator, 1 px / 1 m epsilons)."""
    return GeorefConfig()
