#!/usr/bin/env python3
"""
JSON persistence for transform documents.

Document Schema:
    {
      "version": "1.0",
      "metadata": {
        "created": "2025-03-01T10:00:00+00:00",
        "modified": "2025-03-01T10:05:00+00:00",
        "software": "georef-overlay"
      },
      "source": {
        "filename": "sheet_42.png",
        "dimensions": {"width": 4000, "height": 3000},
        "coordinateSystem": "WGS84"
      },
      "preparation": {
        "legendRemoval": {
          "enabled": true,
          "mode": "remove",
          "selections": [
            {"id": "r1", "x": 10, "y": 20, "width": 300, "height": 120, "unit": "pixels"}
          ]
        }
      },
      "georeferencing": {
        "referencePoints": [
          {"id": "P1",
           "image": {"x": 100.0, "y": 100.0, "unit": "pixels"},
           "world": {"x": 13.845, "y": 46.6085, "unit": "degrees"}},
          {"id": "P2", ...}
        ],
        "transformation": {
          "type": "similarity",
          "parameters": {
            "scale": 0.2653,
            "rotation": 0.0,
            "translation": {"x": 13.84475, "y": 46.60866}
          },
          "bounds": {
            "topLeft": [lon, lat], "topRight": [lon, lat],
            "bottomRight": [lon, lat], "bottomLeft": [lon, lat]
          }
        }
      }
    }

Reading accepts image units "pixels" and "normalized" (fractions of the source
dimensions) and world units "degrees" and "meters" (projected Web Mercator
meters). Writing always emits pixels and degrees. The legacy transformation
type "affine" is accepted and preserved.

Deserialization is all-or-nothing: any missing, mistyped or out-of-range field
rejects the whole document with ``MalformedDocumentError``; an unsupported
major version raises ``IncompatibleVersionError``. Nothing is repaired.
"""

from __future__ import annotations

import json
import logging
import math
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

from georef_overlay.bounds import CORNER_NAMES, BoundsQuad, bounds_close, compute_bounds
from georef_overlay.control_points import ControlPointPair, ControlPointSet
from georef_overlay.document import (
    LEGEND_MODES,
    TRANSFORM_TYPES,
    DocumentMetadata,
    LegendRemoval,
    Preparation,
    SourceInfo,
    TransformDocument,
    as_utc,
)
from georef_overlay.exceptions import (
    GeorefError,
    IncompatibleVersionError,
    MalformedDocumentError,
)
from georef_overlay.points import GeoPoint, ImagePoint, ProjectedPoint
from georef_overlay.projection import DEFAULT_PROJECTOR, CoordinateProjector
from georef_overlay.similarity import SimilarityTransform, control_point_residuals
from georef_overlay.types import Degrees, Meters, MetersPerPixel
from georef_overlay.validation import is_finite_number, validate_image_dimension

logger = logging.getLogger(__name__)

SUPPORTED_MAJOR_VERSIONS = (1,)

IMAGE_UNITS = ("pixels", "normalized")
WORLD_UNITS = ("degrees", "meters")

# Persisted coordinates may be off by this much (~0.1 m at the equator), e.g.
# when a producer writes six decimals
COORDINATE_TOLERANCE_DEG = 1e-6
# Stored bounds may differ from recomputed ones by this much before the cache
# is considered stale
BOUNDS_TOLERANCE_DEG = COORDINATE_TOLERANCE_DEG
# Floor for the reference point residual tolerance
MIN_RESIDUAL_TOLERANCE_PX = 1e-2

_VERSION_PATTERN = re.compile(r"^(\d+)(?:\.\d+)*$")

_CORNER_KEYS = {
    "top_left": "topLeft",
    "top_right": "topRight",
    "bottom_right": "bottomRight",
    "bottom_left": "bottomLeft",
}


class FileSystem(Protocol):
    """Protocol for file system operations."""

    def read_text(self, path: str | Path) -> str:
        """Read text from a file."""
        ...

    def write_text(self, path: str | Path, content: str) -> None:
        """Write text to a file."""
        ...


class DefaultFileSystem:
    """Default file system implementation."""

    def read_text(self, path: str | Path) -> str:
        return Path(path).read_text(encoding="utf-8-sig")

    def write_text(self, path: str | Path, content: str) -> None:
        Path(path).write_text(content, encoding="utf-8")


def _get_fs(fs: FileSystem | None) -> FileSystem:
    """Return the provided filesystem or the default."""
    return fs if fs is not None else DefaultFileSystem()


# ============================================================================
# Serialization
# ============================================================================

def _serialize_timestamp(value: datetime) -> str:
    return value.isoformat()


def _serialize_reference_point(pair: ControlPointPair) -> dict[str, Any]:
    return {
        "id": pair.id,
        "image": {"x": float(pair.image.x), "y": float(pair.image.y), "unit": "pixels"},
        "world": {"x": float(pair.geo.longitude), "y": float(pair.geo.latitude), "unit": "degrees"},
    }


def _serialize_preparation(preparation: Preparation) -> dict[str, Any]:
    legend = preparation.legend_removal
    return {
        **preparation.extra,
        "legendRemoval": {
            "enabled": legend.enabled,
            "mode": legend.mode,
            "selections": [dict(selection) for selection in legend.selections],
        },
    }


def to_dict(document: TransformDocument) -> dict[str, Any]:
    """Convert a document to the JSON-compatible persisted structure."""
    transform = document.transform
    return {
        "version": document.version,
        "metadata": {
            "created": _serialize_timestamp(document.metadata.created),
            "modified": _serialize_timestamp(document.metadata.modified),
            "software": document.metadata.software,
        },
        "source": {
            "filename": document.source.filename,
            "dimensions": {
                "width": int(document.source.width),
                "height": int(document.source.height),
            },
            "coordinateSystem": document.source.coordinate_system,
        },
        "preparation": _serialize_preparation(document.preparation),
        "georeferencing": {
            "referencePoints": [
                _serialize_reference_point(pair) for pair in document.control_points
            ],
            "transformation": {
                "type": document.transform_type,
                "parameters": {
                    "scale": float(transform.scale),
                    "rotation": float(transform.rotation_deg),
                    "translation": {
                        "x": float(transform.translation.longitude),
                        "y": float(transform.translation.latitude),
                    },
                },
                "bounds": {
                    _CORNER_KEYS[name]: getattr(document.bounds, name).as_lonlat()
                    for name in CORNER_NAMES
                },
            },
        },
    }


def serialize(document: TransformDocument, indent: int | None = 2) -> str:
    """Serialize a document to JSON text.

    Floats are written with full ``repr`` precision, so ``deserialize`` of the
    result reproduces the document exactly.
    """
    return json.dumps(to_dict(document), indent=indent, ensure_ascii=False, allow_nan=False)


# ============================================================================
# Deserialization helpers
# ============================================================================

def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _section(data: dict[str, Any], key: str, path: str) -> dict[str, Any]:
    """Return ``data[key]`` if it is an object, else raise."""
    value = _field(data, key, path)
    if not isinstance(value, dict):
        raise MalformedDocumentError(
            f"must be an object, got {type(value).__name__}", _join(path, key)
        )
    return value


def _field(data: dict[str, Any], key: str, path: str) -> Any:
    if key not in data:
        raise MalformedDocumentError(f"missing required field '{key}'", path or None)
    return data[key]


def _string(data: dict[str, Any], key: str, path: str) -> str:
    value = _field(data, key, path)
    if not isinstance(value, str):
        raise MalformedDocumentError(
            f"must be a string, got {type(value).__name__}", _join(path, key)
        )
    return value


def _number(data: dict[str, Any], key: str, path: str) -> float:
    value = _field(data, key, path)
    if not is_finite_number(value):
        raise MalformedDocumentError(
            f"must be a finite number, got {value!r}", _join(path, key)
        )
    return float(value)


def _timestamp(data: dict[str, Any], key: str, path: str) -> datetime:
    value = _field(data, key, path)
    if isinstance(value, datetime):
        timestamp = value
    elif isinstance(value, str):
        try:
            timestamp = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as e:
            raise MalformedDocumentError(
                f"invalid ISO-8601 timestamp {value!r}", _join(path, key)
            ) from e
    else:
        raise MalformedDocumentError(
            f"must be an ISO-8601 string, got {type(value).__name__}", _join(path, key)
        )

    return as_utc(timestamp)


def _geo_point(lon: float, lat: float, path: str) -> GeoPoint:
    geo = GeoPoint(longitude=lon, latitude=lat)
    try:
        geo.check_domain()
    except GeorefError as e:
        raise MalformedDocumentError(str(e), path) from e
    return geo


def _parse_version(data: dict[str, Any]) -> str:
    version = _string(data, "version", "")
    match = _VERSION_PATTERN.match(version)
    if not match:
        raise MalformedDocumentError(f"invalid version string {version!r}", "version")
    if int(match.group(1)) not in SUPPORTED_MAJOR_VERSIONS:
        raise IncompatibleVersionError(version, SUPPORTED_MAJOR_VERSIONS)
    return version


def _parse_metadata(data: dict[str, Any]) -> DocumentMetadata:
    path = "metadata"
    section = _section(data, "metadata", "")
    return DocumentMetadata(
        created=_timestamp(section, "created", path),
        modified=_timestamp(section, "modified", path),
        software=_string(section, "software", path),
    )


def _parse_source(data: dict[str, Any]) -> SourceInfo:
    path = "source"
    section = _section(data, "source", "")
    dimensions = _section(section, "dimensions", path)
    dims_path = _join(path, "dimensions")
    parsed = {}
    for name in ("width", "height"):
        try:
            parsed[name] = validate_image_dimension(_field(dimensions, name, dims_path), name)
        except ValueError as e:
            if isinstance(e, MalformedDocumentError):
                raise
            raise MalformedDocumentError(str(e), _join(dims_path, name)) from e
    return SourceInfo(
        filename=_string(section, "filename", path),
        width=parsed["width"],
        height=parsed["height"],
        coordinate_system=_string(section, "coordinateSystem", path),
    )


def _parse_preparation(data: dict[str, Any]) -> Preparation:
    path = "preparation"
    section = _section(data, "preparation", "")
    legend = _section(section, "legendRemoval", path)
    legend_path = _join(path, "legendRemoval")

    enabled = _field(legend, "enabled", legend_path)
    if not isinstance(enabled, bool):
        raise MalformedDocumentError(
            f"must be a boolean, got {type(enabled).__name__}", _join(legend_path, "enabled")
        )
    mode = _string(legend, "mode", legend_path)
    if mode not in LEGEND_MODES:
        raise MalformedDocumentError(
            f"must be one of {', '.join(LEGEND_MODES)}, got {mode!r}", _join(legend_path, "mode")
        )
    selections = _field(legend, "selections", legend_path)
    if not isinstance(selections, list):
        raise MalformedDocumentError(
            f"must be a list, got {type(selections).__name__}", _join(legend_path, "selections")
        )

    try:
        legend_removal = LegendRemoval(enabled=enabled, mode=mode, selections=tuple(selections))
    except ValueError as e:
        raise MalformedDocumentError(str(e), _join(legend_path, "selections")) from e

    extra = {key: value for key, value in section.items() if key != "legendRemoval"}
    return Preparation(legend_removal=legend_removal, extra=extra)


def _parse_reference_point(
    data: Any,
    index: int,
    source: SourceInfo,
    projector: CoordinateProjector,
) -> ControlPointPair:
    path = f"georeferencing.referencePoints[{index}]"
    if not isinstance(data, dict):
        raise MalformedDocumentError(f"must be an object, got {type(data).__name__}", path)

    point_id = _string(data, "id", path)

    image = _section(data, "image", path)
    image_path = _join(path, "image")
    image_unit = _string(image, "unit", image_path)
    x = _number(image, "x", image_path)
    y = _number(image, "y", image_path)
    if image_unit == "normalized":
        x, y = x * source.width, y * source.height
    elif image_unit != "pixels":
        raise MalformedDocumentError(
            f"must be one of {', '.join(IMAGE_UNITS)}, got {image_unit!r}",
            _join(image_path, "unit"),
        )

    world = _section(data, "world", path)
    world_path = _join(path, "world")
    world_unit = _string(world, "unit", world_path)
    wx = _number(world, "x", world_path)
    wy = _number(world, "y", world_path)
    if world_unit == "degrees":
        geo = _geo_point(wx, wy, world_path)
    elif world_unit == "meters":
        try:
            geo = projector.unproject(ProjectedPoint(Meters(wx), Meters(wy)))
        except GeorefError as e:
            raise MalformedDocumentError(str(e), world_path) from e
    else:
        raise MalformedDocumentError(
            f"must be one of {', '.join(WORLD_UNITS)}, got {world_unit!r}",
            _join(world_path, "unit"),
        )

    return ControlPointPair(image=ImagePoint(x, y), geo=geo, id=point_id)


def _parse_control_points(
    section: dict[str, Any],
    source: SourceInfo,
    projector: CoordinateProjector,
) -> ControlPointSet:
    path = "georeferencing.referencePoints"
    points = _field(section, "referencePoints", "georeferencing")
    if not isinstance(points, list):
        raise MalformedDocumentError(f"must be a list, got {type(points).__name__}", path)
    if len(points) != 2:
        raise MalformedDocumentError(f"must hold exactly 2 reference points, got {len(points)}", path)

    first, second = (
        _parse_reference_point(point, i, source, projector) for i, point in enumerate(points)
    )
    try:
        control_points = ControlPointSet.from_pairs([first, second])
        control_points.validate(projector)
    except GeorefError as e:
        raise MalformedDocumentError(str(e), path) from e
    return control_points


def _parse_transformation(section: dict[str, Any]) -> tuple[str, SimilarityTransform, BoundsQuad]:
    path = "georeferencing.transformation"
    transformation = _section(section, "transformation", "georeferencing")

    transform_type = _string(transformation, "type", path)
    if transform_type not in TRANSFORM_TYPES:
        raise MalformedDocumentError(
            f"must be one of {', '.join(TRANSFORM_TYPES)}, got {transform_type!r}",
            _join(path, "type"),
        )

    params_path = _join(path, "parameters")
    parameters = _section(transformation, "parameters", path)
    scale = _number(parameters, "scale", params_path)
    if scale <= 0:
        raise MalformedDocumentError(f"must be > 0, got {scale}", _join(params_path, "scale"))
    rotation = _number(parameters, "rotation", params_path)
    if not -180.0 < rotation <= 180.0:
        raise MalformedDocumentError(
            f"must be in (-180, 180], got {rotation}", _join(params_path, "rotation")
        )
    translation = _section(parameters, "translation", params_path)
    translation_path = _join(params_path, "translation")
    anchor = _geo_point(
        _number(translation, "x", translation_path),
        _number(translation, "y", translation_path),
        translation_path,
    )

    bounds_path = _join(path, "bounds")
    bounds_section = _section(transformation, "bounds", path)
    corners = []
    for name in CORNER_NAMES:
        key = _CORNER_KEYS[name]
        corner_path = _join(bounds_path, key)
        value = _field(bounds_section, key, bounds_path)
        if not (isinstance(value, list) and len(value) == 2):
            raise MalformedDocumentError("must be a [lon, lat] pair", corner_path)
        if not all(is_finite_number(v) for v in value):
            raise MalformedDocumentError(f"must hold finite numbers, got {value!r}", corner_path)
        corners.append(_geo_point(float(value[0]), float(value[1]), corner_path))

    transform = SimilarityTransform(
        scale=MetersPerPixel(scale),
        rotation_deg=Degrees(rotation),
        translation=anchor,
    )
    return transform_type, transform, BoundsQuad(*corners)


def _coordinate_span_m(geo: GeoPoint, projector: CoordinateProjector) -> float:
    """Projected length of a ``COORDINATE_TOLERANCE_DEG`` step in both axes at ``geo``."""
    # Step toward the equator and prime meridian so the shifted point stays in domain
    step_lon = -COORDINATE_TOLERANCE_DEG if geo.longitude > 0 else COORDINATE_TOLERANCE_DEG
    step_lat = -COORDINATE_TOLERANCE_DEG if geo.latitude > 0 else COORDINATE_TOLERANCE_DEG
    shifted = GeoPoint(geo.longitude + step_lon, geo.latitude + step_lat)
    return projector.project(geo).distance_to(projector.project(shifted))


def residual_tolerance_px(
    transform: SimilarityTransform,
    geo: GeoPoint,
    projector: CoordinateProjector = DEFAULT_PROJECTOR,
) -> float:
    """Largest reference point residual explained by coordinate rounding.

    Both the stored translation and the stored reference coordinate may be off
    by ``COORDINATE_TOLERANCE_DEG``; their projected spans, divided by the
    scale, bound the residual in pixels.
    """
    span = (
        _coordinate_span_m(transform.translation, projector)
        + _coordinate_span_m(geo, projector)
    )
    return max(MIN_RESIDUAL_TOLERANCE_PX, span / transform.scale)


def _check_consistency(
    source: SourceInfo,
    control_points: ControlPointSet,
    transform: SimilarityTransform,
    bounds: BoundsQuad,
    projector: CoordinateProjector,
) -> None:
    """Reject documents whose cached values do not follow from their inputs."""
    path = "georeferencing.transformation"
    try:
        residuals = control_point_residuals(transform, control_points, projector)
        expected = compute_bounds(transform, source.width, source.height, projector)
    except GeorefError as e:
        raise MalformedDocumentError(str(e), path) from e

    for pair in control_points:
        residual = residuals[pair.id]
        tolerance = residual_tolerance_px(transform, pair.geo, projector)
        if not residual <= tolerance:
            raise MalformedDocumentError(
                f"transform does not reproduce reference point '{pair.id}' "
                f"(residual {residual:.4f} px > {tolerance:.4f} px)",
                _join(path, "parameters"),
            )
    if not bounds_close(bounds, expected, BOUNDS_TOLERANCE_DEG):
        raise MalformedDocumentError(
            f"stored bounds differ from bounds recomputed from the transform and "
            f"source dimensions by more than {BOUNDS_TOLERANCE_DEG} degrees",
            _join(path, "bounds"),
        )


def from_dict(data: Any, projector: CoordinateProjector = DEFAULT_PROJECTOR) -> TransformDocument:
    """Build a document from its persisted structure.

    Args:
        data: Parsed JSON (or YAML) structure
        projector: Projector used for "meters" world units and consistency checks

    Returns:
        TransformDocument

    Raises:
        IncompatibleVersionError: If the major version is unsupported
        MalformedDocumentError: If any field is missing, mistyped or out of range
    """
    if not isinstance(data, dict):
        raise MalformedDocumentError(f"document must be an object, got {type(data).__name__}")

    version = _parse_version(data)
    metadata = _parse_metadata(data)
    source = _parse_source(data)
    preparation = _parse_preparation(data)

    georeferencing = _section(data, "georeferencing", "")
    control_points = _parse_control_points(georeferencing, source, projector)
    transform_type, transform, bounds = _parse_transformation(georeferencing)
    _check_consistency(source, control_points, transform, bounds, projector)

    return TransformDocument(
        metadata=metadata,
        source=source,
        control_points=control_points,
        transform=transform,
        bounds=bounds,
        preparation=preparation,
        transform_type=transform_type,
        version=version,
    )


def deserialize(
    payload: str | bytes | dict[str, Any],
    projector: CoordinateProjector = DEFAULT_PROJECTOR,
) -> TransformDocument:
    """Parse JSON text (or an already-decoded structure) into a document.

    Raises:
        IncompatibleVersionError: If the major version is unsupported
        MalformedDocumentError: If the payload is not valid JSON or fails validation
    """
    if isinstance(payload, dict):
        return from_dict(payload, projector)

    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = payload.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise MalformedDocumentError(f"document is not valid UTF-8: {e}") from e

    if not isinstance(payload, str):
        raise MalformedDocumentError(
            f"expected JSON text, bytes or dict, got {type(payload).__name__}"
        )

    try:
        data = json.loads(payload.removeprefix("\ufeff"), parse_constant=_reject_constant)
    except ValueError as e:
        raise MalformedDocumentError(f"invalid JSON: {e}") from e
    except RecursionError as e:
        raise MalformedDocumentError("invalid JSON: nesting too deep") from e
    return from_dict(data, projector)


def _reject_constant(name: str) -> float:
    """JSON NaN/Infinity literals are parsed as NaN so validation rejects them."""
    return math.nan


def save(
    document: TransformDocument,
    path: str | Path,
    fs: FileSystem | None = None,
    indent: int | None = 2,
) -> None:
    """Write a document to a JSON file.

    Args:
        document: Document to save
        path: Output path
        fs: File system implementation (default: DefaultFileSystem)
        indent: JSON indentation (default: 2)
    """
    _get_fs(fs).write_text(path, serialize(document, indent=indent))
    logger.info(f"Saved transform document for '{document.source.filename}' to {path}")


def load(
    path: str | Path,
    fs: FileSystem | None = None,
    projector: CoordinateProjector = DEFAULT_PROJECTOR,
) -> TransformDocument:
    """Read a document from a JSON file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        IncompatibleVersionError: If the major version is unsupported
        MalformedDocumentError: If the content fails validation
    """
    document = deserialize(_get_fs(fs).read_text(path), projector)
    logger.info(f"Loaded transform document for '{document.source.filename}' from {path}")
    return document
