"""
Two-point georeferencing engine.

This package aligns a scanned or rendered document image with a geographic map
from exactly two correspondences between pixel locations and real-world
coordinates, and persists/reloads the resulting alignment.

The pipeline runs leaves-first:
    - CoordinateProjector: geographic <-> Web Mercator meters
    - ControlPointSet: validation of the two correspondences
    - SimilaritySolver: uniform scale, rotation and translation
    - BoundsCalculator: warped corner quadrilateral and point mapping
    - TransformSerializer: lossless JSON persistence

Example Usage:
    >>> from georef_overlay import (
    ...     ControlPointPair, ControlPointSet, GeoPoint, ImagePoint,
    ...     create_document, map_forward, serialize,
    ... )
    >>> points = ControlPointSet(
    ...     ControlPointPair(ImagePoint(100, 100), GeoPoint(13.845, 46.6085), "P1"),
    ...     ControlPointPair(ImagePoint(900, 100), GeoPoint(13.847, 46.6085), "P2"),
    ... )
    >>> doc = create_document(points, "sheet.png", width=1000, height=800)
    >>> doc.transform.rotation_deg
    0.0
    >>> geo = map_forward(doc.transform, ImagePoint(500, 400))
    >>> text = serialize(doc)
"""

# Errors
from georef_overlay.exceptions import (
    GeorefError,
    OutOfDomainError,
    DegenerateInputError,
    IncompatibleVersionError,
    MalformedDocumentError,
)

# Value objects
from georef_overlay.points import GeoPoint, ImagePoint, ProjectedPoint

# Engine components
from georef_overlay.projection import (
    CoordinateProjector,
    SphericalMercatorProjector,
    PyprojProjector,
    DEFAULT_PROJECTOR,
    EARTH_RADIUS_M,
    get_projector,
)
from georef_overlay.control_points import ControlPointPair, ControlPointSet
from georef_overlay.similarity import (
    SimilarityTransform,
    solve,
    solve_control_points,
    map_forward,
    map_inverse,
)
from georef_overlay.bounds import BoundsQuad, compute_bounds, envelope
from georef_overlay.document import (
    TransformDocument,
    DocumentMetadata,
    SourceInfo,
    Preparation,
    LegendRemoval,
    create_document,
)
from georef_overlay.serializer import serialize, deserialize

# Configuration
from georef_overlay.config import GeorefConfig, get_default_config

# Define public API
__all__ = [
    # Errors
    'GeorefError',
    'OutOfDomainError',
    'DegenerateInputError',
    'IncompatibleVersionError',
    'MalformedDocumentError',

    # Value objects
    'GeoPoint',
    'ImagePoint',
    'ProjectedPoint',

    # Engine
    'CoordinateProjector',
    'SphericalMercatorProjector',
    'PyprojProjector',
    'DEFAULT_PROJECTOR',
    'EARTH_RADIUS_M',
    'get_projector',
    'ControlPointPair',
    'ControlPointSet',
    'SimilarityTransform',
    'solve',
    'solve_control_points',
    'map_forward',
    'map_inverse',
    'BoundsQuad',
    'compute_bounds',
    'envelope',

    # Documents
    'TransformDocument',
    'DocumentMetadata',
    'SourceInfo',
    'Preparation',
    'LegendRemoval',
    'create_document',
    'serialize',
    'deserialize',

    # Configuration
    'GeorefConfig',
    'get_default_config',
]

# Package metadata
__version__ = '0.1.0'
__description__ = 'Two-point similarity georeferencing for scanned map images'
