"""Geographic footprint of a georeferenced raster.

The bounds quadrilateral is the source image's four corners pushed through the
solved transform. Under rotation it is not axis-aligned, so it is kept as four
named corners; ``envelope`` gives the axis-aligned box for map widgets that
only accept one.
"""

from __future__ import annotations

import logging
import math
from typing import NamedTuple

import numpy as np

from georef_overlay.points import GeoPoint, ImagePoint
from georef_overlay.projection import DEFAULT_PROJECTOR, CoordinateProjector
from georef_overlay.similarity import (
    SimilarityTransform,
    map_forward,
    map_forward_many,
    map_inverse,
)
from georef_overlay.validation import is_finite_number

logger = logging.getLogger(__name__)

CORNER_NAMES = ("top_left", "top_right", "bottom_right", "bottom_left")


class BoundsQuad(NamedTuple):
    """Corners of the warped image, always in this order.

    Attributes:
        top_left: Geographic position of pixel (0, 0).
        top_right: Geographic position of pixel (width, 0).
        bottom_right: Geographic position of pixel (width, height).
        bottom_left: Geographic position of pixel (0, height).
    """

    top_left: GeoPoint
    top_right: GeoPoint
    bottom_right: GeoPoint
    bottom_left: GeoPoint


def corner_pixels(width: float, height: float) -> np.ndarray:
    """Pixel corners of a ``width`` x ``height`` raster in ``BoundsQuad`` order."""
    return np.array(
        [[0.0, 0.0], [width, 0.0], [width, height], [0.0, height]],
        dtype=np.float64,
    )


def compute_bounds(
    transform: SimilarityTransform,
    width: float,
    height: float,
    projector: CoordinateProjector = DEFAULT_PROJECTOR,
) -> BoundsQuad:
    """Map the raster corners through ``transform``.

    Args:
        transform: Solved similarity transform
        width: Source raster width in native pixels
        height: Source raster height in native pixels
        projector: Projector the transform was solved with

    Returns:
        BoundsQuad in [top_left, top_right, bottom_right, bottom_left] order

    Raises:
        ValueError: If width or height is not a positive finite number
        DegenerateInputError: If the transform cannot be applied
        OutOfDomainError: If a corner lands outside the projection domain
    """
    for name, value in (("width", width), ("height", height)):
        if not is_finite_number(value) or value <= 0:
            raise ValueError(f"{name} must be a positive finite number, got {value!r}")

    lonlat = map_forward_many(transform, corner_pixels(width, height), projector)
    quad = BoundsQuad(*(GeoPoint(float(lon), float(lat)) for lon, lat in lonlat))
    logger.debug(f"Computed bounds for {width}x{height} raster: {quad}")
    return quad


def map_point(
    transform: SimilarityTransform,
    point: ImagePoint,
    projector: CoordinateProjector = DEFAULT_PROJECTOR,
) -> GeoPoint:
    """Geographic coordinate of an arbitrary source pixel."""
    return map_forward(transform, point, projector)


def locate_point(
    transform: SimilarityTransform,
    geo: GeoPoint,
    projector: CoordinateProjector = DEFAULT_PROJECTOR,
) -> ImagePoint:
    """Source pixel of an arbitrary geographic coordinate (inverse of ``map_point``)."""
    return map_inverse(transform, geo, projector)


def envelope(bounds: BoundsQuad) -> tuple[float, float, float, float]:
    """Axis-aligned geographic box around the quad.

    Returns:
        Tuple of (min_lon, min_lat, max_lon, max_lat)
    """
    lons = [corner.longitude for corner in bounds]
    lats = [corner.latitude for corner in bounds]
    return (min(lons), min(lats), max(lons), max(lats))


def bounds_close(a: BoundsQuad, b: BoundsQuad, tolerance_deg: float = 1e-6) -> bool:
    """True if every corner of ``a`` is within ``tolerance_deg`` of ``b``'s."""
    return all(
        math.isclose(pa.longitude, pb.longitude, rel_tol=0.0, abs_tol=tolerance_deg)
        and math.isclose(pa.latitude, pb.latitude, rel_tol=0.0, abs_tol=tolerance_deg)
        for pa, pb in zip(a, b)
    )
