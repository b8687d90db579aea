"""
Two-point similarity solver.

Given two control point pairs, derive the unique 4-parameter similarity
transform (uniform scale s, rotation theta, translation t) satisfying, for both
pairs,

    project(geo_i) = t + s * R(theta) * F(image_i)

where F negates the image y coordinate. Image rows grow downward while
projected northings grow upward; without F the recovered rotation would be
mirrored.

Algorithm:
    1. d_img = F(image_2) - F(image_1)
    2. d_geo = project(geo_2) - project(geo_1)
    3. s = |d_geo| / |d_img|
    4. theta = atan2(d_geo) - atan2(d_img), normalized to (-180, 180]
    5. t = project(geo_1) - s * R(theta) * F(image_1)

Two correspondences supply exactly four equations, enough for the four
similarity parameters and no more: independent axis scales or shear are out of
reach by construction. Documents written by older tools label this transform
"affine"; the serializer keeps that label but the math here is a similarity.

The translation is stored geographically as the coordinate of pixel (0, 0)
(``unproject(t)``), so a transform is meaningful without knowing which
projector produced it, as long as the same projector is used to apply it.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np

from georef_overlay.control_points import (
    GROUND_EPSILON_M,
    PIXEL_EPSILON,
    ControlPointPair,
    ControlPointSet,
)
from georef_overlay.exceptions import DegenerateInputError
from georef_overlay.geotransform import Geotransform, apply_geotransform_many
from georef_overlay.points import GeoPoint, ImagePoint, ProjectedPoint
from georef_overlay.projection import DEFAULT_PROJECTOR, CoordinateProjector
from georef_overlay.types import Degrees, Meters, MetersPerPixel

logger = logging.getLogger(__name__)


def normalize_angle(degrees: float) -> Degrees:
    """Normalize an angle to the half-open interval (-180, 180]."""
    angle = math.fmod(degrees, 360.0)
    if angle <= -180.0:
        angle += 360.0
    elif angle > 180.0:
        angle -= 360.0
    return Degrees(angle)


def rotation_matrix(theta_deg: float) -> np.ndarray:
    """Return the 2x2 counter-clockwise rotation matrix for ``theta_deg``."""
    theta = math.radians(theta_deg)
    c, s = math.cos(theta), math.sin(theta)
    return np.array([[c, -s], [s, c]], dtype=np.float64)


@dataclass(frozen=True)
class SimilarityTransform:
    """Solved pixel -> projected-meters similarity.

    Attributes:
        scale: Projected meters per source pixel (> 0).
        rotation_deg: Counter-clockwise rotation in degrees, in (-180, 180].
        translation: Geographic anchor: the coordinate of image pixel (0, 0).
    """

    scale: MetersPerPixel
    rotation_deg: Degrees
    translation: GeoPoint

    def check(self) -> None:
        """Raise ``DegenerateInputError`` if the transform cannot be applied."""
        if not (math.isfinite(self.scale) and self.scale > 0):
            raise DegenerateInputError(
                f"Transform scale must be a positive finite number, got {self.scale}"
            )
        if not math.isfinite(self.rotation_deg):
            raise DegenerateInputError(
                f"Transform rotation must be finite, got {self.rotation_deg}"
            )

    def projected_origin(self, projector: CoordinateProjector = DEFAULT_PROJECTOR) -> ProjectedPoint:
        """Translation ``t`` in projected meters."""
        return projector.project(self.translation)

    def linear_part(self) -> np.ndarray:
        """2x2 matrix ``s * R(theta) * F`` applied to raw (x, y) pixel vectors."""
        flip = np.array([[1.0, 0.0], [0.0, -1.0]])
        return self.scale * rotation_matrix(self.rotation_deg) @ flip

    def to_geotransform(self, projector: CoordinateProjector = DEFAULT_PROJECTOR) -> Geotransform:
        """Express the transform as a GDAL geotransform in the projected CRS."""
        origin = self.projected_origin(projector)
        m = self.linear_part()
        return (
            origin.x, float(m[0, 0]), float(m[0, 1]),
            origin.y, float(m[1, 0]), float(m[1, 1]),
        )


def solve(
    first: ControlPointPair,
    second: ControlPointPair,
    projector: CoordinateProjector = DEFAULT_PROJECTOR,
    pixel_epsilon: float = PIXEL_EPSILON,
    ground_epsilon_m: float = GROUND_EPSILON_M,
) -> SimilarityTransform:
    """Derive the similarity transform from two control point pairs.

    Args:
        first: First correspondence
        second: Second correspondence
        projector: Projection defining the metric plane
        pixel_epsilon: Minimum image separation in pixels
        ground_epsilon_m: Minimum geographic separation in ground meters

    Returns:
        SimilarityTransform mapping pixels of the source raster to geography

    Raises:
        OutOfDomainError: If a geo point (or the image origin) cannot be projected
        DegenerateInputError: If the points do not determine scale and rotation
    """
    control_points = ControlPointSet(first=first, second=second)
    return solve_control_points(control_points, projector, pixel_epsilon, ground_epsilon_m)


def solve_control_points(
    control_points: ControlPointSet,
    projector: CoordinateProjector = DEFAULT_PROJECTOR,
    pixel_epsilon: float = PIXEL_EPSILON,
    ground_epsilon_m: float = GROUND_EPSILON_M,
) -> SimilarityTransform:
    """``solve`` for an existing ``ControlPointSet``."""
    projected_1, projected_2 = control_points.validate(projector, pixel_epsilon, ground_epsilon_m)
    image_1 = control_points.first.image
    image_2 = control_points.second.image

    flipped_1 = np.array([image_1.x, -image_1.y], dtype=np.float64)
    flipped_2 = np.array([image_2.x, -image_2.y], dtype=np.float64)

    d_img = flipped_2 - flipped_1
    d_geo = np.array(projected_2 - projected_1, dtype=np.float64)

    img_length = float(np.hypot(*d_img))
    if img_length < pixel_epsilon:
        raise DegenerateInputError(
            f"Image baseline {img_length:.3f} px is below {pixel_epsilon} px"
        )
    scale = float(np.hypot(*d_geo)) / img_length

    theta = normalize_angle(math.degrees(
        math.atan2(d_geo[1], d_geo[0]) - math.atan2(d_img[1], d_img[0])
    ))

    origin = np.array([projected_1.x, projected_1.y]) - scale * rotation_matrix(theta) @ flipped_1
    translation = projector.unproject(ProjectedPoint(Meters(origin[0]), Meters(origin[1])))

    transform = SimilarityTransform(
        scale=MetersPerPixel(scale),
        rotation_deg=theta,
        translation=translation,
    )
    logger.debug(
        f"Solved similarity: scale={scale:.6f} m/px, rotation={theta:.6f} deg, "
        f"origin=({translation.longitude:.8f}, {translation.latitude:.8f})"
    )
    return transform


def map_forward(
    transform: SimilarityTransform,
    point: ImagePoint,
    projector: CoordinateProjector = DEFAULT_PROJECTOR,
) -> GeoPoint:
    """Map a source-raster pixel to its geographic coordinate.

    Raises:
        DegenerateInputError: If the transform scale is not positive
        OutOfDomainError: If the pixel lands outside the projection domain
    """
    transform.check()
    origin = transform.projected_origin(projector)
    offset = transform.linear_part() @ np.array([point.x, point.y], dtype=np.float64)
    return projector.unproject(ProjectedPoint(
        Meters(origin.x + float(offset[0])),
        Meters(origin.y + float(offset[1])),
    ))


def map_forward_many(
    transform: SimilarityTransform,
    pixels: np.ndarray,
    projector: CoordinateProjector = DEFAULT_PROJECTOR,
) -> np.ndarray:
    """Map an (N, 2) array of pixels to an (N, 2) array of (lon, lat)."""
    transform.check()
    projected = apply_geotransform_many(pixels, transform.to_geotransform(projector))
    result = np.empty_like(projected)
    for i, (x, y) in enumerate(projected):
        geo = projector.unproject(ProjectedPoint(Meters(float(x)), Meters(float(y))))
        result[i] = (geo.longitude, geo.latitude)
    return result


def map_inverse(
    transform: SimilarityTransform,
    geo: GeoPoint,
    projector: CoordinateProjector = DEFAULT_PROJECTOR,
) -> ImagePoint:
    """Map a geographic coordinate back to source-raster pixels.

    Rotation and scale are undone and the y axis un-flipped.

    Raises:
        DegenerateInputError: If the transform scale is zero or non-finite
        OutOfDomainError: If ``geo`` cannot be projected
    """
    transform.check()
    origin = transform.projected_origin(projector)
    target = projector.project(geo)
    delta = np.array(target - origin, dtype=np.float64)
    unrotated = rotation_matrix(-transform.rotation_deg) @ delta / transform.scale
    return ImagePoint(x=float(unrotated[0]), y=float(-unrotated[1]))


def control_point_residuals(
    transform: SimilarityTransform,
    control_points: ControlPointSet,
    projector: CoordinateProjector = DEFAULT_PROJECTOR,
) -> dict[str, float]:
    """Pixel distance between each pair's image point and its mapped geo point.

    A transform solved from ``control_points`` reproduces them exactly, so
    residuals well above floating-point noise mean the transform belongs to a
    different point set (e.g., a stale document after a point was moved).
    """
    return {
        pair.id: map_inverse(transform, pair.geo, projector).distance_to(pair.image)
        for pair in control_points
    }


def ground_resolution(
    transform: SimilarityTransform,
    latitude: float,
    projector: CoordinateProjector = DEFAULT_PROJECTOR,
) -> Meters:
    """True ground meters per pixel at ``latitude`` (projected scale / sec(phi))."""
    return Meters(transform.scale / projector.scale_factor(latitude))
