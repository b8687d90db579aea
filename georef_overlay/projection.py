"""
Geographic <-> planar metric projection.

The similarity solver works in a conformal planar space where distances are in
meters and angles are preserved locally. This module provides that space via
Web Mercator (EPSG:3857):

    x = R * lambda
    y = R * ln(tan(pi/4 + phi/2))

and its inverse

    phi = 2 * atan(exp(y / R)) - pi/2
    lambda = x / R

where lambda/phi are longitude/latitude in radians and R is the sphere radius.

Two interchangeable implementations are provided:

1. ``SphericalMercatorProjector``: the closed-form formulas above (default).
2. ``PyprojProjector``: the same contract backed by pyproj transformers, useful
   when the planar CRS should be something other than EPSG:3857.

Radius Choice:
    ``EARTH_RADIUS_M`` is the WGS84 semi-major axis (6,378,137 m), the sphere
    EPSG:3857 is defined on. Scale values recovered by the solver are therefore
    in Web Mercator meters per pixel, which exceed true ground meters by the
    Mercator scale factor sec(phi); see ``CoordinateProjector.scale_factor``.

Accuracy Notes:
    - Conformal: local angles are exact, so rotation recovery is unaffected
    - Scale distortion is sec(phi), ~1.46x at 46.6 N; within one map sheet the
      variation across the sheet is negligible
    - Undefined at the poles; |latitude| >= 89.9999 is rejected
"""

import math
from abc import ABC, abstractmethod

from pyproj import Transformer

from georef_overlay.exceptions import OutOfDomainError
from georef_overlay.points import MAX_LONGITUDE, GeoPoint, ProjectedPoint
from georef_overlay.types import Meters, Unitless

# WGS84 semi-major axis in meters (the EPSG:3857 sphere)
EARTH_RADIUS_M = 6378137.0

WGS84_CRS = "EPSG:4326"
WEB_MERCATOR_CRS = "EPSG:3857"

# Longitudes recovered by unproject may overshoot +/-180 by float noise
_LONGITUDE_SLACK = 1e-9


class CoordinateProjector(ABC):
    """Converts geographic coordinates to and from a planar metric space.

    Implementations must be pure: no state changes after construction, so a
    single instance can be shared across threads and documents.
    """

    name: str = "abstract"

    @abstractmethod
    def project(self, geo: GeoPoint) -> ProjectedPoint:
        """Project a geographic point into planar meters.

        Raises:
            OutOfDomainError: If ``geo`` is outside the projection domain.
        """

    @abstractmethod
    def unproject(self, point: ProjectedPoint) -> GeoPoint:
        """Convert a planar point back to geographic coordinates.

        Raises:
            OutOfDomainError: If the planar point is non-finite or maps outside
                the geographic domain.
        """

    def scale_factor(self, latitude: float) -> Unitless:
        """Ratio of projected meters to ground meters at ``latitude``.

        For Mercator this is sec(phi). Used to convert ground tolerances into
        projected tolerances and projected scales into ground resolution.
        """
        return Unitless(1.0 / math.cos(math.radians(latitude)))

    @staticmethod
    def _checked_result(lon: float, lat: float) -> GeoPoint:
        if not (math.isfinite(lon) and math.isfinite(lat)):
            raise OutOfDomainError(
                f"Projected point maps to non-finite coordinates ({lon}, {lat})"
            )
        if abs(lon) > MAX_LONGITUDE + _LONGITUDE_SLACK:
            raise OutOfDomainError(
                f"Projected point maps to longitude {lon}, outside [-180, 180]"
            )
        lon = max(-MAX_LONGITUDE, min(MAX_LONGITUDE, lon))
        result = GeoPoint(longitude=lon, latitude=lat)
        result.check_domain()
        return result

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class SphericalMercatorProjector(CoordinateProjector):
    """Closed-form spherical Web Mercator.

    Args:
        radius: Sphere radius in meters (default: WGS84 semi-major axis)
    """

    name = "spherical_mercator"

    def __init__(self, radius: float = EARTH_RADIUS_M):
        if not (math.isfinite(radius) and radius > 0):
            raise ValueError(f"radius must be a positive finite number, got {radius}")
        self.radius = radius

    def project(self, geo: GeoPoint) -> ProjectedPoint:
        geo.check_domain()
        lam = math.radians(geo.longitude)
        phi = math.radians(geo.latitude)
        x = self.radius * lam
        y = self.radius * math.log(math.tan(math.pi / 4 + phi / 2))
        return ProjectedPoint(Meters(x), Meters(y))

    def unproject(self, point: ProjectedPoint) -> GeoPoint:
        if not (math.isfinite(point.x) and math.isfinite(point.y)):
            raise OutOfDomainError(
                f"Projected coordinates must be finite, got ({point.x}, {point.y})"
            )
        try:
            phi = 2 * math.atan(math.exp(point.y / self.radius)) - math.pi / 2
        except OverflowError:
            raise OutOfDomainError(
                f"Projected northing {point.y} is beyond the polar cut-off"
            ) from None
        lam = point.x / self.radius
        return self._checked_result(math.degrees(lam), math.degrees(phi))

    def __eq__(self, other: object) -> bool:
        return isinstance(other, SphericalMercatorProjector) and other.radius == self.radius

    def __hash__(self) -> int:
        return hash((self.name, self.radius))

    def __repr__(self) -> str:
        return f"SphericalMercatorProjector(radius={self.radius})"


class PyprojProjector(CoordinateProjector):
    """Projector backed by pyproj.

    With the default CRS (EPSG:3857) this is numerically the spherical Web
    Mercator above. Any other conformal projected CRS with meter units can be
    substituted; the Mercator scale factor is then only an approximation.

    Args:
        crs: Target projected CRS (e.g., "EPSG:3857")
    """

    name = "pyproj"

    def __init__(self, crs: str = WEB_MERCATOR_CRS):
        self.crs = crs
        self._to_planar = Transformer.from_crs(WGS84_CRS, crs, always_xy=True)
        self._to_wgs84 = Transformer.from_crs(crs, WGS84_CRS, always_xy=True)

    def project(self, geo: GeoPoint) -> ProjectedPoint:
        geo.check_domain()
        x, y = self._to_planar.transform(geo.longitude, geo.latitude)
        if not (math.isfinite(x) and math.isfinite(y)):
            raise OutOfDomainError(
                f"{self.crs} cannot represent ({geo.longitude}, {geo.latitude})"
            )
        return ProjectedPoint(Meters(x), Meters(y))

    def unproject(self, point: ProjectedPoint) -> GeoPoint:
        if not (math.isfinite(point.x) and math.isfinite(point.y)):
            raise OutOfDomainError(
                f"Projected coordinates must be finite, got ({point.x}, {point.y})"
            )
        lon, lat = self._to_wgs84.transform(point.x, point.y)
        return self._checked_result(lon, lat)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, PyprojProjector) and other.crs == self.crs

    def __hash__(self) -> int:
        return hash((self.name, self.crs))

    def __repr__(self) -> str:
        return f"PyprojProjector(crs={self.crs!r})"


PROJECTORS: dict[str, type[CoordinateProjector]] = {
    SphericalMercatorProjector.name: SphericalMercatorProjector,
    PyprojProjector.name: PyprojProjector,
}

DEFAULT_PROJECTOR: CoordinateProjector = SphericalMercatorProjector()


def get_projector(name: str = SphericalMercatorProjector.name, **kwargs) -> CoordinateProjector:
    """Create a projector by name.

    Args:
        name: One of ``PROJECTORS`` ("spherical_mercator", "pyproj")
        **kwargs: Forwarded to the projector constructor (``radius`` or ``crs``)

    Returns:
        CoordinateProjector instance

    Raises:
        ValueError: If the name is unknown
    """
    try:
        projector_cls = PROJECTORS[name]
    except KeyError:
        raise ValueError(
            f"Unknown projection '{name}'. Must be one of: {', '.join(PROJECTORS)}"
        ) from None
    return projector_cls(**kwargs)
