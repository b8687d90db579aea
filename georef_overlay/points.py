"""Point representations for the three coordinate spaces.

* ``ImagePoint``: native raster pixels, origin top-left, y grows downward.
* ``GeoPoint``: WGS84 longitude/latitude in degrees.
* ``ProjectedPoint``: planar meters produced by a ``CoordinateProjector``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from georef_overlay.exceptions import OutOfDomainError
from georef_overlay.types import Degrees, Meters, PixelsFloat

MIN_LONGITUDE = -180.0
MAX_LONGITUDE = 180.0
# Mercator diverges at the poles; latitudes at or beyond this are rejected.
MAX_LATITUDE = 89.9999


@dataclass(frozen=True)
class ImagePoint:
    """Pixel coordinates in the source raster.

    Attributes:
        x: Pixel x coordinate (column).
        y: Pixel y coordinate (row), increasing downward.
    """

    x: PixelsFloat
    y: PixelsFloat

    @property
    def to_pixel(self) -> tuple[int, int]:
        """Convert to integer pixel coordinates.

        Returns:
            Tuple of (x, y) rounded to nearest integer.
        """
        return (round(self.x), round(self.y))

    def distance_to(self, other: ImagePoint) -> float:
        """Euclidean distance to another image point, in pixels."""
        return math.hypot(other.x - self.x, other.y - self.y)

    def to_dict(self) -> dict[str, Any]:
        return {"x": self.x, "y": self.y}


@dataclass(frozen=True)
class GeoPoint:
    """Geographic coordinate on WGS84.

    Attributes:
        longitude: Longitude in degrees, positive east.
        latitude: Latitude in degrees, positive north.
    """

    longitude: Degrees
    latitude: Degrees

    def check_domain(self) -> None:
        """Raise ``OutOfDomainError`` unless this point can be projected.

        The valid domain is longitude in [-180, 180] and |latitude| strictly
        below ``MAX_LATITUDE``; both values must be finite.
        """
        lon, lat = self.longitude, self.latitude
        if not (math.isfinite(lon) and math.isfinite(lat)):
            raise OutOfDomainError(
                f"Coordinates must be finite, got longitude={lon}, latitude={lat}"
            )
        if lon < MIN_LONGITUDE or lon > MAX_LONGITUDE:
            raise OutOfDomainError(
                f"Longitude {lon} outside valid range [{MIN_LONGITUDE}, {MAX_LONGITUDE}]"
            )
        if abs(lat) >= MAX_LATITUDE:
            raise OutOfDomainError(
                f"Latitude {lat} too close to a pole; |latitude| must be below {MAX_LATITUDE}"
            )

    @property
    def in_domain(self) -> bool:
        try:
            self.check_domain()
        except OutOfDomainError:
            return False
        return True

    def as_lonlat(self) -> list[float]:
        """Return ``[lon, lat]``, the order used by GeoJSON and the document bounds."""
        return [self.longitude, self.latitude]


@dataclass(frozen=True)
class ProjectedPoint:
    """Position in a projection's planar metric space.

    Attributes:
        x: Easting in meters.
        y: Northing in meters (grows upward, opposite to image rows).
    """

    x: Meters
    y: Meters

    def __sub__(self, other: ProjectedPoint) -> tuple[float, float]:
        return (self.x - other.x, self.y - other.y)

    def distance_to(self, other: ProjectedPoint) -> float:
        return math.hypot(other.x - self.x, other.y - self.y)
