"""
Control point pairs and their validation.

A control point pair ties one pixel of the source raster to one geographic
coordinate. Exactly two pairs determine the similarity transform; this module
checks that the two pairs actually can:

- both geographic points must lie inside the projection domain
- the image points must be at least ``PIXEL_EPSILON`` pixels apart
- the projected points must be at least ``GROUND_EPSILON_M`` ground meters
  apart (converted to projected meters with the Mercator scale factor)

Anything closer leaves scale and rotation undetermined.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace as dataclass_replace
from typing import Iterable

from georef_overlay.exceptions import DegenerateInputError
from georef_overlay.points import GeoPoint, ImagePoint, ProjectedPoint
from georef_overlay.projection import DEFAULT_PROJECTOR, CoordinateProjector

logger = logging.getLogger(__name__)

REQUIRED_PAIR_COUNT = 2
PIXEL_EPSILON = 1.0  # Minimum separation of the two image points (pixels)
GROUND_EPSILON_M = 1.0  # Minimum separation of the two geo points (ground meters)


@dataclass(frozen=True)
class ControlPointPair:
    """One user-supplied correspondence between a pixel and a coordinate.

    Attributes:
        image: Location in the source raster's native pixel space.
        geo: Geographic coordinate of that location.
        id: Identifier of the pair (e.g., "P1").
    """

    image: ImagePoint
    geo: GeoPoint
    id: str


@dataclass(frozen=True)
class ControlPointSet:
    """The ordered pair of correspondences a transform is solved against.

    The set is immutable; ``replace`` returns a new set. Any transform solved
    against the old set is stale and must be re-solved by its owner.

    Attributes:
        first: First control point pair.
        second: Second control point pair.
    """

    first: ControlPointPair
    second: ControlPointPair

    @classmethod
    def from_pairs(cls, pairs: Iterable[ControlPointPair]) -> ControlPointSet:
        """Build a set from an iterable holding exactly two pairs.

        Raises:
            DegenerateInputError: If the count is not two or the ids collide.
        """
        pair_list = list(pairs)
        if len(pair_list) != REQUIRED_PAIR_COUNT:
            raise DegenerateInputError(
                f"Exactly {REQUIRED_PAIR_COUNT} control point pairs are required, "
                f"got {len(pair_list)}"
            )
        first, second = pair_list
        if first.id == second.id:
            raise DegenerateInputError(f"Control point ids must be unique, got '{first.id}' twice")
        return cls(first=first, second=second)

    @property
    def pairs(self) -> tuple[ControlPointPair, ControlPointPair]:
        return (self.first, self.second)

    def __iter__(self):
        return iter(self.pairs)

    def __len__(self) -> int:
        return REQUIRED_PAIR_COUNT

    def replace(self, index: int, pair: ControlPointPair) -> ControlPointSet:
        """Return a new set with the pair at ``index`` (0 or 1) swapped out."""
        if index == 0:
            return dataclass_replace(self, first=pair)
        if index == 1:
            return dataclass_replace(self, second=pair)
        raise IndexError(f"Control point index must be 0 or 1, got {index}")

    def validate(
        self,
        projector: CoordinateProjector = DEFAULT_PROJECTOR,
        pixel_epsilon: float = PIXEL_EPSILON,
        ground_epsilon_m: float = GROUND_EPSILON_M,
    ) -> tuple[ProjectedPoint, ProjectedPoint]:
        """Check that the pairs determine a unique similarity transform.

        Args:
            projector: Projection used to place the geo points in meters
            pixel_epsilon: Minimum image-space separation in pixels
            ground_epsilon_m: Minimum geographic separation in ground meters

        Returns:
            The projected geo points of (first, second), for reuse by the solver

        Raises:
            OutOfDomainError: If either geo point cannot be projected
            DegenerateInputError: If the points are (near-)coincident in
                either space or an image coordinate is not finite
        """
        # Domain first: an unprojectable point is a different failure than a
        # degenerate one and callers present them differently.
        projected_first = projector.project(self.first.geo)
        projected_second = projector.project(self.second.geo)

        for pair in self.pairs:
            if not (math.isfinite(pair.image.x) and math.isfinite(pair.image.y)):
                raise DegenerateInputError(
                    f"Control point '{pair.id}': image coordinates must be finite, "
                    f"got ({pair.image.x}, {pair.image.y})"
                )

        pixel_distance = self.first.image.distance_to(self.second.image)
        if pixel_distance < pixel_epsilon:
            raise DegenerateInputError(
                f"Control points '{self.first.id}' and '{self.second.id}' are "
                f"{pixel_distance:.3f} px apart in the image; at least "
                f"{pixel_epsilon} px is required to determine scale and rotation"
            )

        mean_latitude = (self.first.geo.latitude + self.second.geo.latitude) / 2
        projected_epsilon = ground_epsilon_m * projector.scale_factor(mean_latitude)
        projected_distance = projected_first.distance_to(projected_second)
        if projected_distance < projected_epsilon:
            raise DegenerateInputError(
                f"Control points '{self.first.id}' and '{self.second.id}' are "
                f"{projected_distance:.3f} projected m apart; at least "
                f"{projected_epsilon:.3f} m ({ground_epsilon_m} ground m) is required"
            )

        logger.debug(
            f"Validated control points: {pixel_distance:.2f} px, "
            f"{projected_distance:.2f} projected m apart"
        )
        return projected_first, projected_second
