"""Transform document: the persisted record of one georeferencing session.

A document bundles the two control point pairs, the transform solved from
them, the bounds derived from that transform, provenance metadata and the
opaque legend/frame preparation payload produced by the (external) cleaning
tool. Documents are immutable; changing a control point re-creates the
document with a freshly solved transform and recomputed bounds.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Mapping

from georef_overlay.bounds import BoundsQuad, compute_bounds
from georef_overlay.control_points import (
    GROUND_EPSILON_M,
    PIXEL_EPSILON,
    ControlPointPair,
    ControlPointSet,
)
from georef_overlay.projection import DEFAULT_PROJECTOR, CoordinateProjector
from georef_overlay.similarity import SimilarityTransform, solve_control_points
from georef_overlay.types import Pixels
from georef_overlay.validation import validate_image_dimension

logger = logging.getLogger(__name__)

FORMAT_VERSION = "1.0"
DEFAULT_SOFTWARE = "georef-overlay"
DEFAULT_COORDINATE_SYSTEM = "WGS84"

TRANSFORM_TYPE_SIMILARITY = "similarity"
TRANSFORM_TYPE_LEGACY_AFFINE = "affine"
TRANSFORM_TYPES = (TRANSFORM_TYPE_SIMILARITY, TRANSFORM_TYPE_LEGACY_AFFINE)

LEGEND_MODES = ("remove", "keep")
SELECTION_KEYS = ("id", "x", "y", "width", "height", "unit")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to a naive timestamp; aware timestamps are returned unchanged."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class DocumentMetadata:
    """Provenance of a document.

    Attributes:
        created: When the two-point workflow was first completed.
        modified: When the document was last re-created.
        software: Name (and optionally version) of the producing tool.
    """

    created: datetime
    modified: datetime
    software: str = DEFAULT_SOFTWARE

    def __post_init__(self) -> None:
        # Naive timestamps are read back as UTC, so store them that way
        object.__setattr__(self, "created", as_utc(self.created))
        object.__setattr__(self, "modified", as_utc(self.modified))


@dataclass(frozen=True)
class SourceInfo:
    """The raster being georeferenced.

    Attributes:
        filename: Original file name of the raster.
        width: Native width in pixels.
        height: Native height in pixels.
        coordinate_system: Identifier of the geographic datum (e.g., "WGS84").
    """

    filename: str
    width: Pixels
    height: Pixels
    coordinate_system: str = DEFAULT_COORDINATE_SYSTEM


@dataclass(frozen=True)
class LegendRemoval:
    """Legend/frame rectangles chosen in the cleaning tool.

    The rectangles are never interpreted here; they are carried verbatim. Only
    the presence of the keys in ``SELECTION_KEYS`` is checked.

    Attributes:
        enabled: Whether legend removal was applied.
        mode: "remove" (rectangles were cut out) or "keep" (only they were kept).
        selections: One mapping per rectangle, extra keys preserved.
    """

    enabled: bool = False
    mode: str = "remove"
    selections: tuple[dict[str, Any], ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.enabled, bool):
            raise ValueError(f"enabled must be a boolean, got {type(self.enabled).__name__}")
        if self.mode not in LEGEND_MODES:
            raise ValueError(
                f"Invalid legend removal mode '{self.mode}'. "
                f"Must be one of: {', '.join(LEGEND_MODES)}"
            )
        for i, selection in enumerate(self.selections):
            if not isinstance(selection, Mapping):
                raise ValueError(
                    f"Selection at index {i} must be a mapping, got {type(selection).__name__}"
                )
            missing = [key for key in SELECTION_KEYS if key not in selection]
            if missing:
                raise ValueError(
                    f"Selection at index {i} missing required fields: {', '.join(missing)}"
                )
        # Detach from caller-owned containers
        object.__setattr__(self, "selections", tuple(dict(s) for s in self.selections))


@dataclass(frozen=True)
class Preparation:
    """Opaque preparation payload.

    Attributes:
        legend_removal: Legend/frame rectangle selections.
        extra: Any other preparation keys, passed through untouched.
    """

    legend_removal: LegendRemoval = field(default_factory=LegendRemoval)
    extra: dict[str, Any] = field(default_factory=dict, hash=False)


@dataclass(frozen=True)
class TransformDocument:
    """Full persisted georeferencing record.

    ``bounds`` is a cache of ``compute_bounds(transform, source.width,
    source.height)``; use the ``with_*`` methods to derive changed documents so
    the cache is never stale.
    """

    metadata: DocumentMetadata
    source: SourceInfo
    control_points: ControlPointSet
    transform: SimilarityTransform
    bounds: BoundsQuad
    preparation: Preparation = field(default_factory=Preparation)
    transform_type: str = TRANSFORM_TYPE_SIMILARITY
    version: str = FORMAT_VERSION

    def with_control_point(
        self,
        index: int,
        pair: ControlPointPair,
        projector: CoordinateProjector = DEFAULT_PROJECTOR,
        pixel_epsilon: float = PIXEL_EPSILON,
        ground_epsilon_m: float = GROUND_EPSILON_M,
        now: datetime | None = None,
    ) -> TransformDocument:
        """Re-create the document with control point ``index`` replaced.

        The transform is re-solved and the bounds recomputed; ``created`` is
        kept and ``modified`` advances.

        Raises:
            IndexError: If index is not 0 or 1
            OutOfDomainError, DegenerateInputError: If the new set cannot be solved
        """
        control_points = self.control_points.replace(index, pair)
        transform = solve_control_points(control_points, projector, pixel_epsilon, ground_epsilon_m)
        bounds = compute_bounds(transform, self.source.width, self.source.height, projector)
        logger.debug(f"Re-solved document for '{self.source.filename}' after moving point {index}")
        return replace(
            self,
            control_points=control_points,
            transform=transform,
            bounds=bounds,
            metadata=replace(self.metadata, modified=now or utc_now()),
        )

    def with_preparation(self, preparation: Preparation, now: datetime | None = None) -> TransformDocument:
        """Return a copy carrying a different preparation payload."""
        return replace(
            self,
            preparation=preparation,
            metadata=replace(self.metadata, modified=now or utc_now()),
        )


def create_document(
    control_points: ControlPointSet,
    filename: str,
    width: int,
    height: int,
    preparation: Preparation | None = None,
    coordinate_system: str = DEFAULT_COORDINATE_SYSTEM,
    software: str = DEFAULT_SOFTWARE,
    transform_type: str = TRANSFORM_TYPE_SIMILARITY,
    projector: CoordinateProjector = DEFAULT_PROJECTOR,
    pixel_epsilon: float = PIXEL_EPSILON,
    ground_epsilon_m: float = GROUND_EPSILON_M,
    now: datetime | None = None,
) -> TransformDocument:
    """Complete the two-point workflow: solve, compute bounds, stamp metadata.

    Args:
        control_points: The two correspondences
        filename: Source raster file name
        width: Source raster width in native pixels
        height: Source raster height in native pixels
        preparation: Legend/frame payload (default: legend removal disabled)
        coordinate_system: Datum identifier recorded in the document
        software: Producer recorded in the metadata
        transform_type: Label written to the document ("similarity" or "affine")
        projector: Projection defining the metric plane
        pixel_epsilon: Minimum image separation in pixels
        ground_epsilon_m: Minimum geographic separation in ground meters
        now: Timestamp to record (default: current UTC time)

    Returns:
        New TransformDocument

    Raises:
        ValueError: If dimensions or transform_type are invalid
        OutOfDomainError, DegenerateInputError: If the points cannot be solved
    """
    width = validate_image_dimension(width, "width")
    height = validate_image_dimension(height, "height")
    if transform_type not in TRANSFORM_TYPES:
        raise ValueError(
            f"Invalid transform type '{transform_type}'. "
            f"Must be one of: {', '.join(TRANSFORM_TYPES)}"
        )

    transform = solve_control_points(control_points, projector, pixel_epsilon, ground_epsilon_m)
    bounds = compute_bounds(transform, width, height, projector)
    timestamp = now or utc_now()

    logger.info(
        f"Georeferenced '{filename}' ({width}x{height}): "
        f"scale={transform.scale:.6f} m/px, rotation={transform.rotation_deg:.4f} deg"
    )
    return TransformDocument(
        metadata=DocumentMetadata(created=timestamp, modified=timestamp, software=software),
        source=SourceInfo(
            filename=filename,
            width=width,
            height=height,
            coordinate_system=coordinate_system,
        ),
        control_points=control_points,
        transform=transform,
        bounds=bounds,
        preparation=preparation if preparation is not None else Preparation(),
        transform_type=transform_type,
    )
