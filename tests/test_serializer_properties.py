"""
Property-based tests for document persistence.

Documents are built from random well-conditioned correspondences (generated
from a known similarity of either rotation sign), random raster dimensions,
legend selections and transform labels. Writing and reading them back must
reproduce the document exactly, and re-writing must reproduce the text.
"""

import math
import os
import sys
from datetime import datetime, timezone

import numpy as np
from hypothesis import HealthCheck, assume, given, settings
from hypothesis import strategies as st
from hypothesis.strategies import composite

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from georef_overlay.control_points import ControlPointPair, ControlPointSet
from georef_overlay.document import (
    LEGEND_MODES,
    TRANSFORM_TYPES,
    LegendRemoval,
    Preparation,
    create_document,
)
from georef_overlay.exceptions import DegenerateInputError, OutOfDomainError
from georef_overlay.points import GeoPoint, ImagePoint, ProjectedPoint
from georef_overlay.projection import DEFAULT_PROJECTOR
from georef_overlay.serializer import deserialize, serialize
from georef_overlay.similarity import rotation_matrix


def finite(min_value, max_value):
    return st.floats(min_value=min_value, max_value=max_value, allow_nan=False, allow_infinity=False)


def selection_values():
    return st.one_of(
        st.integers(min_value=-100000, max_value=100000),
        st.floats(allow_nan=False, allow_infinity=False),
    )


selections = st.lists(
    st.fixed_dictionaries(
        {
            "id": st.text(max_size=12),
            "x": selection_values(),
            "y": selection_values(),
            "width": selection_values(),
            "height": selection_values(),
            "unit": st.sampled_from(("pixels", "normalized")),
        },
        optional={"label": st.text(max_size=20)},
    ),
    max_size=3,
)


@composite
def control_points(draw):
    """Two correspondences generated from a known similarity."""
    scale = draw(finite(0.01, 100.0))
    rotation = draw(finite(-179.9, 180.0))
    anchor = GeoPoint(draw(finite(-150.0, 150.0)), draw(finite(-70.0, 70.0)))
    img1 = (draw(finite(0.0, 5000.0)), draw(finite(0.0, 5000.0)))
    img2 = (draw(finite(0.0, 5000.0)), draw(finite(0.0, 5000.0)))

    pixel_distance = math.hypot(img2[0] - img1[0], img2[1] - img1[1])
    assume(pixel_distance >= 10.0)
    assume(scale * pixel_distance >= 10.0 * DEFAULT_PROJECTOR.scale_factor(anchor.latitude))

    origin = DEFAULT_PROJECTOR.project(anchor)
    linear = scale * rotation_matrix(rotation)

    def to_geo(pixel):
        offset = linear @ np.array([pixel[0], -pixel[1]])
        return DEFAULT_PROJECTOR.unproject(ProjectedPoint(origin.x + offset[0], origin.y + offset[1]))

    try:
        geo1, geo2 = to_geo(img1), to_geo(img2)
    except OutOfDomainError:
        assume(False)

    return ControlPointSet(
        first=ControlPointPair(ImagePoint(*img1), geo1, "P1"),
        second=ControlPointPair(ImagePoint(*img2), geo2, "P2"),
    )


@composite
def documents(draw):
    preparation = Preparation(
        legend_removal=LegendRemoval(
            enabled=draw(st.booleans()),
            mode=draw(st.sampled_from(LEGEND_MODES)),
            selections=tuple(draw(selections)),
        ),
        extra=draw(st.dictionaries(st.sampled_from(("cropped", "notes")), st.text(max_size=20))),
    )
    now = draw(
        st.datetimes(
            min_value=datetime(1970, 1, 1),
            max_value=datetime(2100, 1, 1),
            timezones=st.just(timezone.utc),
        )
    )
    try:
        return create_document(
            draw(control_points()),
            filename=draw(st.text(min_size=1, max_size=40)),
            width=draw(st.integers(min_value=1, max_value=10000)),
            height=draw(st.integers(min_value=1, max_value=10000)),
            preparation=preparation,
            coordinate_system=draw(st.sampled_from(("WGS84", "EPSG:4326", ""))),
            software=draw(st.text(max_size=30)),
            transform_type=draw(st.sampled_from(TRANSFORM_TYPES)),
            now=now,
        )
    except (OutOfDomainError, DegenerateInputError):
        # The raster footprint crosses the antimeridian or the polar cut-off
        assume(False)


@settings(deadline=None, suppress_health_check=[HealthCheck.filter_too_much, HealthCheck.too_slow])
@given(document=documents())
def test_round_trip_is_exact(document):
    assert deserialize(serialize(document)) == document


@settings(deadline=None, suppress_health_check=[HealthCheck.filter_too_much, HealthCheck.too_slow])
@given(document=documents())
def test_rewrite_reproduces_text(document):
    text = serialize(document)
    assert serialize(deserialize(text)) == text


@settings(deadline=None, suppress_health_check=[HealthCheck.filter_too_much, HealthCheck.too_slow])
@given(document=documents())
def test_compact_round_trip(document):
    text = serialize(document, indent=None)
    assert "\n" not in text
    assert deserialize(text) == document
