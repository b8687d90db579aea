"""
Property-based tests for the similarity solver.

For random but well-conditioned correspondences generated from a known
similarity, the solver must recover scale and rotation, and the inverse
mapping must undo the forward mapping.
"""

import math
import os
import sys

import numpy as np
from hypothesis import HealthCheck, assume, given, settings
from hypothesis import strategies as st
from hypothesis.strategies import composite

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from georef_overlay.control_points import ControlPointPair
from georef_overlay.exceptions import OutOfDomainError
from georef_overlay.points import GeoPoint, ImagePoint, ProjectedPoint
from georef_overlay.projection import DEFAULT_PROJECTOR
from georef_overlay.similarity import (
    map_forward,
    map_inverse,
    normalize_angle,
    rotation_matrix,
    solve,
)


def finite(min_value, max_value):
    return st.floats(min_value=min_value, max_value=max_value, allow_nan=False, allow_infinity=False)


@composite
def known_similarity(draw, min_scale=0.01):
    """Draw (scale, rotation, first pair, second pair) from a known similarity."""
    scale = draw(finite(min_scale, 100.0))
    rotation = draw(finite(-179.9, 180.0))
    anchor = GeoPoint(draw(finite(-170.0, 170.0)), draw(finite(-70.0, 70.0)))
    img1 = (draw(finite(0.0, 5000.0)), draw(finite(0.0, 5000.0)))
    img2 = (draw(finite(0.0, 5000.0)), draw(finite(0.0, 5000.0)))

    pixel_distance = math.hypot(img2[0] - img1[0], img2[1] - img1[1])
    assume(pixel_distance >= 10.0)
    # Well above the 1 m ground threshold after the Mercator stretch
    assume(scale * pixel_distance >= 10.0 * DEFAULT_PROJECTOR.scale_factor(anchor.latitude))

    origin = DEFAULT_PROJECTOR.project(anchor)
    linear = scale * rotation_matrix(rotation)

    def to_geo(pixel):
        offset = linear @ np.array([pixel[0], -pixel[1]])
        return DEFAULT_PROJECTOR.unproject(ProjectedPoint(origin.x + offset[0], origin.y + offset[1]))

    try:
        geo1, geo2 = to_geo(img1), to_geo(img2)
        # Latitude cut-off must not be crossed within the test raster either
        to_geo((5000.0, 5000.0))
        to_geo((0.0, 5000.0))
        to_geo((5000.0, 0.0))
    except OutOfDomainError:
        assume(False)

    first = ControlPointPair(ImagePoint(*img1), geo1, "P1")
    second = ControlPointPair(ImagePoint(*img2), geo2, "P2")
    return scale, rotation, first, second


@settings(deadline=None, suppress_health_check=[HealthCheck.filter_too_much])
@given(case=known_similarity())
def test_scale_and_rotation_recovered(case):
    scale, rotation, first, second = case
    transform = solve(first, second)
    assert abs(transform.scale - scale) <= 1e-6 * scale
    assert abs(normalize_angle(transform.rotation_deg - rotation)) <= 1e-6
    assert -180.0 < transform.rotation_deg <= 180.0


@settings(deadline=None, suppress_health_check=[HealthCheck.filter_too_much])
@given(
    case=known_similarity(min_scale=0.1),
    px=finite(-1000.0, 6000.0),
    py=finite(-1000.0, 6000.0),
)
def test_inverse_undoes_forward(case, px, py):
    _, _, first, second = case
    transform = solve(first, second)
    try:
        geo = map_forward(transform, ImagePoint(px, py))
    except OutOfDomainError:
        assume(False)
    back = map_inverse(transform, geo)
    assert abs(back.x - px) <= 1e-6
    assert abs(back.y - py) <= 1e-6


@settings(deadline=None, suppress_health_check=[HealthCheck.filter_too_much])
@given(case=known_similarity())
def test_control_points_map_to_their_coordinates(case):
    _, _, first, second = case
    transform = solve(first, second)
    for pair in (first, second):
        geo = map_forward(transform, pair.image)
        assert abs(geo.longitude - pair.geo.longitude) <= 1e-9
        assert abs(geo.latitude - pair.geo.latitude) <= 1e-9
