"""
Tests for the two-point similarity solver and the forward/inverse mappings.

Synthetic correspondences are built by pushing pixels through a known
similarity (scale, rotation, origin) in the projected plane, so the solver
must recover exactly those parameters.
"""

import math
import os
import sys

import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from georef_overlay.control_points import ControlPointPair, ControlPointSet
from georef_overlay.exceptions import DegenerateInputError, OutOfDomainError
from georef_overlay.geotransform import apply_geotransform
from georef_overlay.points import GeoPoint, ImagePoint, ProjectedPoint
from georef_overlay.projection import DEFAULT_PROJECTOR, PyprojProjector
from georef_overlay.similarity import (
    SimilarityTransform,
    control_point_residuals,
    ground_resolution,
    map_forward,
    map_forward_many,
    map_inverse,
    normalize_angle,
    rotation_matrix,
    solve,
    solve_control_points,
)

ANCHOR = GeoPoint(10.0, 45.0)


def synthetic_geo(pixel, scale, rotation_deg, anchor=ANCHOR, projector=DEFAULT_PROJECTOR):
    """Geographic position of ``pixel`` under a known similarity."""
    origin = projector.project(anchor)
    offset = scale * rotation_matrix(rotation_deg) @ np.array([pixel[0], -pixel[1]])
    return projector.unproject(ProjectedPoint(origin.x + offset[0], origin.y + offset[1]))


def synthetic_pairs(scale, rotation_deg, img1=(120.0, 340.0), img2=(2210.0, 1875.0), **kwargs):
    return (
        ControlPointPair(ImagePoint(*img1), synthetic_geo(img1, scale, rotation_deg, **kwargs), "A"),
        ControlPointPair(ImagePoint(*img2), synthetic_geo(img2, scale, rotation_deg, **kwargs), "B"),
    )


def angle_diff(a, b):
    return abs(normalize_angle(a - b))


class TestNormalizeAngle:
    @pytest.mark.parametrize("angle,expected", [
        (0.0, 0.0),
        (180.0, 180.0),
        (-180.0, 180.0),
        (190.0, -170.0),
        (-190.0, 170.0),
        (360.0, 0.0),
        (540.0, 180.0),
        (-720.5, -0.5),
    ], ids=["zero", "half_turn", "minus_half_turn", "over", "under", "full_turn", "one_and_half", "two_turns_back"])
    def test_range(self, angle, expected):
        assert normalize_angle(angle) == pytest.approx(expected)


class TestSolveKnownScenario:
    """Two points on the same parallel, 800 px apart on the same image row."""

    def test_rotation_is_zero(self, east_west_points):
        transform = solve_control_points(east_west_points)
        assert transform.rotation_deg == pytest.approx(0.0, abs=1e-9)

    def test_scale_is_projected_distance_over_pixels(self, east_west_points):
        transform = solve_control_points(east_west_points)
        p1 = DEFAULT_PROJECTOR.project(east_west_points.first.geo)
        p2 = DEFAULT_PROJECTOR.project(east_west_points.second.geo)
        assert transform.scale == pytest.approx(p1.distance_to(p2) / 800.0, rel=1e-12)

    def test_solve_from_pairs(self, east_west_points):
        assert solve(east_west_points.first, east_west_points.second) == \
            solve_control_points(east_west_points)

    def test_image_rows_grow_southward(self, east_west_points):
        transform = solve_control_points(east_west_points)
        above = map_forward(transform, ImagePoint(100.0, 100.0))
        below = map_forward(transform, ImagePoint(100.0, 500.0))
        assert below.latitude < above.latitude
        assert below.longitude == pytest.approx(above.longitude, abs=1e-9)

    def test_control_points_reproduced(self, east_west_points):
        transform = solve_control_points(east_west_points)
        for pair in east_west_points:
            geo = map_forward(transform, pair.image)
            assert geo.longitude == pytest.approx(pair.geo.longitude, abs=1e-9)
            assert geo.latitude == pytest.approx(pair.geo.latitude, abs=1e-9)

    def test_translation_is_pixel_origin(self, east_west_points):
        transform = solve_control_points(east_west_points)
        origin = map_forward(transform, ImagePoint(0.0, 0.0))
        assert origin.longitude == pytest.approx(transform.translation.longitude, abs=1e-12)
        assert origin.latitude == pytest.approx(transform.translation.latitude, abs=1e-12)
        assert transform.translation.longitude < 13.845
        assert transform.translation.latitude > 46.6085


class TestSolveSynthetic:
    def test_identity_similarity(self):
        first, second = synthetic_pairs(1.0, 0.0)
        transform = solve(first, second)
        assert transform.scale == pytest.approx(1.0, rel=1e-9)
        assert angle_diff(transform.rotation_deg, 0.0) < 1e-7
        assert transform.translation.longitude == pytest.approx(ANCHOR.longitude, abs=1e-9)
        assert transform.translation.latitude == pytest.approx(ANCHOR.latitude, abs=1e-9)

    @pytest.mark.parametrize("rotation", [-170.0, -90.0, -30.0, 0.0, 45.0, 90.0, 135.0, 180.0])
    def test_rotation_recovered(self, rotation):
        transform = solve(*synthetic_pairs(0.5, rotation))
        assert angle_diff(transform.rotation_deg, rotation) < 1e-6
        assert transform.scale == pytest.approx(0.5, rel=1e-6)
        assert -180.0 < transform.rotation_deg <= 180.0

    def test_swapping_points_gives_same_transform(self):
        first, second = synthetic_pairs(2.5, 63.0)
        forward = solve(first, second)
        swapped = solve(second, first)
        assert swapped.scale == pytest.approx(forward.scale, rel=1e-12)
        assert angle_diff(swapped.rotation_deg, forward.rotation_deg) < 1e-9

    def test_pyproj_backend_agrees(self):
        first, second = synthetic_pairs(0.75, -42.0)
        closed_form = solve(first, second)
        backed = solve(first, second, projector=PyprojProjector())
        assert backed.scale == pytest.approx(closed_form.scale, rel=1e-9)
        assert angle_diff(backed.rotation_deg, closed_form.rotation_deg) < 1e-7


class TestSolveDegenerate:
    def test_identical_image_points(self):
        first = ControlPointPair(ImagePoint(100.0, 100.0), GeoPoint(13.845, 46.6085), "P1")
        second = ControlPointPair(ImagePoint(100.0, 100.0), GeoPoint(13.847, 46.6085), "P2")
        with pytest.raises(DegenerateInputError):
            solve(first, second)

    def test_identical_geo_points(self):
        first = ControlPointPair(ImagePoint(100.0, 100.0), GeoPoint(13.845, 46.6085), "P1")
        second = ControlPointPair(ImagePoint(900.0, 100.0), GeoPoint(13.845, 46.6085), "P2")
        with pytest.raises(DegenerateInputError):
            solve(first, second)

    def test_out_of_domain(self):
        first = ControlPointPair(ImagePoint(100.0, 100.0), GeoPoint(0.0, 89.99995), "P1")
        second = ControlPointPair(ImagePoint(900.0, 100.0), GeoPoint(1.0, 80.0), "P2")
        with pytest.raises(OutOfDomainError):
            solve(first, second)


class TestMapping:
    @pytest.fixture
    def transform(self, rotated_points):
        return solve_control_points(rotated_points)

    @pytest.mark.parametrize("pixel", [(0.0, 0.0), (4000.0, 3000.0), (1234.5, 987.25), (-50.0, 5000.0)])
    def test_inverse_undoes_forward(self, transform, pixel):
        back = map_inverse(transform, map_forward(transform, ImagePoint(*pixel)))
        assert back.x == pytest.approx(pixel[0], abs=1e-6)
        assert back.y == pytest.approx(pixel[1], abs=1e-6)

    def test_inverse_of_control_points(self, transform, rotated_points):
        for pair in rotated_points:
            pixel = map_inverse(transform, pair.geo)
            assert pixel.x == pytest.approx(pair.image.x, abs=1e-6)
            assert pixel.y == pytest.approx(pair.image.y, abs=1e-6)

    def test_residuals_are_negligible(self, transform, rotated_points):
        residuals = control_point_residuals(transform, rotated_points)
        assert set(residuals) == {"A", "B"}
        assert all(r < 1e-6 for r in residuals.values())

    def test_residuals_detect_stale_transform(self, transform, rotated_points):
        moved = rotated_points.replace(
            0, ControlPointPair(ImagePoint(300.0, 1320.25), rotated_points.first.geo, "A")
        )
        residuals = control_point_residuals(transform, moved)
        assert residuals["A"] == pytest.approx(300.0 - 250.5, rel=1e-6)

    def test_forward_many_matches_single(self, transform):
        pixels = np.array([[0.0, 0.0], [4000.0, 0.0], [1000.0, 2500.0]])
        many = map_forward_many(transform, pixels)
        assert many.shape == (3, 2)
        for (px, py), (lon, lat) in zip(pixels, many):
            single = map_forward(transform, ImagePoint(px, py))
            assert lon == pytest.approx(single.longitude, abs=1e-9)
            assert lat == pytest.approx(single.latitude, abs=1e-9)

    def test_geotransform_consistent_with_forward(self, transform):
        gt = transform.to_geotransform()
        x, y = apply_geotransform(1500.0, 700.0, gt)
        geo = DEFAULT_PROJECTOR.unproject(ProjectedPoint(x, y))
        expected = map_forward(transform, ImagePoint(1500.0, 700.0))
        assert geo.longitude == pytest.approx(expected.longitude, abs=1e-9)
        assert geo.latitude == pytest.approx(expected.latitude, abs=1e-9)

    def test_geotransform_is_similarity(self, transform):
        gt = transform.to_geotransform()
        # Rotation + uniform scale + y flip: GT2 == GT4 and GT5 == -GT1
        assert gt[2] == pytest.approx(gt[4], rel=1e-12, abs=1e-15)
        assert gt[5] == pytest.approx(-gt[1], rel=1e-12, abs=1e-15)
        assert math.hypot(gt[1], gt[4]) == pytest.approx(transform.scale, rel=1e-12)

    @pytest.mark.parametrize("scale", [0.0, -1.0, math.nan, math.inf])
    def test_invalid_scale_rejected(self, scale):
        transform = SimilarityTransform(scale=scale, rotation_deg=0.0, translation=GeoPoint(0.0, 0.0))
        with pytest.raises(DegenerateInputError):
            map_inverse(transform, GeoPoint(1.0, 1.0))
        with pytest.raises(DegenerateInputError):
            map_forward(transform, ImagePoint(1.0, 1.0))

    def test_forward_out_of_domain(self, transform):
        with pytest.raises(OutOfDomainError):
            map_forward(transform, ImagePoint(1e9, 1e9))


def test_ground_resolution_removes_mercator_scale():
    transform = SimilarityTransform(scale=2.0, rotation_deg=0.0, translation=GeoPoint(0.0, 60.0))
    assert ground_resolution(transform, 60.0) == pytest.approx(1.0, rel=1e-12)
    assert ground_resolution(transform, 0.0) == pytest.approx(2.0, rel=1e-12)
