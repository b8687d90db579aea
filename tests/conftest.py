"""Shared fixtures for the georeferencing test suite."""

import os
import sys
from datetime import datetime, timezone

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from georef_overlay.control_points import ControlPointPair, ControlPointSet
from georef_overlay.document import LegendRemoval, Preparation, create_document
from georef_overlay.points import GeoPoint, ImagePoint

FIXED_NOW = datetime(2025, 3, 1, 10, 0, 0, 123456, tzinfo=timezone.utc)


@pytest.fixture
def east_west_points() -> ControlPointSet:
    """Pure east-west correspondence: 800 px baseline, 0.002 deg of longitude."""
    return ControlPointSet(
        first=ControlPointPair(image=ImagePoint(100.0, 100.0), geo=GeoPoint(13.845, 46.6085), id="P1"),
        second=ControlPointPair(image=ImagePoint(900.0, 100.0), geo=GeoPoint(13.847, 46.6085), id="P2"),
    )


@pytest.fixture
def rotated_points() -> ControlPointSet:
    """Correspondence with a non-trivial rotation and arbitrary baseline."""
    return ControlPointSet(
        first=ControlPointPair(image=ImagePoint(250.5, 1320.25), geo=GeoPoint(-0.2302, 39.6405), id="A"),
        second=ControlPointPair(image=ImagePoint(3120.0, 410.75), geo=GeoPoint(-0.2154, 39.6473), id="B"),
    )


@pytest.fixture
def preparation() -> Preparation:
    return Preparation(
        legend_removal=LegendRemoval(
            enabled=True,
            mode="remove",
            selections=(
                {"id": "legend", "x": 10, "y": 20, "width": 300, "height": 120, "unit": "pixels"},
                {"id": "frame", "x": 0.0, "y": 0.9, "width": 1.0, "height": 0.1,
                 "unit": "normalized", "label": "bottom frame"},
            ),
        ),
        extra={"cropping": {"enabled": False}},
    )


@pytest.fixture
def sample_document(rotated_points, preparation):
    return create_document(
        rotated_points,
        filename="sheet_42.png",
        width=4000,
        height=3000,
        preparation=preparation,
        now=FIXED_NOW,
    )
