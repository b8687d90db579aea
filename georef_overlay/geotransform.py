#!/usr/bin/env python3
"""
GDAL GeoTransform and ESRI world file helpers.

A solved similarity transform is a special case of GDAL's 6-parameter affine
GeoTransform in the projected (EPSG:3857) plane, which lets the result be
handed to GIS tools as a world file next to the raster.

References:
    - GDAL GeoTransform: https://gdal.org/tutorials/geotransforms_tut.html
    - World files: https://en.wikipedia.org/wiki/World_file
"""

from typing import Sequence, Tuple

import numpy as np

Geotransform = Tuple[float, float, float, float, float, float]


def apply_geotransform(px: float, py: float, gt: Sequence[float]) -> Tuple[float, float]:
    """
    Apply a GDAL 6-parameter geotransform to a pixel coordinate.

    Implements the GDAL GeoTransform formula:
        Xgeo = GT[0] + P*GT[1] + L*GT[2]
        Ygeo = GT[3] + P*GT[4] + L*GT[5]

    Pixel Origin Convention:
        GDAL references the UPPER-LEFT CORNER of a pixel, which matches the
        image point convention used throughout this package.

    Args:
        px: Pixel X coordinate (column), 0-indexed from left
        py: Pixel Y coordinate (row), 0-indexed from top
        gt: GeoTransform [GT0, GT1, GT2, GT3, GT4, GT5]

    Returns:
        Tuple of (x, y) in the projected CRS

    Examples:
        >>> gt = [737575.05, 0.15, 0, 4391595.45, 0, -0.15]
        >>> x, y = apply_geotransform(10, 20, gt)
        >>> print(f"({x:.2f}, {y:.2f})")
        (737576.55, 4391592.45)
    """
    if len(gt) != 6:
        raise ValueError(f"geotransform must have exactly 6 elements, got {len(gt)}")

    x = gt[0] + px * gt[1] + py * gt[2]
    y = gt[3] + px * gt[4] + py * gt[5]
    return x, y


def apply_geotransform_many(pixels: np.ndarray, gt: Sequence[float]) -> np.ndarray:
    """Vectorised ``apply_geotransform`` for an (N, 2) array of pixel coordinates."""
    if len(gt) != 6:
        raise ValueError(f"geotransform must have exactly 6 elements, got {len(gt)}")
    pixels = np.asarray(pixels, dtype=np.float64).reshape(-1, 2)
    matrix = np.array([[gt[1], gt[2]], [gt[4], gt[5]]], dtype=np.float64)
    return pixels @ matrix.T + np.array([gt[0], gt[3]], dtype=np.float64)


def invert_geotransform(gt: Sequence[float]) -> Geotransform:
    """
    Invert a geotransform so it maps projected coordinates back to pixels.

    Solves the 2x2 linear part:
        [x - GT[0]]   [GT[1]  GT[2]]   [px]
        [y - GT[3]] = [GT[4]  GT[5]] * [py]

    Raises:
        ValueError: If the geotransform matrix is singular
    """
    if len(gt) != 6:
        raise ValueError(f"geotransform must have exactly 6 elements, got {len(gt)}")

    det = gt[1] * gt[5] - gt[2] * gt[4]
    if abs(det) < 1e-18:
        raise ValueError("Geotransform matrix is singular (cannot invert)")

    inv_a = gt[5] / det
    inv_b = -gt[2] / det
    inv_d = -gt[4] / det
    inv_e = gt[1] / det
    return (
        -(inv_a * gt[0] + inv_b * gt[3]),
        inv_a,
        inv_b,
        -(inv_d * gt[0] + inv_e * gt[3]),
        inv_d,
        inv_e,
    )


def to_world_file(gt: Sequence[float]) -> str:
    """
    Format a geotransform as the six lines of an ESRI world file.

    World files reference the CENTER of the upper-left pixel, so the origin is
    shifted by half a pixel along both raster axes.

    Line order: A (x scale), D (y skew), B (x skew), E (y scale), C, F.
    """
    if len(gt) != 6:
        raise ValueError(f"geotransform must have exactly 6 elements, got {len(gt)}")

    center_x, center_y = apply_geotransform(0.5, 0.5, gt)
    values = (gt[1], gt[4], gt[2], gt[5], center_x, center_y)
    return "\n".join(repr(float(v)) for v in values) + "\n"
