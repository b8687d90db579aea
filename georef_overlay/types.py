"""
Unit type annotations for georeferencing parameters.

NewType aliases for the physical units that flow through the engine. They are
erased at runtime but let signatures say which space a number lives in:
raster pixels, projected meters or geographic degrees.

Usage Example:
    >>> from georef_overlay.types import Degrees, MetersPerPixel
    >>>
    >>> def describe(scale: MetersPerPixel, rotation: Degrees) -> str:
    ...     return f"{scale:.3f} m/px at {rotation:.1f} deg"
"""

from typing import NewType

# Angular units
Degrees = NewType('Degrees', float)
"""Angle in degrees (e.g., latitude, longitude, rotation)"""

# Distance/position units
Meters = NewType('Meters', float)
"""Distance or position in projected meters (e.g., Web Mercator x/y)"""

MetersPerPixel = NewType('MetersPerPixel', float)
"""Similarity scale: projected meters covered by one source pixel"""

# Image coordinate units
Pixels = NewType('Pixels', int)
"""Raster dimensions in pixels (e.g., width, height)"""

PixelsFloat = NewType('PixelsFloat', float)
"""Floating-point image coordinates in pixels (e.g., subpixel positions)"""

# Dimensionless quantities
Unitless = NewType('Unitless', float)
"""Dimensionless scalar (e.g., Mercator scale factor, normalized coordinates)"""
