"""
Numeric validation helpers shared by the control point, bounds and document
layers.
"""

import math
import numbers
from typing import Any

# Sanity limit for raster dimensions (up to 100k pixels per side)
MAX_IMAGE_DIMENSION = 100000


def is_finite_number(value: Any) -> bool:
    """Check if a value is a valid finite real number (int, float, or numpy numeric).

    Booleans are rejected even though ``bool`` subclasses ``int``: a document
    field holding ``true`` is a type error, not the number 1.

    Args:
        value: Value to check

    Returns:
        True if value is a valid finite number, False otherwise
    """
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return False

    try:
        return math.isfinite(value)
    except (TypeError, ValueError, OverflowError):
        return False


def validate_image_dimension(dimension: Any, dimension_name: str) -> int:
    """Validate and normalize an image dimension.

    Accepts integers and integral floats (``1024.0``) so JSON producers that
    write every number as a float still load.

    Args:
        dimension: The dimension value to validate
        dimension_name: Name for error messages ('width' or 'height')

    Returns:
        Validated dimension as int

    Raises:
        ValueError: If dimension is not a positive integer within limits
    """
    if not is_finite_number(dimension):
        if isinstance(dimension, numbers.Number) and not isinstance(dimension, bool):
            raise ValueError(
                f"{dimension_name} must be a finite positive integer, "
                f"got {dimension} (NaN and Infinity are not allowed)"
            )
        raise ValueError(
            f"{dimension_name} must be a positive integer, "
            f"got {type(dimension).__name__}"
        )

    if int(dimension) != dimension:
        raise ValueError(f"{dimension_name} must be a whole number of pixels, got {dimension}")

    dim_int = int(dimension)
    if dim_int <= 0:
        raise ValueError(f"{dimension_name} must be positive, got {dim_int}")

    if dim_int > MAX_IMAGE_DIMENSION:
        raise ValueError(
            f"{dimension_name} {dim_int} exceeds maximum allowed value of {MAX_IMAGE_DIMENSION}"
        )

    return dim_int
