"""
Geographic coordinate text parsing.

Control points are often read off printed map margins in degrees, minutes and
seconds, or copied from web maps as decimal degrees. Both are accepted here.
"""

import math
import re

_DMS_PATTERN = re.compile(
    r"""^\s*(\d+)\s*°\s*(\d+)\s*['′]\s*([\d.]+)\s*(?:"|″|'')?\s*([NSEW])\s*$""",
    re.IGNORECASE,
)


def dms_to_dd(dms_str: str) -> float:
    """
    Convert DMS (degrees, minutes, seconds) string to decimal degrees.

    Supports formats like:
    - "46°36'30.6\"N"
    - "13°50'42\"E"
    - "0°13'48.63\"W"

    Args:
        dms_str: DMS coordinate string

    Returns:
        Decimal degrees (negative for S/W)

    Raises:
        ValueError: If DMS format is invalid or minutes/seconds exceed 60
    """
    match = _DMS_PATTERN.match(dms_str)
    if not match:
        raise ValueError(f"Invalid DMS format: {dms_str}")

    degrees = int(match.group(1))
    minutes = int(match.group(2))
    seconds = float(match.group(3))
    direction = match.group(4).upper()

    if minutes >= 60 or seconds >= 60:
        raise ValueError(f"Minutes and seconds must be below 60: {dms_str}")

    dd = degrees + minutes / 60 + seconds / 3600

    if direction in ("S", "W"):
        dd = -dd

    return dd


def parse_coordinate(text: str) -> float:
    """
    Parse a single coordinate given as decimal degrees or DMS.

    Args:
        text: "13.845", "-0.2302" or "46°36'30.6\"N"

    Returns:
        Decimal degrees

    Raises:
        ValueError: If the text is neither a finite decimal nor valid DMS
    """
    try:
        value = float(text)
    except ValueError:
        return dms_to_dd(text)

    if not math.isfinite(value):
        raise ValueError(f"Coordinate must be finite: {text}")
    return value
