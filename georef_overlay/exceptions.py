"""
Error taxonomy for the georeferencing engine.

Every failure raised by the engine is a ``GeorefError``. The base class derives
from ``ValueError`` so callers that already treat bad input as ``ValueError``
keep working; callers that want to react per condition (re-prompt for points,
reject an imported file) catch the specific subclass.
"""


class GeorefError(ValueError):
    """Base class for all georeferencing failures."""


class OutOfDomainError(GeorefError):
    """Geographic coordinate outside the projection's valid domain.

    Raised for latitudes at or beyond the Mercator cut-off, longitudes outside
    [-180, 180] and non-finite coordinates.
    """


class DegenerateInputError(GeorefError):
    """Control points that cannot determine a transform.

    Raised for coincident or near-coincident points in image or projected
    space, and for zero or non-finite scales.
    """


class IncompatibleVersionError(GeorefError):
    """Persisted document written with an unsupported major format version."""

    def __init__(self, version: str, supported: tuple[int, ...]):
        self.version = version
        self.supported = supported
        majors = ', '.join(str(m) for m in supported)
        super().__init__(
            f"Unsupported document version '{version}'. "
            f"Supported major versions: {majors}"
        )


class MalformedDocumentError(GeorefError):
    """Persisted document that is structurally invalid or out of range.

    Attributes:
        path: Dotted location of the offending field (e.g.
            ``georeferencing.transformation.parameters.scale``), or None when
            the problem concerns the document as a whole.
    """

    def __init__(self, message: str, path: str | None = None):
        self.path = path
        if path:
            message = f"{path}: {message}"
        super().__init__(message)
