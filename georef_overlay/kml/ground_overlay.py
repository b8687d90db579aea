"""KML ground overlay export for georeferenced rasters."""

from jinja2 import Environment, PackageLoader

from georef_overlay.bounds import BoundsQuad
from georef_overlay.document import TransformDocument

_template_env = Environment(
    loader=PackageLoader("georef_overlay.kml", "templates"),
    autoescape=True,
    trim_blocks=True,
    lstrip_blocks=True,
)


def quad_coordinates(bounds: BoundsQuad) -> str:
    """Format a quad as a ``gx:LatLonQuad`` coordinate string.

    KML wants the corners counter-clockwise starting at the lower-left of the
    image: bottom-left, bottom-right, top-right, top-left.
    """
    corners = (bounds.bottom_left, bounds.bottom_right, bounds.top_right, bounds.top_left)
    return " ".join(f"{c.longitude!r},{c.latitude!r}" for c in corners)


def render_ground_overlay(
    bounds: BoundsQuad,
    href: str,
    name: str = "Georeferenced image",
    description: str | None = None,
    points: list[dict] | None = None,
) -> str:
    """Render a KML document placing the raster at ``href`` on ``bounds``.

    Args:
        bounds: Geographic footprint of the raster
        href: Image path or URL as seen from the KML file
        name: Overlay name
        description: Optional overlay description
        points: Optional placemarks as dicts with name, lon and lat keys

    Returns:
        KML content as a string
    """
    template = _template_env.get_template("ground_overlay.kml.j2")
    return template.render(
        name=name,
        description=description,
        href=href,
        quad_coordinates=quad_coordinates(bounds),
        points=points or [],
    )


def document_to_kml(document: TransformDocument, href: str | None = None) -> str:
    """Render a document's footprint and control points as a KML ground overlay.

    Args:
        document: Georeferenced document
        href: Raster location (default: the document's source filename)
    """
    points = [
        {"name": pair.id, "lon": pair.geo.longitude, "lat": pair.geo.latitude}
        for pair in document.control_points
    ]
    transform = document.transform
    return render_ground_overlay(
        document.bounds,
        href=href or document.source.filename,
        name=document.source.filename,
        description=(
            f"{document.transform_type} transform: scale {transform.scale:.6f} m/px, "
            f"rotation {transform.rotation_deg:.4f} deg"
        ),
        points=points,
    )
