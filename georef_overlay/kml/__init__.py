"""KML export of georeferenced raster footprints."""

from georef_overlay.kml.ground_overlay import document_to_kml, quad_coordinates, render_ground_overlay

__all__ = ["document_to_kml", "quad_coordinates", "render_ground_overlay"]
