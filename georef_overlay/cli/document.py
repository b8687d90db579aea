"""Transform document CLI commands: solve, inspect and map points."""

from pathlib import Path

import typer

from georef_overlay import serializer
from georef_overlay.bounds import CORNER_NAMES, envelope
from georef_overlay.cli.main import app
from georef_overlay.config import GeorefConfig, get_default_config
from georef_overlay.control_points import ControlPointPair, ControlPointSet
from georef_overlay.coordinates import parse_coordinate
from georef_overlay.document import TransformDocument, create_document
from georef_overlay.exceptions import GeorefError
from georef_overlay.points import GeoPoint, ImagePoint
from georef_overlay.similarity import control_point_residuals, ground_resolution, map_forward, map_inverse


def get_config(ctx: typer.Context) -> GeorefConfig:
    """Return the configuration loaded by the app callback."""
    return ctx.obj if isinstance(ctx.obj, GeorefConfig) else get_default_config()


def load_document(path: Path, config: GeorefConfig) -> TransformDocument:
    """Load a document or exit with an error message."""
    try:
        return serializer.load(path, projector=config.make_projector())
    except FileNotFoundError:
        typer.echo(f"Error: Document not found: {path}", err=True)
        raise typer.Exit(1)
    except (GeorefError, OSError) as e:
        typer.echo(f"Error: Failed to load {path}: {e}", err=True)
        raise typer.Exit(1)


def _parse_geo(lon: str, lat: str) -> GeoPoint:
    try:
        return GeoPoint(longitude=parse_coordinate(lon), latitude=parse_coordinate(lat))
    except ValueError as e:
        raise typer.BadParameter(str(e))


def _echo_bounds(document: TransformDocument) -> None:
    for name in CORNER_NAMES:
        corner = getattr(document.bounds, name)
        typer.echo(f"  {name:<13} {corner.longitude:.8f}, {corner.latitude:.8f}")


@app.command("solve")
def solve_command(
    ctx: typer.Context,
    x1: float = typer.Option(..., help="First control point: pixel X (column)"),
    y1: float = typer.Option(..., help="First control point: pixel Y (row)"),
    lon1: str = typer.Option(..., help="First control point: longitude (decimal or DMS)"),
    lat1: str = typer.Option(..., help="First control point: latitude (decimal or DMS)"),
    x2: float = typer.Option(..., help="Second control point: pixel X (column)"),
    y2: float = typer.Option(..., help="Second control point: pixel Y (row)"),
    lon2: str = typer.Option(..., help="Second control point: longitude (decimal or DMS)"),
    lat2: str = typer.Option(..., help="Second control point: latitude (decimal or DMS)"),
    width: int = typer.Option(..., help="Source image width in native pixels"),
    height: int = typer.Option(..., help="Source image height in native pixels"),
    filename: str = typer.Option(..., help="Source image file name recorded in the document"),
    output: Path | None = typer.Option(
        None, help="Output document path (default: <filename>.georef.json)"
    ),
) -> None:
    """
    Solve a similarity transform from two control points and save the document.

    Example:
        georef solve --x1 100 --y1 100 --lon1 13.845 --lat1 46.6085
            --x2 900 --y2 100 --lon2 13.847 --lat2 46.6085
            --width 1000 --height 800 --filename sheet.png
    """
    config = get_config(ctx)
    projector = config.make_projector()

    control_points = ControlPointSet(
        first=ControlPointPair(image=ImagePoint(x1, y1), geo=_parse_geo(lon1, lat1), id="P1"),
        second=ControlPointPair(image=ImagePoint(x2, y2), geo=_parse_geo(lon2, lat2), id="P2"),
    )

    try:
        document = create_document(
            control_points,
            filename=filename,
            width=width,
            height=height,
            coordinate_system=config.coordinate_system,
            software=config.software,
            transform_type=config.transform_type,
            projector=projector,
            pixel_epsilon=config.pixel_epsilon,
            ground_epsilon_m=config.ground_epsilon_m,
        )
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if output is None:
        output = Path(f"{Path(filename).stem}.georef.json")

    try:
        serializer.save(document, output, indent=config.json_indent)
    except OSError as e:
        typer.echo(f"Error: Failed to write {output}: {e}", err=True)
        raise typer.Exit(1)

    transform = document.transform
    center_lat = (control_points.first.geo.latitude + control_points.second.geo.latitude) / 2
    typer.echo(f"Scale:      {transform.scale:.6f} m/px (Web Mercator)")
    typer.echo(f"Ground:     {ground_resolution(transform, center_lat, projector):.6f} m/px")
    typer.echo(f"Rotation:   {transform.rotation_deg:.6f} deg")
    typer.echo("Bounds:")
    _echo_bounds(document)
    typer.echo(f"Document saved to: {output}")


@app.command("bounds")
def bounds_command(
    ctx: typer.Context,
    document_file: Path = typer.Argument(..., help="Transform document (JSON)"),
) -> None:
    """Print the geographic corners and envelope of a document."""
    document = load_document(document_file, get_config(ctx))
    typer.echo(f"Bounds of {document.source.filename} "
               f"({document.source.width}x{document.source.height}):")
    _echo_bounds(document)
    min_lon, min_lat, max_lon, max_lat = envelope(document.bounds)
    typer.echo(f"  envelope      {min_lon:.8f}, {min_lat:.8f}, {max_lon:.8f}, {max_lat:.8f}")


@app.command("forward")
def forward_command(
    ctx: typer.Context,
    document_file: Path = typer.Argument(..., help="Transform document (JSON)"),
    x: float = typer.Option(..., help="Pixel X (column)"),
    y: float = typer.Option(..., help="Pixel Y (row)"),
) -> None:
    """Map a source pixel to longitude/latitude."""
    config = get_config(ctx)
    document = load_document(document_file, config)
    try:
        geo = map_forward(document.transform, ImagePoint(x, y), config.make_projector())
    except GeorefError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    typer.echo(f"{geo.longitude:.9f} {geo.latitude:.9f}")


@app.command("inverse")
def inverse_command(
    ctx: typer.Context,
    document_file: Path = typer.Argument(..., help="Transform document (JSON)"),
    lon: str = typer.Option(..., help="Longitude (decimal or DMS)"),
    lat: str = typer.Option(..., help="Latitude (decimal or DMS)"),
) -> None:
    """Map a longitude/latitude to a source pixel."""
    config = get_config(ctx)
    document = load_document(document_file, config)
    try:
        point = map_inverse(document.transform, _parse_geo(lon, lat), config.make_projector())
    except GeorefError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    typer.echo(f"{point.x:.6f} {point.y:.6f}")


@app.command("check")
def check_command(
    ctx: typer.Context,
    document_file: Path = typer.Argument(..., help="Transform document (JSON)"),
) -> None:
    """
    Validate a document and report control point residuals.

    Exits with code 1 if the document is rejected (for scripting).
    """
    config = get_config(ctx)
    document = load_document(document_file, config)
    residuals = control_point_residuals(
        document.transform, document.control_points, config.make_projector()
    )
    typer.echo(f"OK: {document_file} (version {document.version}, {document.transform_type})")
    for point_id, residual in residuals.items():
        typer.echo(f"  {point_id}: residual {residual:.2e} px")
