"""Export CLI commands: KML ground overlays and world files."""

from pathlib import Path

import typer

from georef_overlay.cli.document import get_config, load_document
from georef_overlay.cli.main import app
from georef_overlay.geotransform import to_world_file
from georef_overlay.kml import document_to_kml

WORLD_FILE_SUFFIXES = {".png": ".pgw", ".jpg": ".jgw", ".jpeg": ".jgw", ".tif": ".tfw", ".tiff": ".tfw"}


@app.command("kml")
def kml_command(
    ctx: typer.Context,
    document_file: Path = typer.Argument(..., help="Transform document (JSON)"),
    output: Path | None = typer.Option(None, help="Output KML path (default: <document>.kml)"),
    href: str | None = typer.Option(
        None, help="Image reference written into the KML (default: source filename)"
    ),
) -> None:
    """
    Export the document footprint as a KML GroundOverlay.

    Example:
        georef kml sheet.georef.json --output sheet.kml
    """
    document = load_document(document_file, get_config(ctx))
    if output is None:
        output = document_file.with_suffix(".kml")

    try:
        output.write_text(document_to_kml(document, href=href), encoding="utf-8")
    except OSError as e:
        typer.echo(f"Error: Failed to write {output}: {e}", err=True)
        raise typer.Exit(1)
    typer.echo(f"KML saved to: {output}")


@app.command("world-file")
def world_file_command(
    ctx: typer.Context,
    document_file: Path = typer.Argument(..., help="Transform document (JSON)"),
    output: Path | None = typer.Option(
        None, help="Output world file path (default: derived from the source filename)"
    ),
) -> None:
    """
    Write an ESRI world file (EPSG:3857) for the source image.

    Example:
        georef world-file sheet.georef.json
    """
    config = get_config(ctx)
    document = load_document(document_file, config)
    if output is None:
        source = Path(document.source.filename)
        suffix = WORLD_FILE_SUFFIXES.get(source.suffix.lower(), ".wld")
        output = document_file.parent / source.with_suffix(suffix).name

    gt = document.transform.to_geotransform(config.make_projector())
    try:
        output.write_text(to_world_file(gt), encoding="utf-8")
    except OSError as e:
        typer.echo(f"Error: Failed to write {output}: {e}", err=True)
        raise typer.Exit(1)
    typer.echo(f"World file saved to: {output}")
