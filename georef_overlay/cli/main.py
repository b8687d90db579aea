"""Main Typer CLI application for georeferencing tools."""

import logging
from pathlib import Path

import typer

from georef_overlay.config import GeorefConfig, get_default_config

app = typer.Typer(
    help="Two-point georeferencing of scanned map images",
    no_args_is_help=True,
)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@app.callback()
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(None, help="Path to a YAML configuration file"),
    log_level: str = typer.Option("WARNING", help="Logging level (DEBUG, INFO, WARNING, ERROR)"),
) -> None:
    """Configure logging and load the engine configuration."""
    level = log_level.upper()
    if level not in LOG_LEVELS:
        raise typer.BadParameter(f"must be one of {', '.join(LOG_LEVELS)}", param_hint="--log-level")
    logging.basicConfig(level=getattr(logging, level), format='%(levelname)s - %(message)s')

    if config is None:
        ctx.obj = get_default_config()
        return
    try:
        ctx.obj = GeorefConfig.from_yaml(config)
    except (FileNotFoundError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


def _register_commands() -> None:
    """
    Import command modules to register commands with the app.

    Commands use decorators like @app.command() which register themselves
    when the module is imported.
    """
    from georef_overlay.cli import document, export

    # Avoid "imported but unused" warnings by explicitly using the module
    _ = document
    _ = export


_register_commands()


if __name__ == "__main__":
    app()
