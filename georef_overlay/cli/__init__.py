"""CLI module for georeferencing tools.

Provides the `georef` command-line interface for solving, inspecting and
exporting two-point transform documents.
"""

from georef_overlay.cli.main import app

__all__ = ["app"]
