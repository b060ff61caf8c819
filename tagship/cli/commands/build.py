"""``tagship build``: run the build matrix only."""

from __future__ import annotations

from pathlib import Path

import typer

from tagship.cli.commands import _shared
from tagship.report.renderer import ReportRenderer


def build_cmd(
    config_path: Path = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to tagship.toml.",
    ),
) -> None:
    """Build every matrix entry and report the results."""
    with _shared.handle_errors():
        matrix = _shared.build_pipeline(config_path).build()

    ReportRenderer(console=_shared.console).print_matrix(matrix)
    raise typer.Exit(code=_shared.EXIT_OK if matrix.succeeded else _shared.EXIT_FAILED)
