"""``tagship plan``: show matrix entries and channel barriers."""

from __future__ import annotations

from pathlib import Path

import typer

from tagship.cli.commands import _shared
from tagship.models.build import BuildResult, MatrixResult
from tagship.report.renderer import ReportRenderer


def plan_cmd(
    config_path: Path = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to tagship.toml.",
    ),
    only: list[str] = typer.Option(
        None,
        "--only",
        help="Restrict the plan to this channel (repeatable).",
    ),
) -> None:
    """Show what a release would build and the order channels publish in."""
    with _shared.handle_errors():
        pipeline = _shared.build_pipeline(config_path)
        barriers = pipeline.plan(only or None)

    renderer = ReportRenderer(console=_shared.console)
    pending = MatrixResult(results=[BuildResult(target=target) for target in pipeline.config.matrix])
    renderer.print_matrix(pending)
    renderer.print_plan(pipeline.config, barriers)
