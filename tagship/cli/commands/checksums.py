"""``tagship checksums TAG``: resolve and digest every configured artifact."""

from __future__ import annotations

from pathlib import Path

import typer

from tagship.cli.commands import _shared
from tagship.report.renderer import ReportRenderer


def checksums_cmd(
    tag: str = typer.Argument(
        ...,
        help="The release tag the artifact URLs are resolved for.",
    ),
    config_path: Path = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to tagship.toml.",
    ),
) -> None:
    """Fetch every published artifact for TAG and print its SHA-256."""
    with _shared.handle_errors():
        artifacts = _shared.build_pipeline(config_path).checksums(tag)

    ReportRenderer(console=_shared.console).print_checksums(artifacts)
