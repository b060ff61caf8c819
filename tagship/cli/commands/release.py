"""``tagship release TAG``: build, checksum and publish a release.

Runs the build matrix, then publishes to every configured channel (or the
``--only`` subset).  Exits 0 only when every required channel ended as
published or skipped.
"""

from __future__ import annotations

from pathlib import Path

import typer

from tagship.cli.commands import _shared
from tagship.report.renderer import ReportRenderer


def release_cmd(
    tag: str = typer.Argument(
        ...,
        help="The release tag, e.g. v2.0.0.",
    ),
    config_path: Path = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to tagship.toml (default: TAGSHIP_CONFIG_PATH or ./tagship.toml).",
    ),
    revision: str = typer.Option(
        None,
        "--revision",
        "-r",
        help="Source revision for channels that track HEAD.",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Stage every channel but publish nothing.",
    ),
    only: list[str] = typer.Option(
        None,
        "--only",
        help="Publish only to this channel (repeatable).",
    ),
) -> None:
    """Release TAG to every configured channel."""
    with _shared.handle_errors():
        pipeline = _shared.build_pipeline(config_path)
        report = pipeline.run(
            tag,
            revision=revision,
            dry_run=True if dry_run else None,
            only=only or None,
        )

    ReportRenderer(console=_shared.console).print_report(report)
    raise typer.Exit(code=report.exit_code)
