"""``tagship render TAG CHANNEL``: print a channel's rendered manifest.

Output is the plain manifest text, so it can be redirected into a file
and inspected or diffed against the published copy.
"""

from __future__ import annotations

from pathlib import Path

import typer

from tagship.cli.commands import _shared
from tagship.report.renderer import ReportRenderer


def render_cmd(
    tag: str = typer.Argument(
        ...,
        help="The release tag.",
    ),
    channel: str = typer.Argument(
        ...,
        help="The channel id to render.",
    ),
    config_path: Path = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to tagship.toml.",
    ),
    revision: str = typer.Option(
        None,
        "--revision",
        "-r",
        help="Source revision for channels that track HEAD.",
    ),
) -> None:
    """Render CHANNEL's manifest for TAG without publishing."""
    with _shared.handle_errors():
        manifest = _shared.build_pipeline(config_path).render(tag, channel, revision=revision)

    ReportRenderer(console=_shared.console).print_manifest(manifest)
