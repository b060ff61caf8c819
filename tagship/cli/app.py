"""Main Typer application: imports and registers all CLI commands.

Entry point: ``tagship`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from tagship.cli.commands.build import build_cmd
from tagship.cli.commands.checksums import checksums_cmd
from tagship.cli.commands.plan import plan_cmd
from tagship.cli.commands.release import release_cmd
from tagship.cli.commands.render import render_cmd
from tagship.config import ReleaseSettings

app = typer.Typer(
    name="tagship",
    help="tagship: build once, checksum, and publish a tagged release to every channel.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="release", help="Build, checksum and publish a tagged release.")(release_cmd)
app.command(name="build", help="Run the build matrix only.")(build_cmd)
app.command(name="checksums", help="Resolve and digest published artifacts.")(checksums_cmd)
app.command(name="render", help="Print a channel's rendered manifest.")(render_cmd)
app.command(name="plan", help="Show matrix entries and channel barriers.")(plan_cmd)


def configure_logging(level: str) -> None:
    """Send log records to stderr through Rich."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[
            RichHandler(
                console=Console(stderr=True),
                rich_tracebacks=True,
                show_path=False,
            )
        ],
        force=True,
    )


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        None,
        "--log-level",
        help="Logging level (default: TAGSHIP_LOG_LEVEL or INFO).",
    ),
) -> None:
    """tagship release orchestrator."""
    configure_logging(log_level or ReleaseSettings().log_level)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
