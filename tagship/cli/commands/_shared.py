"""Helpers shared by the CLI commands."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import typer
from rich.console import Console

from tagship.config import ReleaseSettings
from tagship.core.errors import ConfigError, TagshipError
from tagship.core.pipeline import ReleasePipeline
from tagship.models.config import load_release_config

# Exit codes
EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2

console = Console()


def build_pipeline(config_path: Path | None = None) -> ReleasePipeline:
    """Load settings and the project config and wire up a pipeline."""
    settings = ReleaseSettings()
    config = load_release_config(config_path or settings.config_path)
    return ReleasePipeline(config, settings=settings)


@contextmanager
def handle_errors() -> Iterator[None]:
    """Map tagship errors to exit codes: 2 for configuration, 1 otherwise."""
    try:
        yield
    except ConfigError as exc:
        console.print(f"[bold red]Configuration error:[/bold red] {exc}")
        raise typer.Exit(code=EXIT_CONFIG) from exc
    except TagshipError as exc:
        console.print(f"[bold red]{type(exc).__name__}:[/bold red] {exc}")
        raise typer.Exit(code=EXIT_FAILED) from exc
