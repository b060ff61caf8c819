"""tagship CLI: Typer-based command-line interface.

Provides the ``tagship`` command with subcommands for full releases,
matrix-only builds, artifact digests, manifest rendering and release
plans.

All output uses Rich for formatted terminal display.
"""
