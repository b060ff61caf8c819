"""Rich terminal renderer for release runs.

Turns matrix results, digests, channel plans and ``PipelineReport`` into
Rich renderables.

Color scheme
------------
- green   : success / published
- yellow  : skipped
- red     : failed
- dim     : pending
"""

from __future__ import annotations

from collections.abc import Sequence

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from tagship.models.artifacts import Artifact
from tagship.models.build import BuildStatus, MatrixResult
from tagship.models.channels import ChannelStatus, PublishReport
from tagship.models.config import ChannelSpec, ReleaseConfig
from tagship.models.manifests import ChannelManifest
from tagship.models.reports import PipelineReport

# ---------------------------------------------------------------------------
# Status -> Rich markup
# ---------------------------------------------------------------------------

_BUILD_ICONS: dict[BuildStatus, str] = {
    BuildStatus.SUCCESS: "[green]SUCCESS[/green]",
    BuildStatus.FAILED: "[bold red]FAILED[/bold red]",
    BuildStatus.PENDING: "[dim]PENDING[/dim]",
}

_CHANNEL_STYLES: dict[ChannelStatus, str] = {
    ChannelStatus.PUBLISHED: "green",
    ChannelStatus.SKIPPED: "yellow",
    ChannelStatus.FAILED: "bold red",
    ChannelStatus.STAGED: "cyan",
    ChannelStatus.PENDING: "dim",
}


class ReportRenderer:
    """Renders release results as Rich terminal output.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    # ------------------------------------------------------------------
    # Renderables
    # ------------------------------------------------------------------

    def matrix_table(self, matrix: MatrixResult) -> Table:
        table = Table(title="Build Matrix", show_lines=False, expand=True)
        table.add_column("Target", style="cyan", no_wrap=True)
        table.add_column("Features")
        table.add_column("Toolchain")
        table.add_column("Static", justify="center")
        table.add_column("Status", justify="center")
        table.add_column("Artifact / Diagnostics", overflow="fold")

        for result in matrix.results:
            target = result.target
            detail = Text("")
            if result.artifact_path is not None:
                detail = Text(str(result.artifact_path))
            elif result.diagnostics:
                detail = Text(_last_line(result.diagnostics), style="red")
            elif target.check_only:
                detail = Text("check only", style="dim")
            table.add_row(
                target.target,
                target.feature_label,
                target.toolchain,
                "yes" if target.static else "",
                _BUILD_ICONS.get(result.status, result.status.value),
                detail,
            )
        return table

    def checksum_table(self, artifacts: Sequence[Artifact]) -> Table:
        table = Table(title="Artifact Digests", expand=True)
        table.add_column("Artifact", style="cyan", no_wrap=True)
        table.add_column("Kind")
        table.add_column("SHA-256", style="green", no_wrap=True)
        table.add_column("URL", overflow="fold")
        for artifact in artifacts:
            table.add_row(artifact.name, artifact.kind.value, artifact.digest or "-", Text(artifact.url))
        return table

    def plan_table(self, config: ReleaseConfig, barriers: Sequence[Sequence[ChannelSpec]]) -> Table:
        table = Table(title=f"Release plan for {config.app}", expand=True)
        table.add_column("Barrier", justify="right")
        table.add_column("Channel", style="cyan")
        table.add_column("Kind")
        table.add_column("Depends on")
        table.add_column("Change detection", justify="center")
        for index, barrier in enumerate(barriers, start=1):
            for spec in barrier:
                table.add_row(
                    str(index),
                    spec.id,
                    spec.kind,
                    ", ".join(spec.depends_on) or "-",
                    "[magenta]tracks HEAD[/magenta]" if spec.tracks_head else "",
                )
        return table

    def publish_table(self, publish: PublishReport) -> Table:
        table = Table(title="Channels", expand=True)
        table.add_column("Channel", style="cyan", no_wrap=True)
        table.add_column("Version")
        table.add_column("Result", overflow="fold")
        table.add_column("Location", overflow="fold")
        for outcome in publish.outcomes:
            style = _CHANNEL_STYLES.get(outcome.status, "")
            summary = Text(outcome.summary, style=style)
            if not outcome.required:
                summary.append(" (optional)", style="dim")
            table.add_row(
                outcome.channel_id,
                outcome.manifest_version or "",
                summary,
                Text(outcome.receipt.location if outcome.receipt else ""),
            )
        return table

    def render_report(self, report: PipelineReport) -> Panel:
        parts: list = [self.matrix_table(report.matrix)]
        if report.aborted:
            parts.append(Text(""))
            parts.append(Text.assemble(("Aborted: ", "bold red"), report.abort_reason))
        else:
            parts.append(Text(""))
            parts.append(self.publish_table(report.publish))

        status = "[bold green]SUCCESS[/bold green]" if report.succeeded else "[bold red]FAILED[/bold red]"
        footer = "  |  ".join(
            [
                f"[bold]Run:[/bold] {report.run_id}",
                f"[bold]Version:[/bold] {report.version.tag}",
                f"[bold]Result:[/bold] {status}",
            ]
        )
        parts.extend([Text(""), Text.from_markup(footer)])
        return Panel(
            Group(*parts),
            title=f"[bold]Release {report.version.tag}[/bold]",
            border_style="green" if report.succeeded else "red",
            padding=(1, 2),
        )

    # ------------------------------------------------------------------
    # Print helpers
    # ------------------------------------------------------------------

    def print_report(self, report: PipelineReport) -> None:
        self.console.print(self.render_report(report))

    def print_matrix(self, matrix: MatrixResult) -> None:
        self.console.print(self.matrix_table(matrix))

    def print_checksums(self, artifacts: Sequence[Artifact]) -> None:
        self.console.print(self.checksum_table(artifacts))

    def print_plan(self, config: ReleaseConfig, barriers: Sequence[Sequence[ChannelSpec]]) -> None:
        self.console.print(self.plan_table(config, barriers))

    def print_manifest(self, manifest: ChannelManifest) -> None:
        # Plain output so the manifest can be redirected to a file.
        self.console.print(manifest.text, end="", markup=False, highlight=False, soft_wrap=True)


def _last_line(text: str) -> str:
    lines = [line for line in text.strip().splitlines() if line.strip()]
    return lines[-1] if lines else ""
