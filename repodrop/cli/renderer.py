"""Rich terminal rendering for upload results, manifests and errors.

Color scheme for attempt outcomes
---------------------------------
- green     : DONE
- yellow    : CONFLICT_RETRY
- bold red  : FATAL_ABORT
"""

from __future__ import annotations

from rich.console import Console, Group
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from repodrop.models.manifest import FileEntry, Manifest
from repodrop.models.pipeline import AttemptRecord, CommitStage
from repodrop.models.upload import ErrorReport, UploadResult

_OUTCOME_LABELS: dict[CommitStage, str] = {
    CommitStage.DONE: "[green]DONE[/green]",
    CommitStage.CONFLICT_RETRY: "[yellow]RETRY[/yellow]",
    CommitStage.FATAL_ABORT: "[bold red]ABORT[/bold red]",
}


class UploadRenderer:
    """Renders repodrop models as Rich terminal output.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    # ------------------------------------------------------------------
    # Upload results
    # ------------------------------------------------------------------

    def render_result(self, result: UploadResult) -> Panel:
        """Render an UploadResult as a Panel with its attempt trail."""
        lines = [
            "[bold green]Upload committed![/bold green]",
            "",
            f"[bold]Path:[/bold]      {result.final_path}",
            f"[bold]Commit:[/bold]    {result.commit_id}",
            f"[bold]Blob:[/bold]      {result.blob_id}",
            f"[bold]Manifest:[/bold]  {result.manifest_path} (version {result.manifest_version})",
            f"[bold]Raw URL:[/bold]   {result.raw_url}",
        ]
        if result.renamed:
            lines.append("[yellow]Name was taken; stored under a unique name.[/yellow]")
        if result.replaced_existing:
            lines.append("[magenta]Existing file was overwritten.[/magenta]")

        content = Group(
            Text.from_markup("\n".join(lines)),
            Text(""),
            self._build_attempt_table(result.attempts),
        )
        return Panel(
            content,
            title="[bold]repodrop[/bold]",
            border_style="green",
            padding=(1, 2),
        )

    def _build_attempt_table(self, attempts: list[AttemptRecord]) -> Table:
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("#", style="dim", width=3, justify="right")
        table.add_column("Parent", min_width=12)
        table.add_column("Outcome", justify="center", min_width=8)
        table.add_column("Details")

        for record in attempts:
            table.add_row(
                str(record.attempt),
                (record.parent_id or "-")[:12],
                _OUTCOME_LABELS.get(record.outcome, record.outcome.value),
                f"[red]{escape(record.error)}[/red]" if record.error else "[dim]-[/dim]",
            )
        return table

    def print_result(self, result: UploadResult) -> None:
        self.console.print(self.render_result(result))

    # ------------------------------------------------------------------
    # Manifest
    # ------------------------------------------------------------------

    def render_manifest(self, manifest: Manifest, *, limit: int | None = None) -> Table:
        """Render manifest entries, newest first."""
        table = Table(
            title=f"Manifest version {manifest.version or '-'}  ({manifest.generated_at or 'never generated'})",
            show_header=True,
            header_style="bold cyan",
            expand=True,
        )
        table.add_column("Path", min_width=24)
        table.add_column("Type", min_width=10)
        table.add_column("Uploaded", min_width=24)
        table.add_column("Description")

        entries = manifest.files if limit is None else manifest.files[:limit]
        for entry in entries:
            if not isinstance(entry, FileEntry):
                label = entry.get("path", entry) if isinstance(entry, dict) else entry
                table.add_row(escape(str(label)), "[dim]-[/dim]", "[dim]-[/dim]", "[yellow]unrecognized entry[/yellow]")
                continue
            table.add_row(
                escape(entry.path),
                escape(entry.type) if entry.type else "[dim]-[/dim]",
                escape(entry.uploaded_at) if entry.uploaded_at else "[dim]-[/dim]",
                escape(entry.description) if entry.description else "[dim]-[/dim]",
            )
        if not entries:
            table.add_row("[dim]no entries[/dim]", "", "", "")
        return table

    def print_manifest(self, manifest: Manifest, *, limit: int | None = None) -> None:
        self.console.print(self.render_manifest(manifest, limit=limit))

    # ------------------------------------------------------------------
    # Errors
    # ------------------------------------------------------------------

    def render_error(self, report: ErrorReport) -> Panel:
        lines = [
            f"[bold]Kind:[/bold]    {report.kind}",
            f"[bold]Status:[/bold]  {report.http_status}",
        ]
        if report.remote_status is not None:
            lines.append(f"[bold]Remote:[/bold]  HTTP {report.remote_status}")
        lines.append(f"[bold]Detail:[/bold]  {escape(str(report.detail))}")
        return Panel(
            Text.from_markup("\n".join(lines)),
            title="[bold red]Upload failed[/bold red]",
            border_style="red",
            padding=(1, 2),
        )

    def print_error(self, report: ErrorReport) -> None:
        self.console.print(self.render_error(report))
