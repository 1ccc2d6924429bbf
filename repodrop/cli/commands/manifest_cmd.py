"""``repodrop manifest`` — show the manifest at the branch head."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.markup import escape

from repodrop.cli.commands.upload import open_store
from repodrop.cli.renderer import UploadRenderer
from repodrop.config import config
from repodrop.core.errors import RepodropError
from repodrop.core.production_guard import ProductionConfigError
from repodrop.core.uploader import ArtifactUploader

console = Console()


def manifest_cmd(
    repo: str = typer.Option(
        None,
        "--repo",
        help="Repository as owner/name (defaults to REPODROP_GITHUB_REPO).",
    ),
    branch: str = typer.Option(
        None,
        "--branch",
        "-b",
        help="Branch to read (defaults to REPODROP_BRANCH).",
    ),
    limit: int = typer.Option(
        None,
        "--limit",
        "-l",
        min=1,
        help="Show at most this many entries.",
    ),
) -> None:
    """Show the manifest entries, newest first."""
    renderer = UploadRenderer(console=console)
    try:
        store = open_store(repo)
    except RepodropError as exc:
        renderer.print_error(exc.to_report())
        raise typer.Exit(code=1)

    try:
        uploader = ArtifactUploader(store, config, repo=repo, branch=branch)
        manifest = uploader.read_manifest()
    except ProductionConfigError as exc:
        console.print(f"[bold red]{escape(str(exc))}[/bold red]")
        raise typer.Exit(code=1)
    except RepodropError as exc:
        renderer.print_error(exc.to_report())
        raise typer.Exit(code=1)
    finally:
        store.close()

    renderer.print_manifest(manifest, limit=limit)
