"""``repodrop upload`` — commit one file plus the updated manifest.

The artifact and the manifest land in a single commit on the configured
branch.  On success the final path, commit id and raw URL are printed;
the raw URL is also printed plainly on the last line for scripting.
"""

from __future__ import annotations

import mimetypes
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from repodrop.bridge.github import GitHubObjectStore
from repodrop.bridge.object_store import RemoteObjectStore
from repodrop.cli.renderer import UploadRenderer
from repodrop.config import config
from repodrop.core.errors import RepodropError
from repodrop.core.production_guard import ProductionConfigError
from repodrop.core.uploader import ArtifactUploader
from repodrop.models.upload import UploadRequest

console = Console()


def open_store(repo: str | None) -> RemoteObjectStore:
    """Return the remote the CLI talks to."""
    return GitHubObjectStore.from_config(config, repo=repo)


def upload_cmd(
    file: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        readable=True,
        help="File to upload.",
    ),
    directory: str = typer.Option(
        "",
        "--dir",
        "-d",
        help="Target directory inside the repository.",
    ),
    filename: str = typer.Option(
        "",
        "--filename",
        "-n",
        help="Store under this name instead of the local file name.",
    ),
    overwrite: bool = typer.Option(
        False,
        "--overwrite",
        help="Replace an existing file instead of storing under a unique name.",
    ),
    content_type: str = typer.Option(
        None,
        "--content-type",
        help="Media type recorded in the manifest (guessed from the name if omitted).",
    ),
    repo: str = typer.Option(
        None,
        "--repo",
        help="Repository as owner/name (defaults to REPODROP_GITHUB_REPO).",
    ),
    branch: str = typer.Option(
        None,
        "--branch",
        "-b",
        help="Branch to commit onto (defaults to REPODROP_BRANCH).",
    ),
) -> None:
    """Upload FILE and record it in the manifest, atomically."""
    renderer = UploadRenderer(console=console)
    request = UploadRequest(
        original_filename=file.name,
        data=file.read_bytes(),
        directory=directory,
        filename=filename,
        overwrite=overwrite,
        content_type=content_type or mimetypes.guess_type(file.name)[0],
    )

    try:
        store = open_store(repo)
    except RepodropError as exc:
        renderer.print_error(exc.to_report())
        raise typer.Exit(code=1)

    try:
        uploader = ArtifactUploader(store, config, repo=repo, branch=branch)
        result = uploader.upload(request)
    except ProductionConfigError as exc:
        console.print(f"[bold red]{escape(str(exc))}[/bold red]")
        raise typer.Exit(code=1)
    except RepodropError as exc:
        renderer.print_error(exc.to_report())
        raise typer.Exit(code=1)
    finally:
        store.close()

    console.print()
    renderer.print_result(result)
    console.print()

    # Plain raw URL for scripting
    console.print(result.raw_url, markup=False, highlight=False, soft_wrap=True)
