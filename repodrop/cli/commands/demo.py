"""``repodrop demo`` — run the upload pipeline against an in-memory repository.

Walks through the three situations the pipeline is built for:

1. a fresh upload, committed together with a new manifest
2. the same name again, stored under a unique prefixed name
3. an outside writer moving the branch mid-commit, absorbed by a retry

Nothing leaves the process; no token or network access is needed.
"""

from __future__ import annotations

import time
from collections.abc import Mapping

import typer
from rich.console import Console
from rich.panel import Panel

from repodrop.bridge.memory import InMemoryObjectStore
from repodrop.cli.renderer import UploadRenderer
from repodrop.config import RepodropConfig
from repodrop.core.uploader import ArtifactUploader
from repodrop.models.upload import UploadRequest

console = Console()

_SAMPLE_PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class _RacingStore(InMemoryObjectStore):
    """Pushes one outside commit right before the next ref update."""

    def __init__(self) -> None:
        super().__init__()
        self.pending_push: Mapping[str, bytes] | None = None

    def update_ref(self, branch: str, expected_parent_id: str, new_commit_id: str) -> None:
        if self.pending_push:
            files, self.pending_push = self.pending_push, None
            self.push(branch, files, message="Concurrent edit")
        super().update_ref(branch, expected_parent_id, new_commit_id)


def demo_cmd(
    delay: float = typer.Option(
        0.5,
        "--delay",
        "-d",
        help="Delay in seconds between demo steps for visual effect.",
    ),
) -> None:
    """Upload sample artifacts into an in-memory repository and show each commit."""
    store = _RacingStore()
    store.bootstrap("main", {"README.md": b"# demo pool\n"})
    uploader = ArtifactUploader(
        store,
        RepodropConfig(
            environment="development",
            github_repo="demo/pool",
            branch="main",
            retry_delay_seconds=0.0,
        ),
    )
    renderer = UploadRenderer(console=console)

    console.print()
    console.print(
        Panel(
            "[bold]repodrop demo[/bold]\n"
            "[dim]In-memory repository 'demo/pool', branch 'main'.[/dim]",
            border_style="cyan",
        )
    )

    steps = [
        ("Fresh upload", None),
        ("Same name again", None),
        ("Outside writer moves the branch mid-commit", {"notes/changelog.md": b"- edited elsewhere\n"}),
    ]
    for title, racing_push in steps:
        console.print(f"\n[bold cyan]>> {title}[/bold cyan]")
        store.pending_push = racing_push
        result = uploader.upload(
            UploadRequest(
                original_filename="photo.png",
                data=_SAMPLE_PNG,
                directory="images",
                content_type="image/png",
            )
        )
        renderer.print_result(result)
        time.sleep(delay)

    console.print()
    renderer.print_manifest(uploader.read_manifest())
    console.print(
        f"\n[dim]Commits: {store.object_counts['commits']}  "
        f"Blobs: {store.object_counts['blobs']}  "
        f"Calls: {dict(store.calls)}[/dim]"
    )
