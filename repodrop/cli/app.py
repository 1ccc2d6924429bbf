"""Main Typer application — imports and registers all CLI commands.

Entry point: ``repodrop`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import logging

import typer

from repodrop.cli.commands.demo import demo_cmd
from repodrop.cli.commands.manifest_cmd import manifest_cmd
from repodrop.cli.commands.upload import upload_cmd
from repodrop.config import config

app = typer.Typer(
    name="repodrop",
    help="repodrop: atomic artifact uploads to a git repository, with a manifest.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def main_callback(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Log every pipeline step (DEBUG level)."
    ),
) -> None:
    """Configure logging before any command runs."""
    level = logging.DEBUG if verbose else getattr(logging, config.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )


# Register subcommands
app.command(name="upload", help="Upload a file and record it in the manifest.")(upload_cmd)
app.command(name="manifest", help="Show the manifest at the branch head.")(manifest_cmd)
app.command(name="demo", help="Run the upload pipeline against an in-memory repository.")(demo_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
