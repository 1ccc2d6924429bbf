"""repodrop CLI — Typer-based command-line interface.

Provides the ``repodrop`` command with subcommands for uploading an
artifact, listing the manifest and running an offline demo.

All output uses Rich for formatted terminal display.
"""
