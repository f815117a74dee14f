"""assetforge CLI — Typer-based command-line interface.

Provides the ``assetforge`` command with subcommands for one-off builds,
staleness checks, and running the asset server.

All output uses Rich for formatted terminal display.
"""
