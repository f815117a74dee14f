"""Main Typer application — imports and registers all CLI commands.

Entry point: ``assetforge`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import logging

import typer
from rich.logging import RichHandler

from assetforge.cli.commands.build import build_cmd
from assetforge.cli.commands.check import check_cmd
from assetforge.cli.commands.serve import serve_cmd

app = typer.Typer(
    name="assetforge",
    help="assetforge: on-demand asset build cache.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


def configure_logging(level: str = "INFO") -> None:
    """Route the standard library loggers through Rich."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    configure_logging("DEBUG" if verbose else "WARNING")


# Register subcommands
app.command(name="build", help="Generate an artifact from source roots.")(build_cmd)
app.command(name="check", help="Report whether an artifact is stale.")(check_cmd)
app.command(name="serve", help="Run the asset server.")(serve_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
