"""``assetforge check DEST SRC...`` — report whether an artifact is stale."""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console

from assetforge.core.errors import AssetError
from assetforge.core.orchestrator import BuildOrchestrator
from assetforge.core.resolvers import build_mount

console = Console()


def check_cmd(
    dest: Path = typer.Argument(..., help="Destination artifact path."),
    sources: list[Path] = typer.Argument(..., help="Source files or directories."),
    ext: list[str] = typer.Option(
        [],
        "--ext",
        "-e",
        help="Only consider files with this extension (repeatable).",
    ),
) -> None:
    """Exit 0 when DEST is fresh, 1 when it would be rebuilt."""
    mount = build_mount(
        src=sources,
        dest=dest,
        pipeline={"prefilter": ext} if ext else None,
    )
    orchestrator = BuildOrchestrator(mount)

    try:
        stale = asyncio.run(orchestrator.check(str(dest)))
    except AssetError as exc:
        console.print(f"[bold red]{exc.kind.value} error:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc

    if stale:
        reason = "missing" if not dest.exists() else "stale"
        console.print(f"[yellow]{dest} is {reason}[/yellow]")
        raise typer.Exit(code=1)
    console.print(f"[green]{dest} is fresh[/green]")
