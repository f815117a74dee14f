"""``assetforge build SRC... --dest PATH`` — generate an artifact once.

Runs the transform pipeline over the given source roots, honouring the
freshness policy, and prints what happened.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel

from assetforge.core.errors import AssetError
from assetforge.core.orchestrator import BuildOrchestrator
from assetforge.core.resolvers import build_mount
from assetforge.models.freshness import FreshnessPolicy

console = Console()


def build_cmd(
    sources: list[Path] = typer.Argument(
        ...,
        help="Source files or directories, in concatenation order.",
    ),
    dest: Path = typer.Option(
        ...,
        "--dest",
        "-d",
        help="Destination artifact path.",
    ),
    ext: list[str] = typer.Option(
        [],
        "--ext",
        "-e",
        help="Only include files with this extension (repeatable).",
    ),
    force: str = typer.Option(
        FreshnessPolicy.ALWAYS.value,
        "--force",
        "-f",
        help="Freshness policy: always, if-newer or never.",
    ),
    encoding: str = typer.Option(
        None,
        "--encoding",
        help="Text encoding; binary copy when omitted.",
    ),
) -> None:
    """Build DEST from SOURCES through the default byte-copy pipeline."""
    try:
        policy = FreshnessPolicy.coerce(force)
    except ValueError as exc:
        console.print(f"[bold red]{exc}[/bold red]")
        raise typer.Exit(code=2) from exc

    mount = build_mount(
        src=sources,
        dest=dest,
        force=policy,
        encoding=encoding,
        pipeline={"prefilter": ext} if ext else None,
    )
    orchestrator = BuildOrchestrator(mount)

    try:
        artifact = asyncio.run(orchestrator.handle(str(dest)))
    except AssetError as exc:
        console.print(f"[bold red]{exc.kind.value} error:[/bold red] {exc}")
        raise typer.Exit(code=1) from exc

    if artifact is None:
        console.print("[yellow]No source qualified; nothing was produced.[/yellow]")
        raise typer.Exit(code=3)

    rebuilt = orchestrator.generation_count > 0
    console.print(
        Panel(
            "\n".join([
                f"[bold]Artifact:[/bold] {artifact}",
                f"[bold]Size:[/bold]     {artifact.stat().st_size} bytes",
                f"[bold]Policy:[/bold]   {policy.value}",
                f"[bold]Rebuilt:[/bold]  {'yes' if rebuilt else 'no (fresh)'}",
            ]),
            title="[bold]assetforge[/bold]",
            border_style="green" if rebuilt else "cyan",
            padding=(1, 2),
        )
    )
