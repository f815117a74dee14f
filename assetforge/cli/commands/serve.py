"""``assetforge serve`` — run the asset server."""

from __future__ import annotations

import typer
from rich.console import Console

from assetforge.config import ServerConfig

console = Console()


def serve_cmd(
    host: str = typer.Option(None, "--host", "-h", help="Bind address."),
    port: int = typer.Option(None, "--port", "-p", help="Bind port."),
    log_level: str = typer.Option(None, "--log-level", help="Log level."),
) -> None:
    """Serve the configured mount (see ASSETFORGE_* settings)."""
    try:
        import uvicorn
    except ImportError as e:
        console.print("[red]uvicorn is required.  Install with:  pip install assetforge[server][/red]")
        raise typer.Exit(code=1) from e

    from assetforge.cli.app import configure_logging
    from assetforge.serving.asgi import create_app

    overrides = {
        k: v for k, v in {"host": host, "port": port, "log_level": log_level}.items()
        if v is not None
    }
    config = ServerConfig(**overrides)
    configure_logging(config.log_level)

    console.print(
        f"[bold green]Starting assetforge[/bold green] on {config.host}:{config.port} "
        f"[dim](src={', '.join(map(str, config.src))}, force={config.force.value})[/dim]"
    )
    uvicorn.run(
        create_app(config),
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
        log_config=None,
    )
