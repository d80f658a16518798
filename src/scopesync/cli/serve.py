"""
ScopeSync CLI - serve command.

Runs the internal connection API with uvicorn.
"""

import logging
from typing import Annotated

import typer
from rich.console import Console

from scopesync.core.config import load_config

console = Console()


def serve(
    host: Annotated[
        str | None, typer.Option("--host", help="Interface to bind (default from config)")
    ] = None,
    port: Annotated[
        int | None, typer.Option("--port", "-p", help="Port to listen on (default from config)")
    ] = None,
    debug: Annotated[bool, typer.Option("--debug", help="Enable debug logging")] = False,
) -> None:
    """
    Start the connection API server.

    Examples:
        scopesync serve
        scopesync serve --port 9000
    """
    if debug:
        logging.basicConfig(level=logging.DEBUG)

    try:
        import uvicorn

        from scopesync.core.api import create_app
    except ImportError as e:
        console.print(
            f"[red]Error:[/red] Server dependencies not installed. Missing module: {e.name}"
        )
        console.print("[dim]Install with: pip install fastapi uvicorn[/dim]")
        raise typer.Exit(1)

    config = load_config()
    bind_host = host or config.api.host
    bind_port = port or config.api.port

    console.print("[bold cyan]Starting connection API...[/bold cyan]")
    console.print(f"[dim]API: http://{bind_host}:{bind_port}/api/connections[/dim]")
    console.print(f"[dim]Docs: http://{bind_host}:{bind_port}/docs[/dim]")
    console.print("\n[dim]Press Ctrl+C to stop[/dim]\n")

    try:
        uvicorn.run(
            create_app(teamwork_config=config.teamwork),
            host=bind_host,
            port=bind_port,
            log_level="debug" if debug else "info",
        )
    except KeyboardInterrupt:
        console.print("\n[yellow]Server stopped[/yellow]")
        raise typer.Exit(0)
