"""Typer CLI interface for WA Gateway."""

import asyncio
import os
import signal
import sys
from typing import Optional

import httpx
import typer
import uvicorn
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

app = typer.Typer(
    name="wa-gateway",
    help="WA Gateway - pair a messaging account and send through it over HTTP",
    add_completion=False,
)
console = Console()


async def check_service_running(host: str, port: int) -> bool:
    """Check if service is already running on port."""
    try:
        async with httpx.AsyncClient() as client:
            resp = await client.get(f"http://{host}:{port}/health", timeout=2.0)
            return resp.status_code == 200
    except httpx.HTTPError:
        return False


@app.command()
def serve(
    port: int = typer.Option(3000, "--port", help="HTTP/WebSocket port"),
    host: str = typer.Option("localhost", "--host", help="Bind address"),
    bridge_url: Optional[str] = typer.Option(
        None, "--bridge-url", help="Base URL of the messaging bridge"
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
    reload: bool = typer.Option(
        False, "--reload", help="Enable auto-reload (dev mode)"
    ),
):
    """Start WA Gateway service."""
    # Set environment variables BEFORE importing settings to ensure they're picked up
    if bridge_url:
        os.environ["BRIDGE_URL"] = bridge_url
    os.environ["DEBUG"] = "true" if debug else "false"

    from .config import Settings

    settings = Settings()

    if asyncio.run(check_service_running(host, port)):
        console.print(f"[red]Error:[/red] Service already running on port {port}")
        raise typer.Exit(1)

    # Setup signal handlers for graceful shutdown
    def signal_handler(sig, frame):
        console.print("\n[yellow]Shutting down gracefully...[/yellow]")
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    reveal_info = "enabled (PIN required)" if settings.REVEAL_PIN else "disabled"
    console.print(
        Panel.fit(
            f"[bold]WA Gateway[/bold]\n\n"
            f"🔗 Bridge: {settings.BRIDGE_URL}\n"
            f"📡 WebSocket: ws://{host}:{port}/ws\n"
            f"🔑 API key policy: {settings.API_KEY_POLICY}\n"
            f"🔒 Key reveal gate: {reveal_info}\n"
            f"🔍 Debug: {'enabled' if debug else 'disabled'}",
            border_style="green",
        )
    )

    uvicorn.run(
        "wa_gateway.main:build_app",
        factory=True,
        host=host,
        port=port,
        log_level="debug" if debug else "info",
        reload=reload,
        access_log=debug,
        # WebSocket keepalive - protocol-level pings
        ws_ping_interval=settings.WS_PROTOCOL_PING_INTERVAL,
        ws_ping_timeout=settings.WS_PROTOCOL_PING_TIMEOUT,
        timeout_keep_alive=120,  # HTTP keepalive 2min
    )


@app.command()
def status(
    port: int = typer.Option(3000, "--port", help="Service port"),
    host: str = typer.Option("localhost", "--host", help="Service host"),
):
    """Show the session state of a running service."""
    try:
        resp = httpx.get(f"http://{host}:{port}/session", timeout=5.0)
        resp.raise_for_status()
    except httpx.HTTPError as e:
        console.print(f"[red]Error:[/red] Cannot reach service on {host}:{port}: {e}")
        raise typer.Exit(1)

    session = resp.json()
    table = Table(title="Session", show_header=False)
    table.add_column("field", style="bold")
    table.add_column("value")
    for field in ("state", "connected", "awaitingPairing", "ready", "version", "updatedAt"):
        table.add_row(field, str(session.get(field)))
    console.print(table)


if __name__ == "__main__":
    app()
