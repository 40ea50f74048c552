import dataclasses

import click
import requests
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import DaemonConfig

console = Console()


def _base_url(host: str, port: int) -> str:
    return f"http://{'localhost' if host == '0.0.0.0' else host}:{port}"


@click.group()
@click.version_option(version=__version__, prog_name="browserhost")
def main():
    """browserhost - isolated browser sessions over HTTP and MCP."""
    pass


@main.command()
def version():
    """Show version information."""
    console.print(f"[bold cyan]browserhost[/bold cyan] v{__version__}")


@main.command()
@click.option("--host", default=None, help="Host to bind to (default: BROWSERHOST_HOST or 127.0.0.1)")
@click.option("--port", default=None, type=int, help="Port to bind to (default: BROWSERHOST_PORT or 3000)")
@click.option("--headless/--headed", default=None, help="Run the browser without visible windows")
def serve(host: str, port: int, headless: bool):
    """Start the browserhost daemon."""
    from .server import run_server

    config = DaemonConfig.from_env()
    if host:
        config.host = host
    if port:
        config.port = port
    if headless is not None:
        config.engine = dataclasses.replace(config.engine, headless=headless)

    console.print("[bold cyan]Starting browserhost daemon...[/bold cyan]")
    console.print(f"HTTP API: {_base_url(config.host, config.port)}")
    console.print(f"MCP endpoint: {_base_url(config.host, config.port)}/mcp")
    run_server(config)


@main.command()
@click.option("--host", default="127.0.0.1", help="Daemon host")
@click.option("--port", default=3000, help="Daemon port")
def status(host: str, port: int):
    """Show daemon status."""
    try:
        resp = requests.get(f"{_base_url(host, port)}/status", timeout=5)
        data = resp.json()
    except requests.ConnectionError:
        console.print("[red]Error:[/red] Server not running. Start with: browserhost serve")
        return

    table = Table(title="browserhost", show_header=False)
    table.add_column("Label", style="dim")
    table.add_column("Value")

    memory = data.get("memoryUsage", {})
    table.add_row("Uptime", f"{data.get('uptime', 0)}s")
    table.add_row("Active sessions", str(data.get("sessions", {}).get("active", 0)))
    table.add_row("Browser open", "[green]yes[/green]" if data.get("browser", {}).get("isOpen") else "[dim]no[/dim]")
    table.add_row("RSS", f"{memory.get('rss', 0) / (1024 * 1024):.1f} MiB")
    table.add_row("Timestamp", data.get("timestamp", ""))
    console.print(table)


@main.command()
@click.option("--host", default="127.0.0.1", help="Daemon host")
@click.option("--port", default=3000, help="Daemon port")
def stop(host: str, port: int):
    """Ask the daemon to shut down."""
    try:
        resp = requests.post(f"{_base_url(host, port)}/quit", timeout=5)
        data = resp.json()
    except requests.ConnectionError:
        console.print("[red]Error:[/red] Server not running")
        return

    if data.get("success"):
        console.print(f"[green]✓[/green] {data.get('message')}")
    else:
        console.print("[red]✗[/red] Shutdown request failed")


if __name__ == "__main__":
    main()
