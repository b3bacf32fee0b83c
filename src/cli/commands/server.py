"""HTTP server commands: serve, stop."""

import click
import httpx
from rich.console import Console

console = Console()

DEFAULT_SERVER = "http://127.0.0.1:8765"


@click.command()
@click.option("--host", default="127.0.0.1", help="Bind address")
@click.option("--port", default=8765, type=int, help="Port")
def serve(host: str, port: int):
    """Run the HTTP API."""
    import uvicorn

    from web.app import create_app

    uvicorn.run(create_app(), host=host, port=port)


@click.command()
@click.option("--server", default=DEFAULT_SERVER, help="Running steward server")
def stop(server: str):
    """Abort every in-flight operation on a running server."""
    try:
        response = httpx.post(f"{server.rstrip('/')}/api/operations/abort", timeout=10)
        response.raise_for_status()
    except httpx.HTTPError as e:
        console.print(f"[red]Could not reach {server}:[/] {e}")
        raise SystemExit(1)
    console.print(f"[green]Stopped[/] {response.json().get('cancelled', 0)} operation(s)")
