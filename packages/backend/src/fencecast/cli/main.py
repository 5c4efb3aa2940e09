"""fencecast CLI — run the relay, or seed Tile38 without it.

Usage:
    fencecast serve                    # uvicorn on FENCECAST_HOST:FENCECAST_PORT
    fencecast serve --port 9000 --reload
    fencecast provision                # declare places + fences, then exit
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Optional

import click

from fencecast.config import settings


@click.group()
def cli():
    """Real-time geofence relay between Tile38 and websocket clients."""


@cli.command()
@click.option("--host", default=None, help="Bind address (default: FENCECAST_HOST).")
@click.option("--port", type=int, default=None, help="Bind port (default: FENCECAST_PORT).")
@click.option("--reload", is_flag=True, help="Restart on code changes (development).")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Start the HTTP/WebSocket server."""
    import uvicorn

    uvicorn.run(
        "fencecast.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


@cli.command()
def provision():
    """Declare every configured place and the roaming fence in Tile38."""
    from fencecast.geo.places import load_places
    from fencecast.geo.places import provision as provision_places
    from fencecast.tile38.client import Tile38Client

    places = load_places(Path(settings.fences_dir), settings.places)
    if not places:
        click.secho(f"No place fixtures found in {settings.fences_dir}", fg="red", err=True)
        sys.exit(1)

    async def _provision() -> list[str]:
        backend = Tile38Client.from_url(settings.tile38_url)
        try:
            return await provision_places(backend, places, settings.roam_distance)
        finally:
            await backend.close()

    declared = asyncio.run(_provision())
    for channel in declared:
        click.echo(f"  declared {channel}")
    click.secho(f"{len(declared)} channel(s) declared on {settings.tile38_url}", fg="green")


def main():
    cli()


if __name__ == "__main__":
    main()
