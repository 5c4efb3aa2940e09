"""FastAPI application factory.

Learn: App factory pattern. create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown: Tile38 client, place
provisioning, and the relay loop.

Run with: uvicorn fencecast.main:app --port 8000
"""

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from fencecast import __version__
from fencecast.api import api_router
from fencecast.config import Settings, settings as default_settings
from fencecast.context import build_context
from fencecast.geo.places import load_places, props_map, provision
from fencecast.tile38.client import Tile38Client

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs at
    shutdown. Tile38 being down is not fatal: provisioning logs and
    moves on, and the relay keeps retrying its subscription until
    Tile38 comes back.
    """
    cfg: Settings = app.state.settings
    logger.info(
        "fencecast.starting",
        version=__version__,
        environment=cfg.environment,
        port=cfg.port,
    )

    backend = app.state.backend or Tile38Client.from_url(
        cfg.tile38_url,
        max_connections=cfg.pool_max_connections,
        idle_timeout=cfg.idle_timeout,
    )

    places = load_places(Path(cfg.fences_dir), cfg.places)
    await provision(backend, places, cfg.roam_distance)

    ctx = build_context(cfg, backend, props_map(places))
    app.state.ctx = ctx
    relay_task = asyncio.create_task(ctx.relay.run_forever())
    logger.info("fencecast.relay_started", url=cfg.tile38_url, places=len(places))

    yield

    # Shutdown
    logger.info("fencecast.shutdown")

    ctx.relay.stop()
    relay_task.cancel()
    try:
        await relay_task
    except asyncio.CancelledError:
        pass

    await backend.close()


def create_app(
    settings: Optional[Settings] = None,
    backend: Optional[Tile38Client] = None,
) -> FastAPI:
    """Build and return the FastAPI application.

    Pass `backend` to run against something other than the configured
    Tile38 URL (tests hand in a client wrapping a fake).
    """
    cfg = settings or default_settings
    app = FastAPI(
        title="fencecast",
        description="Real-time geofence relay between Tile38 and websocket clients",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = cfg
    app.state.backend = backend

    app.include_router(api_router)

    from fencecast.realtime.websocket import router as ws_router
    app.include_router(ws_router)

    # Static map client, mounted last so it never shadows /ws or /api
    if Path(cfg.static_dir).is_dir():
        app.mount("/", StaticFiles(directory=cfg.static_dir, html=True), name="static")

    return app


# Default app instance (used by uvicorn: fencecast.main:app)
app = create_app()
