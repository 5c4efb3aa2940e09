"""Health check endpoint.

Learn: Simple GET endpoint that verifies the server is running, Tile38
is reachable, and reports what the relay loop is doing.
"""

from dataclasses import asdict

from fastapi import APIRouter, Request

from fencecast import __version__
from fencecast.tile38.client import BackendError

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Check server health and Tile38 connectivity."""
    ctx = request.app.state.ctx
    checks = {"server": "ok", "version": __version__}

    try:
        await ctx.backend.ping()
        checks["tile38"] = "ok"
    except BackendError as e:
        checks["tile38"] = f"error: {e}"

    relay = asdict(ctx.relay.stats)
    healthy = checks["tile38"] == "ok" and relay["state"] == "subscribed"

    return {
        "status": "healthy" if healthy else "degraded",
        **checks,
        "connections": len(ctx.registry),
        "relay": relay,
    }
