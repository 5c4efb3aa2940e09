"""Test fixtures — fake Tile38 backend, isolated settings, live gating.

Learn: Unit tests never need a Tile38 server: `fake` is an in-memory
stand-in (see tests/fakes.py) and `backend` is the real Tile38Client
wrapped around it. Tests marked `live` talk to a real Tile38 and only
run with --run-live.
"""

import pytest
import pytest_asyncio

from fencecast.config import Settings
from fencecast.tile38.client import Tile38Client
from tests.fakes import FENCES_DIR, FakeTile38


def pytest_addoption(parser):
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="run tests that need a real Tile38 on FENCECAST_TILE38_URL",
    )


def pytest_collection_modifyitems(config, items):
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="needs --run-live and a Tile38 server")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


@pytest.fixture()
def fake() -> FakeTile38:
    return FakeTile38()


@pytest.fixture()
def backend(fake) -> Tile38Client:
    return Tile38Client(fake)


@pytest.fixture()
def test_settings(tmp_path) -> Settings:
    return Settings(
        fences_dir=str(FENCES_DIR),
        static_dir=str(tmp_path / "no-static"),
        reconnect_delay=0.01,
    )


@pytest_asyncio.fixture()
async def live_backend():
    """A client for a real Tile38. Collections are cleared around each test."""
    backend = Tile38Client.from_url(Settings().tile38_url)
    await backend.execute("DROP", "people")
    await backend.execute("DROP", "places")
    try:
        yield backend
    finally:
        await backend.execute("DROP", "people")
        await backend.execute("DROP", "places")
        await backend.close()
