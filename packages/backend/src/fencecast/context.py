"""Process-wide objects, built once and passed around explicitly.

Learn: Nothing here is a module global. The lifespan builds one
RelayContext and stores it on app.state; the websocket endpoint and the
health check read it from there. Tests build their own context around
a fake backend without touching the real app.
"""

from dataclasses import dataclass
from typing import Any, Mapping

from fencecast.config import Settings
from fencecast.geo.aggregator import QueryAggregator
from fencecast.realtime.handlers import SessionHandlers
from fencecast.realtime.registry import ConnectionRegistry
from fencecast.realtime.relay import SubscriptionRelay
from fencecast.tile38.client import Tile38Client


@dataclass
class RelayContext:
    settings: Settings
    backend: Tile38Client
    registry: ConnectionRegistry
    place_props: Mapping[str, Any]
    aggregator: QueryAggregator
    handlers: SessionHandlers
    relay: SubscriptionRelay


def build_context(
    settings: Settings,
    backend: Tile38Client,
    place_props: Mapping[str, Any],
) -> RelayContext:
    registry = ConnectionRegistry()
    aggregator = QueryAggregator(backend, roam_distance=settings.roam_distance)
    return RelayContext(
        settings=settings,
        backend=backend,
        registry=registry,
        place_props=place_props,
        aggregator=aggregator,
        handlers=SessionHandlers(
            backend, registry, aggregator, person_ttl=settings.person_ttl
        ),
        relay=SubscriptionRelay(
            backend, registry, place_props,
            reconnect_delay=settings.reconnect_delay,
        ),
    )
