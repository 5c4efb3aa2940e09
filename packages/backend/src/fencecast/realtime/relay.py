"""Subscription relay — Tile38 PSUBSCRIBE → websocket clients.

Learn: One long-lived task owns one pub/sub connection and pattern-
subscribes to every geofence channel:

    viewport:*  per-client viewport fences (targeted)
    roamchan    people near people (broadcast)
    place:*     enter/exit of static places (broadcast)

Lifecycle:

    idle → connecting → subscribed → reconnecting → connecting ...

idle is the state before run_forever() starts; stop() ends in stopped.

A bad payload costs one event, never the loop. A dead connection costs
the subscription: we wait reconnect_delay and subscribe again from
scratch. Tile38 pub/sub is fire-and-forget, so whatever was published
while we were away is gone. Clients catch up on the next update.

Delivery is a single consumer loop, so each connection sees events in
the order Tile38 sent them.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Mapping

import structlog
from redis.exceptions import RedisError

from fencecast.realtime.events import BroadcastUpdate, Event, MalformedEvent, TargetedUpdate, decode_event
from fencecast.realtime.registry import ConnectionRegistry
from fencecast.tile38.channels import SUBSCRIBE_PATTERNS
from fencecast.tile38.client import Tile38Client

logger = structlog.get_logger()

# Pub/sub frames that carry a notification; the rest are (p)subscribe acks
_MESSAGE_TYPES = ("pmessage", "message")


@dataclass
class RelayStats:
    """Runtime counters for the health endpoint."""
    state: str = "idle"
    received: int = 0
    delivered: int = 0
    dropped: int = 0
    errors: int = 0
    reconnects: int = 0


class SubscriptionRelay:
    """Fans Tile38 notifications out to registered connections.

    Usage:
        relay = SubscriptionRelay(backend, registry, place_props)
        task = asyncio.create_task(relay.run_forever())
        ...
        relay.stop()
        task.cancel()
    """

    def __init__(
        self,
        backend: Tile38Client,
        registry: ConnectionRegistry,
        place_props: Mapping[str, Any],
        reconnect_delay: float = 1.0,
    ):
        self._backend = backend
        self._registry = registry
        self._place_props = place_props
        self.reconnect_delay = reconnect_delay
        self.stats = RelayStats()
        self._running = False

    async def run_forever(self) -> None:
        """Subscribe, pump, and resubscribe until stopped or cancelled."""
        self._running = True
        logger.info("relay.started", patterns=list(SUBSCRIBE_PATTERNS))

        while self._running:
            self.stats.state = "connecting"
            try:
                await self._subscribe_and_pump()
            except (RedisError, OSError) as e:
                logger.warning("relay.subscription_lost", error=str(e))
            except Exception:
                logger.exception("relay.error")

            if not self._running:
                break
            self.stats.state = "reconnecting"
            self.stats.reconnects += 1
            await asyncio.sleep(self.reconnect_delay)

        self.stats.state = "stopped"

    def stop(self) -> None:
        """Signal the loop to exit after the current subscription ends."""
        self._running = False
        logger.info("relay.stopping")

    async def _subscribe_and_pump(self) -> None:
        pubsub = self._backend.subscription()
        try:
            await pubsub.psubscribe(*SUBSCRIBE_PATTERNS)
            self.stats.state = "subscribed"
            logger.info("relay.subscribed")

            async for message in pubsub.listen():
                if message["type"] in _MESSAGE_TYPES:
                    self.handle_message(message["channel"], message["data"])
        finally:
            await pubsub.aclose()

    def handle_message(self, channel: str, payload: str) -> None:
        """Decode one notification and hand it to its recipients."""
        self.stats.received += 1
        try:
            event = decode_event(channel, payload, self._place_props)
        except MalformedEvent as e:
            self.stats.errors += 1
            logger.warning("relay.malformed_event", channel=channel, error=str(e))
            return
        self.deliver(event)

    def deliver(self, event: Event) -> None:
        if isinstance(event, TargetedUpdate):
            # Client may have gone away since declaring the fence
            self._send(event.connection_id, event.payload)
        elif isinstance(event, BroadcastUpdate):
            for connection_id in self._registry.snapshot_ids():
                self._send(connection_id, event.payload)

    def _send(self, connection_id: str, payload: str) -> None:
        conn = self._registry.get(connection_id)
        if conn is not None and conn.send(payload):
            self.stats.delivered += 1
        else:
            self.stats.dropped += 1
