"""Per-connection handlers — lifecycle hooks and inbound message routing.

Learn: A connection owns two pieces of Tile38 state, both keyed by its ID:

    people/{id}         last reported location, expires after person_ttl
    viewport:{id} chan  INTERSECTS fence over the client's map bounds

on_connect() creates neither; they appear when the client sends its
first Feature / Viewport. on_disconnect() deletes both, and deleting
something that was never there is fine, so teardown is idempotent.

Inbound frames are JSON with a `type` field:
- Viewport → replace this connection's viewport fence
- Feature  → store/refresh this connection's location
- Message  → chat: find everyone near the sender, tell each how they matched

Failures are logged and dropped. Nothing is echoed back to the client.
"""

import json
from typing import Any, Awaitable, Callable

import structlog
from pydantic import ValidationError

from fencecast.geo.aggregator import QueryAggregator, ResolveError
from fencecast.realtime.registry import Connection, ConnectionRegistry
from fencecast.realtime.schemas import ChatMessage, ViewportMessage
from fencecast.tile38.channels import viewport_channel
from fencecast.tile38.client import PEOPLE, PLACES, BackendError, Tile38Client

logger = structlog.get_logger()

Handler = Callable[[Connection, str, dict[str, Any]], Awaitable[None]]


class SessionHandlers:
    """Everything the websocket endpoint delegates to."""

    def __init__(
        self,
        backend: Tile38Client,
        registry: ConnectionRegistry,
        aggregator: QueryAggregator,
        person_ttl: int = 5,
    ):
        self._backend = backend
        self._registry = registry
        self._aggregator = aggregator
        self.person_ttl = person_ttl
        self._routes: dict[str, Handler] = {
            "Viewport": self.viewport,
            "Feature": self.feature,
            "Message": self.message,
        }

    # ─── Lifecycle ────────────────────────────────────────

    async def on_connect(self, conn: Connection) -> None:
        """Announce the connection ID, then push every place."""
        conn.send(json.dumps({"type": "ID", "id": conn.id}))

        try:
            places = await self._backend.scan_objects(PLACES)
        except BackendError as e:
            logger.warning("handlers.places_snapshot_failed", error=str(e))
            return

        for _, geojson in places:
            conn.send(geojson)

    async def on_disconnect(self, connection_id: str) -> None:
        """Drop the viewport fence and the person record. Safe to repeat."""
        try:
            await self._backend.delete_channel(viewport_channel(connection_id))
        except BackendError as e:
            logger.warning("handlers.viewport_cleanup_failed", connection_id=connection_id, error=str(e))
        try:
            await self._backend.delete_object(PEOPLE, connection_id)
        except BackendError as e:
            logger.warning("handlers.person_cleanup_failed", connection_id=connection_id, error=str(e))

    # ─── Inbound messages ─────────────────────────────────

    async def handle(self, conn: Connection, raw: str) -> None:
        """Route one inbound frame by its `type`."""
        try:
            msg = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("handlers.bad_frame", error=str(e))
            return
        if not isinstance(msg, dict):
            logger.warning("handlers.bad_frame", error="frame is not a JSON object")
            return

        route = self._routes.get(msg.get("type"))
        if route is None:
            logger.debug("handlers.unknown_type", type=msg.get("type"))
            return
        await route(conn, raw, msg)

    async def viewport(self, conn: Connection, raw: str, msg: dict[str, Any]) -> None:
        """Declare (or replace) the connection's viewport fence."""
        try:
            bounds = ViewportMessage.model_validate(msg).data
        except ValidationError as e:
            logger.warning("handlers.viewport_invalid", error=str(e))
            return

        try:
            await self._backend.set_channel(
                viewport_channel(conn.id),
                "INTERSECTS", PEOPLE, "FENCE", "DETECT", "inside",
                "BOUNDS", bounds.sw.lat, bounds.sw.lng, bounds.ne.lat, bounds.ne.lng,
            )
        except BackendError as e:
            logger.warning("handlers.viewport_failed", error=str(e))

    async def feature(self, conn: Connection, raw: str, msg: dict[str, Any]) -> None:
        """Store the client's Feature verbatim as its person record."""
        try:
            await self._backend.set_object(PEOPLE, conn.id, raw, ttl=self.person_ttl)
        except BackendError as e:
            logger.warning("handlers.feature_failed", error=str(e))

    async def message(self, conn: Connection, raw: str, msg: dict[str, Any]) -> None:
        """Deliver a chat message to everyone co-located with its feature."""
        try:
            chat = ChatMessage.model_validate(msg)
        except ValidationError as e:
            logger.warning("handlers.message_invalid", error=str(e))
            return

        x, y = chat.feature.geometry.coordinates[:2]
        try:
            recipients = await self._aggregator.resolve(x, y)
        except ResolveError as e:
            logger.warning("handlers.message_resolve_failed", error=str(e))
            return

        feature = msg["feature"]
        if not isinstance(feature.get("properties"), dict):
            feature["properties"] = {}

        sent = 0
        for connection_id, via in recipients.items():
            target = self._registry.get(connection_id)
            if target is None:
                continue
            feature["properties"]["via"] = via
            if target.send(json.dumps(msg)):
                sent += 1
        logger.info("handlers.message_sent", recipients=len(recipients), delivered=sent)
