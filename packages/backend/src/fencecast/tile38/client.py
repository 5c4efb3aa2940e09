"""Tile38 command client — one pooled connection per command.

Learn: Every call borrows a connection from redis-py's bounded pool,
sends exactly one command and gives the connection back. No pipelines,
no MULTI/EXEC: each command stands alone, so callers decide whether a
failure is worth more than a log line.

The pub/sub subscription is different. subscription() hands out a
PubSub object that pins its own connection for as long as it lives,
keeping the streaming socket out of the request pool.

Reply shapes (RESP mode):
    SCAN places            → [cursor, [[id, object], ...]]
    INTERSECTS ... IDS ... → [cursor, [id, ...]]
    NEARBY ... IDS ...     → [cursor, [id, ...]]
A non-zero cursor means Tile38 truncated the page; we keep asking
with CURSOR <n> until it comes back as 0.
"""

from typing import Any, Optional, Sequence

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

logger = structlog.get_logger()

PEOPLE = "people"
PLACES = "places"


class BackendError(Exception):
    """A Tile38 command failed (network, protocol or error reply)."""

    def __init__(self, command: str, cause: Exception):
        super().__init__(f"{command}: {cause}")
        self.command = command
        self.cause = cause


class Tile38Client:
    """Thin async wrapper over a redis-py client pointed at Tile38."""

    def __init__(self, redis: aioredis.Redis):
        self._redis = redis

    @classmethod
    def from_url(
        cls,
        url: str,
        max_connections: int = 16,
        idle_timeout: float = 240.0,
    ) -> "Tile38Client":
        """Build a client with a bounded, blocking connection pool.

        Learn: BlockingConnectionPool makes a command wait for a free
        connection once all max_connections are busy, instead of failing
        with "Too many connections". One extra slot is reserved for the
        pub/sub subscription, which holds its connection for as long as
        it lives.

        redis-py has no idle-eviction knob; health_check_interval makes a
        connection that sat idle longer than idle_timeout verify itself
        with a PING before it is reused, which is the closest fit.
        """
        pool = aioredis.BlockingConnectionPool.from_url(
            url,
            max_connections=max_connections + 1,
            timeout=None,
            encoding="utf-8",
            decode_responses=True,
            health_check_interval=idle_timeout,
        )
        return cls(aioredis.Redis.from_pool(pool))

    async def close(self) -> None:
        await self._redis.aclose()

    # ─── Raw command ──────────────────────────────────────

    async def execute(self, command: str, *args: Any) -> Any:
        """Issue a single command and return Tile38's reply."""
        try:
            return await self._redis.execute_command(command, *args)
        except RedisError as e:
            raise BackendError(command, e) from e

    def subscription(self) -> aioredis.client.PubSub:
        """A pub/sub handle with its own long-lived connection."""
        return self._redis.pubsub()

    async def ping(self) -> bool:
        return bool(await self.execute("PING"))

    # ─── Objects ──────────────────────────────────────────

    async def set_object(
        self,
        collection: str,
        object_id: str,
        geojson: str,
        ttl: Optional[int] = None,
    ) -> None:
        """SET collection id [EX ttl] OBJECT geojson."""
        args: list[Any] = [collection, object_id]
        if ttl is not None:
            args += ["EX", ttl]
        args += ["OBJECT", geojson]
        await self.execute("SET", *args)

    async def delete_object(self, collection: str, object_id: str) -> None:
        await self.execute("DEL", collection, object_id)

    async def scan_objects(self, collection: str) -> list[tuple[str, str]]:
        """Every (id, object) pair in a collection."""
        items = await self._paged("SCAN", collection)
        try:
            return [(item[0], item[1]) for item in items]
        except (TypeError, IndexError) as e:
            raise BackendError("SCAN", e) from e

    # ─── Channels (geofences bound to pub/sub) ────────────

    async def set_channel(self, name: str, *clause: Any) -> None:
        """SETCHAN name <search clause>.

        The clause is passed through as-is, e.g.
        ("WITHIN", "people", "FENCE", "DETECT", "enter,exit", "OBJECT", gj).
        """
        await self.execute("SETCHAN", name, *clause)

    async def delete_channel(self, name: str) -> None:
        await self.execute("DELCHAN", name)

    # ─── Queries ──────────────────────────────────────────

    async def intersects_ids(self, collection: str, *area: Any) -> list[str]:
        """IDs of objects intersecting an area.

        Area examples: ("BOUNDS", minlat, minlon, maxlat, maxlon) or
        ("GET", "places", "hyatt-regency").
        """
        return await self._paged("INTERSECTS", collection, "IDS", *area)

    async def nearby_ids(
        self, collection: str, lat: float, lon: float, meters: float
    ) -> list[str]:
        """IDs of objects within `meters` of a point."""
        return await self._paged(
            "NEARBY", collection, "IDS", "POINT", lat, lon, meters
        )

    async def _paged(self, command: str, collection: str, *tail: Any) -> list:
        """Run a cursor-paginated search and concatenate the pages."""
        results: list = []
        cursor = 0
        while True:
            args: list[Any] = [collection]
            if cursor:
                args += ["CURSOR", cursor]
            reply = await self.execute(command, *args, *tail)
            cursor, page = _unpack_page(command, reply)
            results.extend(page)
            if not cursor:
                return results


def _unpack_page(command: str, reply: Any) -> tuple[int, Sequence]:
    """Split a [cursor, items] reply; anything else is a protocol error."""
    try:
        cursor, items = reply
        return int(cursor), list(items or [])
    except (TypeError, ValueError) as e:
        raise BackendError(command, e) from e
