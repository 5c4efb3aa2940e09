"""Live websocket connections, keyed by connection ID.

Learn: The registry is touched from two sides. Each websocket handler
inserts/removes its own connection, and the relay loop looks connections
up to deliver events. Everything runs on one event loop and no method
awaits, so each call is atomic with respect to the others. Callers only
ever get a snapshot of IDs, never a live view of the dict, so a
connection closing mid-broadcast can't break the iteration.
"""

import asyncio
from typing import Optional

import structlog
from fastapi import WebSocket

logger = structlog.get_logger()


class Connection:
    """One client session with a bounded, non-blocking outbox.

    Learn: send() never awaits. It drops the message when the outbox is
    full or the connection is closing, so one slow browser can't stall
    the relay loop. writer() is the only coroutine that touches the
    socket for outbound frames.
    """

    def __init__(self, connection_id: str, websocket: WebSocket, queue_size: int = 256):
        self.id = connection_id
        self._websocket = websocket
        self._outbox: asyncio.Queue[str] = asyncio.Queue(maxsize=queue_size)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, text: str) -> bool:
        """Queue a frame. Returns False if it was dropped."""
        if self._closed:
            return False
        try:
            self._outbox.put_nowait(text)
        except asyncio.QueueFull:
            logger.warning("connection.send_dropped", connection_id=self.id, reason="queue_full")
            return False
        return True

    async def writer(self) -> None:
        """Drain the outbox into the websocket until it fails or is cancelled."""
        while True:
            text = await self._outbox.get()
            try:
                await self._websocket.send_text(text)
            except Exception as e:
                logger.info("connection.write_failed", connection_id=self.id, error=str(e))
                self._closed = True
                return

    def close(self) -> None:
        self._closed = True


class ConnectionRegistry:
    """Map of connection ID → Connection."""

    def __init__(self):
        self._conns: dict[str, Connection] = {}

    def insert(self, conn: Connection) -> None:
        self._conns[conn.id] = conn

    def remove(self, connection_id: str) -> Optional[Connection]:
        return self._conns.pop(connection_id, None)

    def get(self, connection_id: str) -> Optional[Connection]:
        return self._conns.get(connection_id)

    def snapshot_ids(self) -> list[str]:
        return list(self._conns)

    def __len__(self) -> int:
        return len(self._conns)
