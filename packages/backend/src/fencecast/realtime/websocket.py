"""WebSocket endpoint — one session per browser tab.

Learn: Each client connects to /ws. The handler:
1. Accepts and assigns an opaque connection ID
2. Sends the ID and the places snapshot (on_connect)
3. Registers the connection so the relay can reach it
4. Runs a reader (inbound frames → handlers) and a writer (outbox → socket)
5. On disconnect: unregisters, then deletes the connection's Tile38 state

Registration happens after the snapshot is queued, so the client always
sees its ID and the places before any live event.
"""

import asyncio
import uuid

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from fencecast.realtime.registry import Connection

logger = structlog.get_logger()
router = APIRouter()


@router.websocket("/ws")
async def relay_websocket(websocket: WebSocket):
    """Serve one client until either side hangs up.

    Learn: Two concurrent tasks run, as in any full-duplex socket:
    1. Reader: receive_text() → SessionHandlers.handle()
    2. Writer: Connection.writer() drains the outbox

    When either finishes (client gone, write failed), the other is
    cancelled and teardown runs. Other connections and the relay loop
    are never affected.
    """
    ctx = websocket.app.state.ctx
    await websocket.accept()

    conn = Connection(uuid.uuid4().hex, websocket, queue_size=ctx.settings.send_queue_size)
    structlog.contextvars.bind_contextvars(connection_id=conn.id)
    logger.info("ws.connected")

    async def client_listener():
        """Handle inbound frames one at a time, in arrival order."""
        try:
            while True:
                data = await websocket.receive_text()
                await ctx.handlers.handle(conn, data)
        except WebSocketDisconnect:
            pass

    writer_task = asyncio.create_task(conn.writer())
    tasks = [writer_task]

    try:
        await ctx.handlers.on_connect(conn)
        ctx.registry.insert(conn)
        tasks.append(asyncio.create_task(client_listener()))

        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            if not task.cancelled() and task.exception() is not None:
                logger.error("ws.task_failed", error=str(task.exception()))
    except Exception:
        logger.exception("ws.session_failed")
    finally:
        for task in tasks:
            task.cancel()
        ctx.registry.remove(conn.id)
        conn.close()
        await ctx.handlers.on_disconnect(conn.id)
        logger.info("ws.disconnected")
        structlog.contextvars.unbind_contextvars("connection_id")
        if websocket.client_state == WebSocketState.CONNECTED:
            await websocket.close()
