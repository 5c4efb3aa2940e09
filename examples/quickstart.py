#!/usr/bin/env python3
"""
fencecast Quickstart — one client, start to finish.

Connects → receives its ID and the places → sends a viewport, a location
and a chat message → prints whatever comes back for a few seconds.
Run with: python examples/quickstart.py

Requires: pip install httpx websockets
Backend must be running: http://localhost:8000 (and Tile38 on :9851)
"""

import asyncio
import json
import sys

import httpx
import websockets

BASE = "http://localhost:8000/api/v1"
WS_URL = "ws://localhost:8000/ws"

# Inside the Colorado Convention Center fixture
LNG, LAT = -104.99700, 39.74200


async def run():
    async with websockets.connect(WS_URL) as ws:
        # ── Identity + places snapshot ─────────────────────────────
        hello = json.loads(await ws.recv())
        my_id = hello["id"]
        print(f"1. Connected as {my_id}")

        # ── Viewport: a box around the convention center ───────────
        print("2. Sending viewport...")
        await ws.send(json.dumps({
            "type": "Viewport",
            "data": {
                "_sw": {"lat": LAT - 0.01, "lng": LNG - 0.01},
                "_ne": {"lat": LAT + 0.01, "lng": LNG + 0.01},
            },
        }))

        # ── Location: stored with a short TTL, so keep refreshing ──
        me = {
            "type": "Feature",
            "geometry": {"type": "Point", "coordinates": [LNG, LAT]},
            "properties": {"color": "red"},
        }
        print("3. Sending location...")
        await ws.send(json.dumps(me))

        # ── Chat: delivered to everyone in the same place or nearby
        print("4. Sending chat message...")
        await ws.send(json.dumps({
            "type": "Message",
            "feature": {**me, "properties": {"text": "hello from the quickstart"}},
        }))

        print("\n5. Listening for 5 seconds...")
        try:
            async with asyncio.timeout(5):
                async for frame in ws:
                    msg = json.loads(frame)
                    via = msg.get("feature", {}).get("properties", {}).get("via")
                    if via:
                        print(f"   chat via {via}")
                    elif msg.get("detect"):
                        print(f"   {msg['detect']} event on {msg.get('hook', '?')}")
                    else:
                        print(f"   place {msg.get('id', '?')}")
        except TimeoutError:
            pass


def main():
    print("Checking backend health...")
    try:
        health = httpx.get(f"{BASE}/health", timeout=5).json()
    except httpx.ConnectError:
        print(f"Backend not reachable at {BASE}")
        print("Start it with:  cd packages/backend && fencecast serve")
        sys.exit(1)
    print(f"  Tile38: {'✓' if health['tile38'] == 'ok' else '✗'}")
    print(f"  Relay:  {health['relay']['state']}\n")

    asyncio.run(run())


if __name__ == "__main__":
    main()
