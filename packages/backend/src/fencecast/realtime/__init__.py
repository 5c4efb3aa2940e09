"""Real-time infrastructure — Tile38 pub/sub + WebSocket.

Learn: Events flow through two paths:
1. Clients → WebSocket → handlers → Tile38 (locations, viewports, chat lookups)
2. Tile38 PSUBSCRIBE → relay → registry → WebSocket → clients

Tile38 does the geofencing; this package only moves messages and keeps
per-connection state tidy.
"""
