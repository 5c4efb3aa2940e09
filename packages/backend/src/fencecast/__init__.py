"""fencecast — real-time geofence relay.

Bridges Tile38 geofence notifications to live websocket clients and
resolves "who is near this point" for chat delivery.
"""

__version__ = "0.1.0"
