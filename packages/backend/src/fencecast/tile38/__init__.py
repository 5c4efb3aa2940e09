"""Tile38 access — command client and channel naming.

Learn: Tile38 speaks the Redis wire protocol, so redis-py's asyncio
client does all the socket work. Everything geospatial (fences,
nearby queries, roaming) happens inside Tile38; this package only
builds commands and unpacks replies.
"""

from fencecast.tile38.client import BackendError, Tile38Client

__all__ = ["BackendError", "Tile38Client"]
