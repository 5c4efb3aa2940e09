"""Channel naming — the one place that knows how channels are spelled.

Channel naming:
    viewport:{connection_id}  one per client, INTERSECTS its map bounds
    roamchan                  one global ROAM fence over all people
    place:{place_id}          one per static place, WITHIN its polygon
"""

VIEWPORT_PREFIX = "viewport:"
PLACE_PREFIX = "place:"
ROAM_CHANNEL = "roamchan"

# Patterns handed to PSUBSCRIBE
SUBSCRIBE_PATTERNS = (f"{VIEWPORT_PREFIX}*", ROAM_CHANNEL, f"{PLACE_PREFIX}*")


def viewport_channel(connection_id: str) -> str:
    return f"{VIEWPORT_PREFIX}{connection_id}"


def place_channel(place_id: str) -> str:
    return f"{PLACE_PREFIX}{place_id}"
