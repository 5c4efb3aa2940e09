"""Query aggregator — who is "with" a point right now?

Learn: Two independent questions, answered by Tile38 and merged by
person ID:

1. Which static places contain the point? For each, who is inside it?
   → label = place ID
2. Who is within roam_distance of the point?
   → label = "roaming"

Someone inside a place *and* nearby gets both labels, places first.
Any failed lookup aborts the whole resolution. A partial recipient
list would silently skip people, which is worse than not sending.
"""

import structlog

from fencecast.tile38.client import PEOPLE, PLACES, BackendError, Tile38Client

logger = structlog.get_logger()

ROAMING = "roaming"


class ResolveError(Exception):
    """resolve() could not complete; no partial result is returned."""

    def __init__(self, x: float, y: float, cause: BackendError):
        super().__init__(f"resolve({x}, {y}) failed: {cause}")
        self.cause = cause


class QueryAggregator:
    """Resolves co-located people for a coordinate (x = lng, y = lat)."""

    def __init__(self, backend: Tile38Client, roam_distance: float = 100):
        self._backend = backend
        self.roam_distance = roam_distance

    async def resolve(self, x: float, y: float) -> dict[str, list[str]]:
        """Map of person (connection) ID → match labels, in discovery order."""
        matches: dict[str, list[str]] = {}
        try:
            place_ids = await self._backend.intersects_ids(
                PLACES, "BOUNDS", y, x, y, x
            )
            for place_id in place_ids:
                people = await self._backend.intersects_ids(
                    PEOPLE, "GET", PLACES, place_id
                )
                for person_id in people:
                    matches.setdefault(person_id, []).append(place_id)

            nearby = await self._backend.nearby_ids(PEOPLE, y, x, self.roam_distance)
            for person_id in nearby:
                matches.setdefault(person_id, []).append(ROAMING)
        except BackendError as e:
            raise ResolveError(x, y, e) from e

        logger.debug("aggregator.resolved", x=x, y=y, recipients=len(matches))
        return matches
