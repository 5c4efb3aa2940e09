"""Static places — fixture loading and Tile38 provisioning.

Learn: Each place is a GeoJSON Feature in <fences_dir>/<place>.geo.json.
At startup every place becomes:
- an object in the `places` collection (so clients can draw it), and
- a WITHIN fence on `people` bound to channel place:{id}, detecting
  enter/exit.

One extra NEARBY ROAM fence (roamchan) fires whenever two people come
within roam_distance of each other, independent of any place.

The props map (place ID → display properties) is built here once and
never changes afterwards, so the relay reads it without locking.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Mapping

import structlog

from fencecast.tile38.channels import ROAM_CHANNEL, place_channel
from fencecast.tile38.client import PEOPLE, PLACES, BackendError, Tile38Client

logger = structlog.get_logger()


class FixtureError(Exception):
    """A place fixture is missing or isn't a GeoJSON object."""


@dataclass(frozen=True)
class Place:
    id: str
    geojson: str
    properties: dict[str, Any] = field(default_factory=dict)


def load_place(fences_dir: Path, place_id: str) -> Place:
    path = Path(fences_dir) / f"{place_id}.geo.json"
    try:
        raw = path.read_text(encoding="utf-8")
        doc = json.loads(raw)
    except (OSError, json.JSONDecodeError) as e:
        raise FixtureError(f"{path}: {e}") from e
    if not isinstance(doc, dict):
        raise FixtureError(f"{path}: not a GeoJSON object")
    return Place(id=place_id, geojson=raw, properties=doc.get("properties") or {})


def load_places(fences_dir: Path, place_ids: Iterable[str]) -> list[Place]:
    """Load every configured place, skipping (and logging) broken fixtures."""
    places = []
    for place_id in place_ids:
        try:
            places.append(load_place(fences_dir, place_id))
        except FixtureError as e:
            logger.warning("places.fixture_skipped", place=place_id, error=str(e))
    return places


def props_map(places: Iterable[Place]) -> Mapping[str, Any]:
    """Read-only place ID → properties mapping."""
    return MappingProxyType({p.id: p.properties for p in places})


async def provision(
    backend: Tile38Client,
    places: Iterable[Place],
    roam_distance: float,
) -> list[str]:
    """Declare places and fences in Tile38. Returns the channels declared.

    Learn: SET and SETCHAN are idempotent in Tile38 (they replace), so
    provisioning on every start is safe. A failure for one place is
    logged and the rest carry on.
    """
    declared = []
    for place in places:
        channel = place_channel(place.id)
        try:
            await backend.set_object(PLACES, place.id, place.geojson)
            await backend.set_channel(
                channel, "WITHIN", PEOPLE, "FENCE",
                "DETECT", "enter,exit", "OBJECT", place.geojson,
            )
        except BackendError as e:
            logger.warning("places.provision_failed", place=place.id, error=str(e))
            continue
        declared.append(channel)

    try:
        await backend.set_channel(
            ROAM_CHANNEL, "NEARBY", PEOPLE, "FENCE",
            "ROAM", PEOPLE, "*", roam_distance,
        )
        declared.append(ROAM_CHANNEL)
    except BackendError as e:
        logger.warning("places.roam_fence_failed", error=str(e))

    logger.info("places.provisioned", channels=declared)
    return declared
