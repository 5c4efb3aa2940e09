"""Tile38 notifications, decoded once into routing-ready events.

Learn: The channel name says who an event is for. Instead of re-parsing
it wherever a message is delivered, decode_event() turns each
(channel, payload) pair into one of two tagged types:

    TargetedUpdate   viewport:{id} → exactly one connection
    BroadcastUpdate  roamchan / place:{id} → every connection

Place events are decorated on the way in: their `properties` field is
replaced by the place's display properties, so a client sees the same
shape for enter/exit events as for the places snapshot it got at connect.
"""

import json
from dataclasses import dataclass
from typing import Any, Mapping, Union

from fencecast.tile38.channels import PLACE_PREFIX, VIEWPORT_PREFIX


class MalformedEvent(ValueError):
    """A payload that should be JSON isn't."""


@dataclass(frozen=True)
class TargetedUpdate:
    connection_id: str
    payload: str


@dataclass(frozen=True)
class BroadcastUpdate:
    source_tag: str
    payload: str


Event = Union[TargetedUpdate, BroadcastUpdate]


def decode_event(
    channel: str,
    payload: str,
    place_props: Mapping[str, Any],
) -> Event:
    """Classify a notification by its channel and decorate place events."""
    if channel.startswith(VIEWPORT_PREFIX):
        return TargetedUpdate(channel[len(VIEWPORT_PREFIX):], payload)

    if channel.startswith(PLACE_PREFIX):
        props = place_props.get(channel[len(PLACE_PREFIX):])
        if props is not None:
            payload = decorate(payload, props)

    return BroadcastUpdate(channel, payload)


def decorate(payload: str, properties: Any) -> str:
    """Overwrite the payload's top-level `properties` field."""
    try:
        doc = json.loads(payload)
    except json.JSONDecodeError as e:
        raise MalformedEvent(str(e)) from e
    if not isinstance(doc, dict):
        raise MalformedEvent("event payload is not a JSON object")
    doc["properties"] = properties
    return json.dumps(doc)
