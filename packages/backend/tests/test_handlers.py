"""Session handler tests — lifecycle hooks and inbound message routing."""

import json

import pytest

from fencecast.geo.aggregator import QueryAggregator
from fencecast.realtime.handlers import SessionHandlers
from fencecast.realtime.registry import ConnectionRegistry
from tests.fakes import FakeConnection


@pytest.fixture()
def registry():
    return ConnectionRegistry()


@pytest.fixture()
def handlers(backend, registry):
    return SessionHandlers(
        backend, registry, QueryAggregator(backend, roam_distance=100), person_ttl=5
    )


@pytest.fixture()
def me(registry):
    conn = FakeConnection("me")
    registry.insert(conn)
    return conn


def _viewport(sw, ne, corner_keys=("_sw", "_ne")):
    return json.dumps({
        "type": "Viewport",
        "data": {
            corner_keys[0]: {"lat": sw[0], "lng": sw[1]},
            corner_keys[1]: {"lat": ne[0], "lng": ne[1]},
        },
    })


def _chat(lng, lat, properties=None):
    feature = {"type": "Feature", "geometry": {"type": "Point", "coordinates": [lng, lat]}}
    if properties is not None:
        feature["properties"] = properties
    return json.dumps({"type": "Message", "feature": feature})


# ─── Lifecycle ────────────────────────────────────────────


@pytest.mark.asyncio
async def test_on_connect_sends_id_then_each_place(handlers, fake, me):
    fake.objects["places"] = {"a": '{"id":"a"}', "b": '{"id":"b"}'}

    await handlers.on_connect(me)

    assert json.loads(me.sent[0]) == {"type": "ID", "id": "me"}
    assert me.sent[1:] == ['{"id":"a"}', '{"id":"b"}']


@pytest.mark.asyncio
async def test_on_connect_still_sends_id_when_scan_fails(handlers, fake, me):
    fake.failing.add("SCAN")
    await handlers.on_connect(me)
    assert len(me.sent) == 1


@pytest.mark.asyncio
async def test_on_disconnect_removes_fence_and_person(handlers, fake, me):
    await handlers.handle(me, _viewport((39.7, -105.0), (39.8, -104.9)))
    await handlers.handle(me, json.dumps({"type": "Feature", "geometry": None}))
    assert "viewport:me" in fake.channels
    assert "me" in fake.objects["people"]

    await handlers.on_disconnect("me")

    assert "viewport:me" not in fake.channels
    assert "me" not in fake.objects["people"]


@pytest.mark.asyncio
async def test_on_disconnect_is_idempotent(handlers, fake):
    """Teardown for a client that never sent anything, twice, is harmless."""
    await handlers.on_disconnect("never-seen")
    await handlers.on_disconnect("never-seen")

    assert fake.commands("DELCHAN") == [("DELCHAN", "viewport:never-seen")] * 2
    assert fake.commands("DEL") == [("DEL", "people", "never-seen")] * 2


@pytest.mark.asyncio
async def test_on_disconnect_attempts_both_deletes_on_failure(handlers, fake):
    fake.failing.add("DELCHAN")
    await handlers.on_disconnect("c1")
    assert fake.commands("DEL") == [("DEL", "people", "c1")]


# ─── Viewport ─────────────────────────────────────────────


@pytest.mark.asyncio
async def test_viewport_declares_bounds_fence(handlers, fake, me):
    await handlers.handle(me, _viewport((39.70, -105.01), (39.76, -104.98)))

    assert fake.commands("SETCHAN") == [(
        "SETCHAN", "viewport:me",
        "INTERSECTS", "people", "FENCE", "DETECT", "inside",
        "BOUNDS", 39.70, -105.01, 39.76, -104.98,
    )]


@pytest.mark.asyncio
async def test_viewport_accepts_plain_corner_names(handlers, fake, me):
    await handlers.handle(me, _viewport((1, 2), (3, 4), corner_keys=("sw", "ne")))
    assert fake.channels["viewport:me"][-4:] == (1.0, 2.0, 3.0, 4.0)


@pytest.mark.asyncio
async def test_inverted_viewport_is_passed_through(handlers, fake, me):
    await handlers.handle(me, _viewport((40.0, -104.0), (39.0, -105.0)))
    assert fake.channels["viewport:me"][-4:] == (40.0, -104.0, 39.0, -105.0)


@pytest.mark.asyncio
async def test_viewport_replaces_previous(handlers, fake, me):
    await handlers.handle(me, _viewport((0, 0), (1, 1)))
    await handlers.handle(me, _viewport((2, 2), (3, 3)))
    assert list(fake.channels) == ["viewport:me"]
    assert fake.channels["viewport:me"][-4:] == (2.0, 2.0, 3.0, 3.0)


@pytest.mark.asyncio
async def test_non_numeric_viewport_is_ignored(handlers, fake, me):
    await handlers.handle(me, json.dumps({
        "type": "Viewport",
        "data": {"_sw": {"lat": "north", "lng": 1}, "_ne": {"lat": 2, "lng": 3}},
    }))
    assert fake.calls == []
    assert me.sent == []


# ─── Feature ──────────────────────────────────────────────


@pytest.mark.asyncio
async def test_feature_is_stored_verbatim_with_ttl(handlers, fake, me):
    raw = '{"type":"Feature","geometry":{"type":"Point","coordinates":[1,2]},"properties":{"color":"red"}}'
    await handlers.handle(me, raw)
    assert fake.commands("SET") == [("SET", "people", "me", "EX", 5, "OBJECT", raw)]


@pytest.mark.asyncio
async def test_feature_backend_error_is_not_echoed(handlers, fake, me):
    fake.failing.add("SET")
    await handlers.handle(me, '{"type":"Feature","geometry":"nonsense"}')
    assert me.sent == []


# ─── Message ──────────────────────────────────────────────


@pytest.mark.asyncio
async def test_message_goes_to_each_live_recipient_with_via(handlers, fake, registry, me):
    friend = FakeConnection("friend")
    registry.insert(friend)
    fake.places_containing = ["hyatt-regency"]
    fake.people_in_place = {"hyatt-regency": ["me", "friend", "offline"]}
    fake.nearby = ["friend"]

    await handlers.handle(me, _chat(-104.99, 39.74, {"text": "hi"}))

    (to_me,) = me.sent
    (to_friend,) = friend.sent
    assert json.loads(to_me)["feature"]["properties"] == {"text": "hi", "via": ["hyatt-regency"]}
    assert json.loads(to_friend)["feature"]["properties"]["via"] == ["hyatt-regency", "roaming"]
    assert json.loads(to_friend)["type"] == "Message"


@pytest.mark.asyncio
async def test_message_without_properties_gets_them(handlers, fake, me):
    fake.nearby = ["me"]
    await handlers.handle(me, _chat(1.0, 2.0))
    assert json.loads(me.sent[0])["feature"]["properties"] == {"via": ["roaming"]}


@pytest.mark.asyncio
async def test_message_resolve_failure_sends_nothing(handlers, fake, me):
    fake.nearby = ["me"]
    fake.failing.add("NEARBY")
    await handlers.handle(me, _chat(1.0, 2.0))
    assert me.sent == []


@pytest.mark.asyncio
async def test_message_without_coordinates_is_ignored(handlers, fake, me):
    await handlers.handle(me, json.dumps({"type": "Message", "feature": {"geometry": {}}}))
    assert fake.calls == []


# ─── Routing ──────────────────────────────────────────────


@pytest.mark.asyncio
@pytest.mark.parametrize("frame", ["not json", "[1, 2]", '{"type":"Dance"}', "{}"])
async def test_unroutable_frames_are_ignored(handlers, fake, me, frame):
    await handlers.handle(me, frame)
    assert fake.calls == []
    assert me.sent == []
