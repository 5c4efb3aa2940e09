"""Pydantic schemas for inbound websocket messages.

Learn: Only the fields we actually read are modeled. Everything else in
a frame is ignored here and, for Feature/Message, forwarded to Tile38 or
other clients untouched. Validation is numeric parsing only; a
zero-area or inverted viewport is Tile38's call, not ours.

Viewport frames come straight from the map widget's bounds object,
whose corners are `_sw` / `_ne`; `sw` / `ne` are accepted too.
"""

from pydantic import BaseModel, Field


class LngLat(BaseModel):
    lat: float
    lng: float


class Bounds(BaseModel):
    sw: LngLat = Field(alias="_sw")
    ne: LngLat = Field(alias="_ne")

    model_config = {"populate_by_name": True}


class ViewportMessage(BaseModel):
    data: Bounds


class PointGeometry(BaseModel):
    coordinates: list[float] = Field(min_length=2)


class ChatFeature(BaseModel):
    geometry: PointGeometry


class ChatMessage(BaseModel):
    feature: ChatFeature
