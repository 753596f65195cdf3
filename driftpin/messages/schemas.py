# FILE: driftpin/messages/schemas.py
"""
Message module Pydantic schemas.

Incoming bodies accept either "message" or "content" for the text, and either
flat lat/lng or a "location" object/pair, since clients have sent both.
"""
from datetime import datetime
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ============== AVATAR ==============

class Avatar(BaseModel):
    color: str = Field(..., max_length=20)
    shape: str = Field(..., max_length=20)
    initials: str = Field(..., max_length=4)


# ============== MESSAGE ==============

class Location(BaseModel):
    lat: float
    lng: float


class MessageCreate(BaseModel):
    """
    Body for POST /messages.

    Accepted shapes:
        {"header": .., "message": .., "lat": .., "lng": ..}
        {"header": .., "content": .., "location": {"lat": .., "lng": ..}}
        {"header": .., "content": .., "location": [lat, lng]}
    """
    header: str = Field(..., min_length=1, max_length=100)
    content: str = Field(..., min_length=1, max_length=500)
    lat: float
    lng: float
    lifetime_hours: Optional[float] = Field(None, gt=0)

    @model_validator(mode="before")
    @classmethod
    def _accept_aliases(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "content" not in data and "message" in data:
            data["content"] = data.pop("message")
        location = data.pop("location", None)
        if location is not None and ("lat" not in data or "lng" not in data):
            if isinstance(location, dict):
                data.setdefault("lat", location.get("lat"))
                data.setdefault("lng", location.get("lng", location.get("lon")))
            elif isinstance(location, (list, tuple)) and len(location) >= 2:
                data.setdefault("lat", location[0])
                data.setdefault("lng", location[1])
        return data

    @field_validator("header", "content")
    @classmethod
    def _strip_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


# ============== REPLY ==============

class ReplyCreate(BaseModel):
    """Body for POST /messages/{id}/replies. "content" is accepted for "text"."""
    text: str = Field(..., min_length=1, max_length=500)
    avatar: Optional[Avatar] = None

    @model_validator(mode="before")
    @classmethod
    def _accept_content_alias(cls, data: Any) -> Any:
        if isinstance(data, dict) and "text" not in data and "content" in data:
            data = dict(data)
            data["text"] = data.pop("content")
        return data

    @field_validator("text")
    @classmethod
    def _strip_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class ReplyOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    content: str
    timestamp: datetime
    avatar: Optional[Avatar] = None


class MessageOut(BaseModel):
    """
    A message as seen by a client at a point in time.

    opacity/color/age/hours_remaining are derived from the lifetime engine at
    read time; distance_km is set only for location-scoped queries.
    """
    model_config = ConfigDict(from_attributes=True)

    id: str
    header: str
    content: str
    location: Location
    timestamp: datetime
    expires_at: datetime
    replies: List[ReplyOut]
    reply_count: int
    hours_remaining: float
    opacity: float
    color: str
    age: str
    distance_km: Optional[float] = None


class ReplyCreatedResponse(BaseModel):
    message: MessageOut
    reply: ReplyOut


# ============== HEATMAP ==============

class HeatPoint(BaseModel):
    lat: float
    lng: float
    intensity: float

    def as_tuple(self) -> Tuple[float, float, float]:
        return (self.lat, self.lng, self.intensity)
