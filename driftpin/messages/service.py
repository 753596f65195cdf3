# FILE: driftpin/messages/service.py
"""
Message service layer for Driftpin.

Every operation takes a MessageStore so the same rules apply whichever backend
is configured. Stores return coarse candidates; the exact radius cut, expiry
filter, ordering and derived display fields are computed here.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from driftpin.errors import InvalidLocationError, MessageExpiredError, MessageNotFoundError
from driftpin.geo import BoundingBox, haversine_km, radius_for_bounds, validate_coordinates
from driftpin.messages import lifetime, schemas
from driftpin.messages.store import MessageStore, StoredMessage, StoredReply
from driftpin.settings import get_config

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return uuid.uuid4().hex


# ============== VIEWS ==============

def reply_view(reply: StoredReply) -> schemas.ReplyOut:
    return schemas.ReplyOut(
        id=reply.id,
        content=reply.content,
        timestamp=reply.created_at,
        avatar=schemas.Avatar(**reply.avatar) if reply.avatar else None,
    )


def to_view(
    message: StoredMessage,
    now: Optional[datetime] = None,
    origin: Optional[Tuple[float, float]] = None,
) -> schemas.MessageOut:
    """Render a stored message with its decay state as of `now`."""
    now = now or lifetime.utcnow()
    distance = None
    if origin is not None:
        distance = round(haversine_km(origin[0], origin[1], message.lat, message.lng), 3)
    return schemas.MessageOut(
        id=message.id,
        header=message.header,
        content=message.content,
        location=schemas.Location(lat=message.lat, lng=message.lng),
        timestamp=message.created_at,
        expires_at=message.expires_at,
        replies=[reply_view(r) for r in message.replies],
        reply_count=message.reply_count,
        hours_remaining=round(lifetime.hours_remaining(message.expires_at, now), 3),
        opacity=lifetime.message_opacity(message.created_at, message.expires_at, now),
        color=lifetime.message_color(message.created_at, now),
        age=lifetime.format_age(message.created_at, now),
        distance_km=distance,
    )


def heat_points(messages: Iterable[StoredMessage]) -> List[schemas.HeatPoint]:
    return [
        schemas.HeatPoint(lat=m.lat, lng=m.lng, intensity=lifetime.heat_intensity(m.reply_count))
        for m in messages
    ]


# ============== MESSAGES ==============

def create_message(
    store: MessageStore,
    data: schemas.MessageCreate,
    now: Optional[datetime] = None,
) -> StoredMessage:
    lat, lng = validate_coordinates(data.lat, data.lng)
    now = now or lifetime.utcnow()
    message = StoredMessage(
        id=_new_id(),
        header=data.header.strip(),
        content=data.content.strip(),
        lat=lat,
        lng=lng,
        created_at=now,
        expires_at=lifetime.compute_expires_at(now, data.lifetime_hours),
    )
    saved = store.save_message(message)
    logger.info(f"[messages.service] Created message {saved.id} at ({lat:.5f}, {lng:.5f})")
    return saved


def get_message(
    store: MessageStore,
    message_id: str,
    now: Optional[datetime] = None,
) -> StoredMessage:
    """
    Fetch a live message.

    Raises:
        MessageNotFoundError: no such message
        MessageExpiredError: message exists but its lifetime is over
    """
    message = store.get_message(message_id)
    if message is None:
        raise MessageNotFoundError(message_id)
    if lifetime.is_expired(message.expires_at, now):
        raise MessageExpiredError(message_id)
    return message


def _check_radius(radius_km: float) -> float:
    cfg = get_config().query
    if radius_km is None or radius_km != radius_km or radius_km <= 0:
        raise InvalidLocationError(f"Radius must be a positive number, got {radius_km!r}")
    return min(float(radius_km), cfg.global_radius_km)


def _resolve_limit(limit: Optional[int]) -> int:
    cfg = get_config().query
    if limit is None:
        return cfg.default_limit
    return max(1, min(int(limit), cfg.max_limit))


def _nearest_first(items: List[Tuple[float, StoredMessage]]) -> List[Tuple[float, StoredMessage]]:
    # Newest wins a distance tie
    items.sort(key=lambda pair: (pair[0], -pair[1].created_at.timestamp()))
    return items


def _within_radius(
    store: MessageStore,
    lat: float,
    lng: float,
    radius_km: float,
    now: datetime,
) -> List[Tuple[float, StoredMessage]]:
    """Every live message within radius_km, nearest first and uncapped."""
    matches = []
    for message in store.find_candidates(lat, lng, radius_km, now):
        if lifetime.is_expired(message.expires_at, now):
            continue
        distance = haversine_km(lat, lng, message.lat, message.lng)
        if distance <= radius_km:
            matches.append((distance, message))
    return _nearest_first(matches)


def get_messages_in_radius(
    store: MessageStore,
    lat: float,
    lng: float,
    radius_km: Optional[float] = None,
    now: Optional[datetime] = None,
    limit: Optional[int] = None,
) -> List[Tuple[float, StoredMessage]]:
    """
    Live messages within radius_km of (lat, lng), nearest first.

    Returns (distance_km, message) pairs.
    """
    lat, lng = validate_coordinates(lat, lng)
    if radius_km is None:
        radius_km = get_config().query.default_radius_km
    radius_km = _check_radius(radius_km)
    now = now or lifetime.utcnow()

    matches = _within_radius(store, lat, lng, radius_km, now)[:_resolve_limit(limit)]
    logger.debug(
        f"[messages.service] Radius {radius_km}km around ({lat:.5f}, {lng:.5f}): "
        f"{len(matches)} returned"
    )
    return matches


def get_messages_in_bounds(
    store: MessageStore,
    south: float,
    west: float,
    north: float,
    east: float,
    now: Optional[datetime] = None,
    limit: Optional[int] = None,
) -> List[Tuple[float, StoredMessage]]:
    """
    Live messages inside a map viewport.

    The viewport is turned into a covering radius around its centre, then
    results are cut back to the rectangle. Distances are from the centre.
    """
    validate_coordinates(south, west)
    validate_coordinates(north, east)
    if north < south:
        raise InvalidLocationError(f"north ({north}) must not be below south ({south})")

    cfg = get_config().query
    radius = radius_for_bounds(
        south, west, north, east,
        buffer=cfg.viewport_buffer,
        fallback_km=cfg.global_radius_km,
    )
    center_lat = (south + north) / 2
    if west <= east:
        center_lng = (west + east) / 2
    else:
        center_lng = (west + east + 360.0) / 2
        if center_lng > 180.0:
            center_lng -= 360.0

    box = BoundingBox(min_lat=south, max_lat=north, min_lng=west, max_lng=east)
    now = now or lifetime.utcnow()
    # Rectangle cut comes before the limit
    inside = [
        (d, m) for d, m in _within_radius(store, center_lat, center_lng, _check_radius(radius), now)
        if box.contains(m.lat, m.lng)
    ]
    return inside[:_resolve_limit(limit)]


def add_reply(
    store: MessageStore,
    message_id: str,
    data: schemas.ReplyCreate,
    now: Optional[datetime] = None,
) -> Tuple[StoredMessage, StoredReply]:
    """
    Append a reply and push the message's expiry out.

    The store computes the new expiry from its own copy of the message while
    it holds the write, so two replies racing on one message both extend it.

    Raises:
        MessageNotFoundError: no such message
        MessageExpiredError: message already expired
    """
    now = now or lifetime.utcnow()
    reply = StoredReply(
        id=_new_id(),
        content=data.text.strip(),
        created_at=now,
        avatar=data.avatar.model_dump() if data.avatar else None,
    )
    updated = store.append_reply(message_id, reply)
    if updated is None:
        raise MessageNotFoundError(message_id)

    logger.info(
        f"[messages.service] Reply {reply.id} on {message_id}; "
        f"expires {updated.expires_at.isoformat()}"
    )
    return updated, reply


def delete_message(store: MessageStore, message_id: str) -> bool:
    deleted = store.delete_message(message_id)
    if deleted:
        logger.info(f"[messages.service] Deleted message {message_id}")
    else:
        logger.warning(f"[messages.service] Message {message_id} not found for deletion")
    return deleted


def purge_expired(
    store: MessageStore,
    now: Optional[datetime] = None,
    limit: Optional[int] = None,
) -> int:
    now = now or lifetime.utcnow()
    purged = store.purge_expired(now, limit=limit)
    if purged:
        logger.info(f"[messages.service] Purged {purged} expired messages")
    return purged
