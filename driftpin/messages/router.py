# file: driftpin/messages/router.py
import logging
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Response

from driftpin.errors import (
    InvalidLocationError,
    MessageExpiredError,
    MessageNotFoundError,
    StoreUnavailableError,
)
from driftpin.geo import GLOBAL_RADIUS_KM
from driftpin.messages import lifetime, schemas, service
from driftpin.messages.backend import get_store
from driftpin.messages.store import MessageStore

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/messages",
    tags=["messages"],
)


def _purge_quietly(store: MessageStore) -> None:
    """Best-effort cleanup after a read; never fails the request."""
    try:
        service.purge_expired(store)
    except Exception as e:
        logger.warning(f"[messages.router] Background purge failed: {e}")


def _store_unavailable(e: StoreUnavailableError) -> HTTPException:
    return HTTPException(status_code=503, detail=str(e) or "Message store unavailable")


# ============== RADIUS QUERIES ==============

@router.get("", response_model=List[schemas.MessageOut])
def list_messages(
    background_tasks: BackgroundTasks,
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius: Optional[float] = Query(None, gt=0, le=GLOBAL_RADIUS_KM, description="Radius in km"),
    limit: Optional[int] = Query(None, ge=1),
    store: MessageStore = Depends(get_store),
):
    """Live messages within `radius` km of (lat, lng), nearest first."""
    now = lifetime.utcnow()
    try:
        matches = service.get_messages_in_radius(store, lat, lng, radius, now=now, limit=limit)
    except InvalidLocationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreUnavailableError as e:
        raise _store_unavailable(e)

    background_tasks.add_task(_purge_quietly, store)
    return [service.to_view(m, now, origin=(lat, lng)) for _, m in matches]


@router.get("/in-bounds", response_model=List[schemas.MessageOut])
def list_messages_in_bounds(
    south: float = Query(..., ge=-90, le=90),
    west: float = Query(..., ge=-180, le=180),
    north: float = Query(..., ge=-90, le=90),
    east: float = Query(..., ge=-180, le=180),
    limit: Optional[int] = Query(None, ge=1),
    store: MessageStore = Depends(get_store),
):
    """Live messages inside a map viewport."""
    now = lifetime.utcnow()
    try:
        matches = service.get_messages_in_bounds(store, south, west, north, east, now=now, limit=limit)
    except InvalidLocationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreUnavailableError as e:
        raise _store_unavailable(e)
    return [service.to_view(m, now) for _, m in matches]


@router.get("/heatmap", response_model=List[schemas.HeatPoint])
def heatmap(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius: Optional[float] = Query(None, gt=0, le=GLOBAL_RADIUS_KM),
    limit: Optional[int] = Query(None, ge=1, description="Defaults to the list limit, capped at the max"),
    store: MessageStore = Depends(get_store),
):
    """Heat points weighted by reply count, nearest first."""
    try:
        matches = service.get_messages_in_radius(store, lat, lng, radius, limit=limit)
    except InvalidLocationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreUnavailableError as e:
        raise _store_unavailable(e)
    return service.heat_points(m for _, m in matches)


# ============== SINGLE MESSAGE ==============

@router.post("", response_model=schemas.MessageOut, status_code=201)
def create_message(data: schemas.MessageCreate, store: MessageStore = Depends(get_store)):
    try:
        message = service.create_message(store, data)
    except InvalidLocationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreUnavailableError as e:
        raise _store_unavailable(e)
    return service.to_view(message, message.created_at)


@router.get("/{message_id}", response_model=schemas.MessageOut)
def get_message(message_id: str, store: MessageStore = Depends(get_store)):
    now = lifetime.utcnow()
    try:
        message = service.get_message(store, message_id, now)
    except (MessageNotFoundError, MessageExpiredError):
        raise HTTPException(status_code=404, detail="Message not found")
    except StoreUnavailableError as e:
        raise _store_unavailable(e)
    return service.to_view(message, now)


@router.delete("/{message_id}", status_code=204)
def delete_message(message_id: str, store: MessageStore = Depends(get_store)):
    try:
        success = service.delete_message(store, message_id)
    except StoreUnavailableError as e:
        raise _store_unavailable(e)
    if not success:
        raise HTTPException(status_code=404, detail="Message not found")
    return Response(status_code=204)


# ============== REPLIES ==============

@router.post("/{message_id}/replies", response_model=schemas.ReplyCreatedResponse, status_code=201)
def add_reply(
    message_id: str,
    data: schemas.ReplyCreate,
    store: MessageStore = Depends(get_store),
):
    """Reply to a live message; each reply extends its lifetime."""
    now = lifetime.utcnow()
    try:
        message, reply = service.add_reply(store, message_id, data, now)
    except MessageNotFoundError:
        raise HTTPException(status_code=404, detail="Message not found")
    except MessageExpiredError:
        raise HTTPException(status_code=404, detail="Message not found or expired")
    except StoreUnavailableError as e:
        raise _store_unavailable(e)

    return schemas.ReplyCreatedResponse(
        message=service.to_view(message, now),
        reply=service.reply_view(reply),
    )
