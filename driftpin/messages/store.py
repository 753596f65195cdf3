# FILE: driftpin/messages/store.py
"""
Message storage.

A MessageStore persists messages and hands back candidates for a radius query.
Stores only do a coarse spatial cut (bounding box or native geo index); the
exact Haversine filter, expiry filtering and ordering happen in the service
layer so every backend behaves the same.

Backends:
- SqlMessageStore: SQLAlchemy session (default)
- RedisMessageStore: geo set + hashes (see redis_store.py)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from driftpin.errors import MessageExpiredError
from driftpin.geo import bounding_box
from driftpin.messages import lifetime, models

logger = logging.getLogger(__name__)


# =============================================================================
# RECORDS
# =============================================================================

@dataclass
class StoredReply:
    id: str
    content: str
    created_at: datetime
    avatar: Optional[Dict[str, str]] = None

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "content": self.content,
            "created_at": self.created_at.isoformat(),
            "avatar": self.avatar,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "StoredReply":
        return cls(
            id=data["id"],
            content=data["content"],
            created_at=datetime.fromisoformat(data["created_at"]),
            avatar=data.get("avatar"),
        )


@dataclass
class StoredMessage:
    id: str
    header: str
    content: str
    lat: float
    lng: float
    created_at: datetime
    expires_at: datetime
    replies: List[StoredReply] = field(default_factory=list)

    @property
    def reply_count(self) -> int:
        return len(self.replies)


# =============================================================================
# INTERFACE
# =============================================================================

class MessageStore(ABC):
    """Backend-neutral message persistence."""

    backend_name: str = "abstract"

    @abstractmethod
    def save_message(self, message: StoredMessage) -> StoredMessage:
        ...

    @abstractmethod
    def get_message(self, message_id: str) -> Optional[StoredMessage]:
        ...

    @abstractmethod
    def find_candidates(
        self,
        lat: float,
        lng: float,
        radius_km: float,
        now: datetime,
    ) -> List[StoredMessage]:
        """Unexpired messages that may lie within radius_km (superset allowed)."""

    @abstractmethod
    def append_reply(self, message_id: str, reply: StoredReply) -> Optional[StoredMessage]:
        """
        Add a reply and extend the expiry as of reply.created_at.

        The extension is computed from the stored expiry inside the same
        atomic section as the write, so concurrent replies each count.
        None if the message is gone.

        Raises:
            MessageExpiredError: the message expired before the reply landed
        """

    @abstractmethod
    def delete_message(self, message_id: str) -> bool:
        ...

    @abstractmethod
    def purge_expired(self, now: datetime, limit: Optional[int] = None) -> int:
        ...

    @abstractmethod
    def clear(self) -> int:
        ...

    @abstractmethod
    def count(self) -> int:
        ...


# =============================================================================
# SQL BACKEND
# =============================================================================

def _reply_from_row(row: models.Reply) -> StoredReply:
    avatar = None
    if row.avatar_color or row.avatar_shape or row.avatar_initials:
        avatar = {
            "color": row.avatar_color or "",
            "shape": row.avatar_shape or "",
            "initials": row.avatar_initials or "",
        }
    return StoredReply(id=row.id, content=row.content, created_at=row.created_at, avatar=avatar)


def _message_from_row(row: models.Message) -> StoredMessage:
    return StoredMessage(
        id=row.id,
        header=row.header,
        content=row.content,
        lat=row.lat,
        lng=row.lng,
        created_at=row.created_at,
        expires_at=row.expires_at,
        replies=[_reply_from_row(r) for r in row.replies],
    )


class SqlMessageStore(MessageStore):
    """MessageStore over a SQLAlchemy session. The caller owns the session."""

    backend_name = "sql"

    def __init__(self, db: Session):
        self.db = db

    def _get_row(self, message_id: str, for_update: bool = False) -> Optional[models.Message]:
        query = self.db.query(models.Message).filter(models.Message.id == message_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def save_message(self, message: StoredMessage) -> StoredMessage:
        row = models.Message(
            id=message.id,
            header=message.header,
            content=message.content,
            lat=message.lat,
            lng=message.lng,
            created_at=message.created_at,
            expires_at=message.expires_at,
        )
        for seq, reply in enumerate(message.replies):
            row.replies.append(self._reply_row(message.id, reply, seq))
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return _message_from_row(row)

    @staticmethod
    def _reply_row(message_id: str, reply: StoredReply, seq: int) -> models.Reply:
        avatar = reply.avatar or {}
        return models.Reply(
            id=reply.id,
            message_id=message_id,
            content=reply.content,
            avatar_color=avatar.get("color"),
            avatar_shape=avatar.get("shape"),
            avatar_initials=avatar.get("initials"),
            created_at=reply.created_at,
            seq=seq,
        )

    def get_message(self, message_id: str) -> Optional[StoredMessage]:
        row = self._get_row(message_id)
        return _message_from_row(row) if row else None

    def find_candidates(
        self,
        lat: float,
        lng: float,
        radius_km: float,
        now: datetime,
    ) -> List[StoredMessage]:
        box = bounding_box(lat, lng, radius_km)
        query = self.db.query(models.Message).filter(
            models.Message.expires_at > now,
            models.Message.lat >= box.min_lat,
            models.Message.lat <= box.max_lat,
        )
        if not box.full_longitude:
            if box.wraps_antimeridian:
                query = query.filter(
                    or_(models.Message.lng >= box.min_lng, models.Message.lng <= box.max_lng)
                )
            else:
                query = query.filter(
                    and_(models.Message.lng >= box.min_lng, models.Message.lng <= box.max_lng)
                )
        rows = query.all()
        logger.debug(f"[messages.store] SQL prefilter returned {len(rows)} candidates")
        return [_message_from_row(r) for r in rows]

    def append_reply(self, message_id: str, reply: StoredReply) -> Optional[StoredMessage]:
        # Row lock is held until commit
        row = self._get_row(message_id, for_update=True)
        if not row:
            self.db.rollback()
            return None
        try:
            expires_at = lifetime.extend_on_reply(row.created_at, row.expires_at, reply.created_at)
        except MessageExpiredError:
            self.db.rollback()
            raise
        row.replies.append(self._reply_row(message_id, reply, len(row.replies)))
        row.expires_at = expires_at
        self.db.commit()
        self.db.refresh(row)
        return _message_from_row(row)

    def delete_message(self, message_id: str) -> bool:
        row = self._get_row(message_id)
        if not row:
            return False
        try:
            self.db.delete(row)
            self.db.commit()
            return True
        except Exception as e:
            self.db.rollback()
            logger.error(f"[messages.store] Failed to delete message {message_id}: {e}")
            raise

    def purge_expired(self, now: datetime, limit: Optional[int] = None) -> int:
        query = self.db.query(models.Message).filter(models.Message.expires_at <= now)
        if limit is not None:
            query = query.limit(limit)
        expired = query.all()
        for row in expired:
            self.db.delete(row)
        self.db.commit()
        return len(expired)

    def clear(self) -> int:
        rows = self.db.query(models.Message).all()
        for row in rows:
            self.db.delete(row)
        self.db.commit()
        return len(rows)

    def count(self) -> int:
        return self.db.query(models.Message).count()


__all__ = [
    "StoredReply",
    "StoredMessage",
    "MessageStore",
    "SqlMessageStore",
]
