# FILE: driftpin/messages/redis_store.py
"""
Redis-backed MessageStore.

Layout:
    message:{id}       hash   id, header, content, lat, lng, created_at,
                              expires_at, replies (JSON list)
    messageLocations   geo    member = message id

Each hash carries an EXPIREAT at the message's expiry so Redis drops it on
its own. The geo set has no per-member TTL, so members whose hash is gone are
removed lazily during searches and in bulk by purge_expired().
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional

import redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError
from redis.exceptions import TimeoutError as RedisTimeoutError
from redis.exceptions import WatchError

from driftpin.errors import InvalidLocationError, MessageExpiredError, StoreUnavailableError
from driftpin.geo import haversine_km
from driftpin.messages import lifetime
from driftpin.messages.store import MessageStore, StoredMessage, StoredReply
from driftpin.settings import StoreConfig, get_config

logger = logging.getLogger(__name__)

# Redis geo sets use web-mercator cells and reject latitudes beyond this
REDIS_GEO_MAX_LAT = 85.05112878


def _to_epoch(value: datetime) -> int:
    """Naive-UTC datetime to unix seconds (redis-py would treat naive as local)."""
    return int(value.replace(tzinfo=timezone.utc).timestamp())


@contextmanager
def _translate_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except (RedisConnectionError, RedisTimeoutError) as e:
        logger.error(f"[redis_store] {operation} failed: {e}")
        raise StoreUnavailableError(f"Redis unavailable during {operation}") from e
    except ResponseError as e:
        logger.error(f"[redis_store] {operation} rejected by Redis: {e}")
        raise StoreUnavailableError(f"Redis rejected {operation}: {e}") from e


class RedisMessageStore(MessageStore):
    """MessageStore over a redis-py client created with decode_responses=True."""

    backend_name = "redis"

    def __init__(self, client: "redis.Redis", config: Optional[StoreConfig] = None):
        self.client = client
        self.config = config or get_config().store

    # ---------------------------------------------------------------- helpers

    def _key(self, message_id: str) -> str:
        return f"{self.config.redis_key_prefix}{message_id}"

    @property
    def _geo_key(self) -> str:
        return self.config.redis_geo_key

    @staticmethod
    def _encode(message: StoredMessage) -> Dict[str, str]:
        return {
            "id": message.id,
            "header": message.header,
            "content": message.content,
            "lat": repr(message.lat),
            "lng": repr(message.lng),
            "created_at": message.created_at.isoformat(),
            "expires_at": message.expires_at.isoformat(),
            "replies": json.dumps([r.to_dict() for r in message.replies]),
        }

    @staticmethod
    def _decode(data: Dict[str, str]) -> Optional[StoredMessage]:
        required = ("id", "lat", "lng", "created_at", "expires_at", "content")
        if not data or any(not data.get(f) for f in required):
            if data:
                logger.warning(f"[redis_store] Incomplete message hash: {sorted(data)}")
            return None
        try:
            replies = [StoredReply.from_dict(r) for r in json.loads(data.get("replies") or "[]")]
            return StoredMessage(
                id=data["id"],
                header=data.get("header", ""),
                content=data["content"],
                lat=float(data["lat"]),
                lng=float(data["lng"]),
                created_at=datetime.fromisoformat(data["created_at"]),
                expires_at=datetime.fromisoformat(data["expires_at"]),
                replies=replies,
            )
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"[redis_store] Could not decode message {data.get('id')}: {e}")
            return None

    def _fetch_many(self, message_ids: List[str]) -> Dict[str, Optional[StoredMessage]]:
        if not message_ids:
            return {}
        with self.client.pipeline(transaction=False) as pipe:
            for message_id in message_ids:
                pipe.hgetall(self._key(message_id))
            raw = pipe.execute()
        return {mid: self._decode(data) for mid, data in zip(message_ids, raw)}

    def _drop_from_index(self, message_ids: List[str]) -> None:
        if message_ids:
            self.client.zrem(self._geo_key, *message_ids)
            logger.debug(f"[redis_store] Removed {len(message_ids)} stale geo members")

    # ------------------------------------------------------------- interface

    def save_message(self, message: StoredMessage) -> StoredMessage:
        if abs(message.lat) > REDIS_GEO_MAX_LAT:
            raise InvalidLocationError(
                f"Latitude {message.lat} is outside the indexable range "
                f"[-{REDIS_GEO_MAX_LAT}, {REDIS_GEO_MAX_LAT}]"
            )
        key = self._key(message.id)
        with _translate_errors("save_message"):
            with self.client.pipeline(transaction=True) as pipe:
                pipe.hset(key, mapping=self._encode(message))
                pipe.geoadd(self._geo_key, [message.lng, message.lat, message.id])
                pipe.expireat(key, _to_epoch(message.expires_at))
                pipe.execute()
        logger.info(f"[redis_store] Stored message {message.id}")
        return message

    def get_message(self, message_id: str) -> Optional[StoredMessage]:
        with _translate_errors("get_message"):
            data = self.client.hgetall(self._key(message_id))
        return self._decode(data)

    def find_candidates(
        self,
        lat: float,
        lng: float,
        radius_km: float,
        now: datetime,
    ) -> List[StoredMessage]:
        # Polar origins search from the nearest indexable latitude with the
        # radius grown to still cover the requested circle
        search_lat = max(-REDIS_GEO_MAX_LAT, min(REDIS_GEO_MAX_LAT, lat))
        if search_lat != lat:
            radius_km += haversine_km(lat, lng, search_lat, lng)

        with _translate_errors("find_candidates"):
            message_ids = self.client.geosearch(
                self._geo_key,
                longitude=lng,
                latitude=search_lat,
                radius=radius_km,
                unit="km",
            )
            found = self._fetch_many(list(message_ids))
            stale = [mid for mid, msg in found.items() if msg is None]
            self._drop_from_index(stale)

        candidates = [msg for msg in found.values() if msg is not None and msg.expires_at > now]
        logger.debug(
            f"[redis_store] GEOSEARCH {len(found)} ids, {len(stale)} stale, {len(candidates)} live"
        )
        return candidates

    def append_reply(self, message_id: str, reply: StoredReply) -> Optional[StoredMessage]:
        key = self._key(message_id)
        with _translate_errors("append_reply"):
            with self.client.pipeline() as pipe:
                while True:
                    try:
                        pipe.watch(key)
                        message = self._decode(pipe.hgetall(key))
                        if message is None:
                            pipe.unwatch()
                            return None
                        try:
                            expires_at = lifetime.extend_on_reply(
                                message.created_at, message.expires_at, reply.created_at,
                            )
                        except MessageExpiredError:
                            pipe.unwatch()
                            raise
                        message.replies.append(reply)
                        message.expires_at = expires_at
                        pipe.multi()
                        pipe.hset(key, mapping={
                            "replies": json.dumps([r.to_dict() for r in message.replies]),
                            "expires_at": expires_at.isoformat(),
                        })
                        pipe.expireat(key, _to_epoch(expires_at))
                        pipe.execute()
                        return message
                    except WatchError:
                        logger.debug(f"[redis_store] Concurrent reply on {message_id}, retrying")
                        continue

    def delete_message(self, message_id: str) -> bool:
        with _translate_errors("delete_message"):
            with self.client.pipeline(transaction=True) as pipe:
                pipe.zrem(self._geo_key, message_id)
                pipe.delete(self._key(message_id))
                _, deleted = pipe.execute()
        return bool(deleted)

    def purge_expired(self, now: datetime, limit: Optional[int] = None) -> int:
        with _translate_errors("purge_expired"):
            members = list(self.client.zrange(self._geo_key, 0, -1))
            found = self._fetch_many(members)
            doomed = [
                mid for mid, msg in found.items()
                if msg is None or msg.expires_at <= now
            ]
            if limit is not None:
                doomed = doomed[:limit]
            if doomed:
                with self.client.pipeline(transaction=True) as pipe:
                    pipe.zrem(self._geo_key, *doomed)
                    pipe.delete(*[self._key(mid) for mid in doomed])
                    pipe.execute()
        return len(doomed)

    def clear(self) -> int:
        with _translate_errors("clear"):
            members = list(self.client.zrange(self._geo_key, 0, -1))
            with self.client.pipeline(transaction=True) as pipe:
                if members:
                    pipe.delete(*[self._key(mid) for mid in members])
                pipe.delete(self._geo_key)
                pipe.execute()
        return len(members)

    def count(self) -> int:
        """Indexed messages, including any not yet swept after expiry."""
        with _translate_errors("count"):
            return int(self.client.zcard(self._geo_key))


# =============================================================================
# CLIENT
# =============================================================================

_client: Optional["redis.Redis"] = None


def get_redis_client() -> "redis.Redis":
    """Get or create the shared Redis client."""
    global _client
    if _client is None:
        url = get_config().store.redis_url
        _client = redis.Redis.from_url(url, decode_responses=True)
        logger.info("[redis_store] Redis client created")
    return _client


def close_redis_client() -> None:
    global _client
    if _client is not None:
        _client.close()
        _client = None
        logger.info("[redis_store] Redis client closed")


__all__ = [
    "RedisMessageStore",
    "get_redis_client",
    "close_redis_client",
]
