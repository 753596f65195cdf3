# FILE: driftpin/messages/backend.py
"""Pick the configured MessageStore backend."""

from contextlib import contextmanager
from typing import Iterator

from driftpin.messages.store import MessageStore, SqlMessageStore
from driftpin.settings import get_config


@contextmanager
def open_store() -> Iterator[MessageStore]:
    """Yield a store for the configured backend and release it afterwards."""
    if get_config().store.backend == "redis":
        from driftpin.messages.redis_store import RedisMessageStore, get_redis_client
        yield RedisMessageStore(get_redis_client())
        return

    from driftpin.db import session_scope

    with session_scope() as db:
        yield SqlMessageStore(db)


def get_store() -> Iterator[MessageStore]:
    """FastAPI dependency yielding the configured store."""
    with open_store() as store:
        yield store
