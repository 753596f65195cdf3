# FILE: driftpin/db.py
"""
SQL storage setup for the default message backend.

DRIFTPIN_DATABASE_URL picks the database (SQLite file under ./data by
default). Any SQLAlchemy URL works; SQLite-only connect args are applied
only when the URL is SQLite.
"""
import os
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

DATABASE_URL = os.getenv("DRIFTPIN_DATABASE_URL", "sqlite:///./data/driftpin.db")
_LOCAL_SQLITE_PREFIX = "sqlite:///./"


def make_engine(url: str) -> Engine:
    connect_args = {}
    if url.startswith("sqlite"):
        # Sessions are handed to FastAPI's worker threads
        connect_args["check_same_thread"] = False
    return create_engine(url, connect_args=connect_args, echo=False)


engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


@contextmanager
def session_scope() -> Iterator[Session]:
    """A session that is always closed; callers commit their own work."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Create the messages/replies tables, and the SQLite directory if needed."""
    if DATABASE_URL.startswith(_LOCAL_SQLITE_PREFIX):
        db_dir = os.path.dirname(DATABASE_URL[len("sqlite:///"):])
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)
    from driftpin.messages import models  # noqa: F401  (registers tables on Base)
    Base.metadata.create_all(bind=engine)
