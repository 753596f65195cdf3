# FILE: tests/conftest.py
"""
Pytest configuration for Driftpin test suite.

Configures:
- pytest-asyncio for async test support
- In-memory SQLite sessions shared across threads (TestClient runs sync
  endpoints in a worker thread)
- A fixed default config so DRIFTPIN_* env vars don't leak into tests
"""
import sys
from datetime import datetime
from pathlib import Path

_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Configure pytest-asyncio to use auto mode
pytest_plugins = ["pytest_asyncio"]


@pytest.fixture(autouse=True)
def default_config():
    """Pin the default configuration for every test."""
    from driftpin.settings import DriftpinConfig, set_config
    config = DriftpinConfig()
    set_config(config)
    yield config
    set_config(None)


@pytest.fixture
def db_session():
    """Create in-memory database for testing."""
    from driftpin.db import Base
    from driftpin.messages import models  # noqa: F401

    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine)()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def sql_store(db_session):
    from driftpin.messages.store import SqlMessageStore
    return SqlMessageStore(db_session)


@pytest.fixture
def now():
    """A fixed naive-UTC 'current time'."""
    return datetime(2025, 6, 1, 12, 0, 0)
