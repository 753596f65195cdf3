# FILE: tests/test_db.py
"""
Tests for driftpin/db.py and driftpin/messages/models.py
Table creation, cascades and reply ordering.
"""

from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy import create_engine, inspect


class TestDatabaseSetup:
    """Test database metadata and table creation."""

    def test_base_metadata_has_tables(self):
        from driftpin.db import Base
        from driftpin.messages import models  # noqa: F401

        assert "messages" in Base.metadata.tables
        assert "replies" in Base.metadata.tables

    def test_create_all_in_memory(self):
        from driftpin.db import Base
        from driftpin.messages import models  # noqa: F401

        engine = create_engine("sqlite:///:memory:", echo=False)
        Base.metadata.create_all(bind=engine)

        inspector = inspect(engine)
        assert set(inspector.get_table_names()) >= {"messages", "replies"}
        index_names = {ix["name"] for ix in inspector.get_indexes("messages")}
        assert "ix_messages_lat_lng" in index_names
        engine.dispose()

    def test_session_scope_closes_session(self):
        from driftpin import db

        with patch.object(db, "SessionLocal") as factory:
            with db.session_scope() as session:
                assert session is factory.return_value
            session.close.assert_called_once()

    def test_session_scope_closes_on_error(self):
        from driftpin import db

        with patch.object(db, "SessionLocal") as factory:
            with pytest.raises(RuntimeError):
                with db.session_scope():
                    raise RuntimeError("boom")
            factory.return_value.close.assert_called_once()

    def test_make_engine_sqlite_threads(self):
        from driftpin.db import make_engine

        engine = make_engine("sqlite:///:memory:")
        assert engine.dialect.name == "sqlite"
        engine.dispose()


class TestMessageModels:
    """Test ORM relationships."""

    def _message(self, db_session, now):
        from driftpin.messages.models import Message

        message = Message(
            id="m1",
            header="Hello",
            content="World",
            lat=1.0,
            lng=2.0,
            created_at=now,
            expires_at=now + timedelta(hours=24),
        )
        db_session.add(message)
        db_session.commit()
        return message

    def test_replies_ordered_by_seq(self, db_session, now):
        from driftpin.messages.models import Reply

        message = self._message(db_session, now)
        db_session.add(Reply(id="r2", message_id="m1", content="second", created_at=now, seq=1))
        db_session.add(Reply(id="r1", message_id="m1", content="first", created_at=now, seq=0))
        db_session.commit()
        db_session.refresh(message)

        assert [r.content for r in message.replies] == ["first", "second"]

    def test_delete_cascades_to_replies(self, db_session, now):
        from driftpin.messages.models import Message, Reply

        message = self._message(db_session, now)
        message.replies.append(Reply(id="r1", content="x", created_at=now, seq=0))
        db_session.commit()

        db_session.delete(message)
        db_session.commit()

        assert db_session.query(Message).count() == 0
        assert db_session.query(Reply).count() == 0
