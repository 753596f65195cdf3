# driftpin/messages/models.py
"""
SQLAlchemy ORM models for dropped messages.

Coordinates are stored as plain floats with a composite (lat, lng) index so
the radius query can prefilter on a bounding box before the exact Haversine
check.
"""

from sqlalchemy import Column, Integer, String, Text, Float, ForeignKey, DateTime, Index
from sqlalchemy.orm import relationship

from driftpin.db import Base


class Message(Base):
    __tablename__ = "messages"

    id = Column(String(32), primary_key=True)
    header = Column(String(100), nullable=False)
    content = Column(Text, nullable=False)

    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)

    created_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)

    replies = relationship(
        "Reply",
        back_populates="message",
        cascade="all, delete-orphan",
        order_by="Reply.seq",
    )

    __table_args__ = (
        Index("ix_messages_lat_lng", "lat", "lng"),
    )


class Reply(Base):
    __tablename__ = "replies"

    id = Column(String(32), primary_key=True)
    message_id = Column(String(32), ForeignKey("messages.id", ondelete="CASCADE"), nullable=False, index=True)
    content = Column(Text, nullable=False)

    # Anonymous avatar chosen by the client (all optional)
    avatar_color = Column(String(20), nullable=True)
    avatar_shape = Column(String(20), nullable=True)
    avatar_initials = Column(String(4), nullable=True)

    created_at = Column(DateTime, nullable=False)

    # Position within the thread, oldest first
    seq = Column(Integer, nullable=False, default=0)

    message = relationship("Message", back_populates="replies")
