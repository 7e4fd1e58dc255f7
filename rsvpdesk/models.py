"""SQLAlchemy models backing the SQL Repository and Session Store."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship

from .utils import utcnow

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return utcnow()


class Event(Base):
    __tablename__ = "events"

    id = Column(String(36), primary_key=True, default=_uuid)
    title = Column(String(255), nullable=False)
    date_time = Column(DateTime, nullable=False, index=True)
    location = Column(String(255), nullable=False, default="")
    description = Column(Text, nullable=False, default="")
    allow_plus_one = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=_now, nullable=False)

    rsvps = relationship("RSVP", back_populates="event")


class RSVP(Base):
    __tablename__ = "rsvps"

    id = Column(String(36), primary_key=True, default=_uuid)
    event_id = Column(String(36), ForeignKey("events.id"), nullable=False, index=True)
    name = Column(String(120), nullable=False)
    email = Column(String(255), nullable=False)
    response = Column(String(16), nullable=False)
    plus_one = Column(Boolean, nullable=False, default=False)
    dietary_preferences = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, default=_now, nullable=False)

    event = relationship("Event", back_populates="rsvps")


class Organizer(Base):
    __tablename__ = "organizers"

    id = Column(String(36), primary_key=True, default=_uuid)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)

    sessions = relationship(
        "StoredSession", back_populates="organizer", cascade="all, delete-orphan"
    )


class StoredSession(Base):
    __tablename__ = "sessions"

    token_digest = Column(String(64), primary_key=True)
    organizer_id = Column(
        String(36), ForeignKey("organizers.id", ondelete="CASCADE"), nullable=False
    )
    created_at = Column(DateTime, default=_now, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)

    organizer = relationship("Organizer", back_populates="sessions")
