"""Shared pytest fixtures for RSVP Desk."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Settings are read at import time.
os.environ["RSVPDESK_REPOSITORY_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["RSVPDESK_REPOSITORY_KEY"] = "test-anon-key"
os.environ["RSVPDESK_ENABLE_SCHEDULER"] = "false"
os.environ["RSVPDESK_CONFIG"] = str(PROJECT_ROOT / "tests" / "missing.toml")

from rsvpdesk import database, storage
from rsvpdesk.models import Base

ORGANIZER_EMAIL = "organizer@example.com"
ORGANIZER_PASSWORD = "correct horse battery"


@pytest.fixture(scope="session", autouse=True)
def configure_in_memory_db():
    """Reuse a single in-memory SQLite database for fast, isolated tests."""

    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    session_factory = scoped_session(
        sessionmaker(
            bind=engine,
            autoflush=False,
            autocommit=False,
            future=True,
            expire_on_commit=False,
        )
    )
    database.engine = engine
    database.SessionLocal = session_factory
    storage.engine = engine
    Base.metadata.create_all(bind=engine)
    yield
    session_factory.remove()


@pytest.fixture(autouse=True)
def clean_database():
    """Reset all tables between tests to guarantee isolation."""

    Base.metadata.drop_all(bind=database.engine)
    Base.metadata.create_all(bind=database.engine)
    yield


@pytest.fixture()
def organizer():
    return storage.create_organizer(ORGANIZER_EMAIL, ORGANIZER_PASSWORD)


@pytest.fixture()
def sql_repository():
    from rsvpdesk.backends.sql import SqlRepository

    return SqlRepository()
