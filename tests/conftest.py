"""Shared pytest fixtures for Event Desk."""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Keep the import-time settings (and their data dir) out of the working tree.
os.environ.setdefault("EVENTDESK_BASE_DIR", tempfile.mkdtemp(prefix="eventdesk-"))

from eventdesk import api, database, storage
from eventdesk.crud import create_event
from eventdesk.models import Base


@pytest.fixture(scope="session", autouse=True)
def configure_in_memory_db():
    """Reuse a single in-memory SQLite database for fast, isolated tests."""

    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    database.enable_sqlite_foreign_keys(engine)
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
    api.SessionLocal = session_factory
    Base.metadata.create_all(bind=engine)
    yield
    session_factory.remove()


@pytest.fixture(autouse=True)
def clean_database():
    """Reset all tables between tests to guarantee isolation."""

    database.SessionLocal.remove()
    Base.metadata.drop_all(bind=database.engine)
    Base.metadata.create_all(bind=database.engine)
    yield
    database.SessionLocal.remove()


@pytest.fixture()
def session():
    db = database.SessionLocal()
    try:
        yield db
    finally:
        db.close()


def event_fields(**overrides):
    fields = {
        "creator_email": "host@example.com",
        "event_name": "Team Offsite",
        "description": "Planning day",
        "targeted_attendees": 10,
        "event_date": "2025-03-01",
        "event_start_time": "09:00",
        "event_end_time": "17:00",
    }
    fields.update(overrides)
    return fields


@pytest.fixture()
def make_event(session):
    """Create and commit an event, returning its id."""

    def _make(**overrides) -> int:
        event = create_event(session, **event_fields(**overrides))
        session.commit()
        return event.id

    return _make
