"""Database helpers for Event Desk."""

from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import scoped_session, sessionmaker

from .config import settings

DATABASE_URL = settings.database_url or f"sqlite:///{settings.database_path}"


def _connect_args(url: str) -> dict:
    if not url.startswith("sqlite"):
        return {}
    return {"check_same_thread": False, "timeout": settings.sqlite_busy_timeout}


def enable_sqlite_foreign_keys(target: Engine) -> None:
    """Turn on FK enforcement (and ON DELETE CASCADE) for every SQLite connection."""
    if target.dialect.name != "sqlite":
        return

    @event.listens_for(target, "connect")
    def _set_sqlite_pragma(dbapi_connection, _connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = create_engine(
    DATABASE_URL,
    connect_args=_connect_args(DATABASE_URL),
    future=True,
)
enable_sqlite_foreign_keys(engine)

SessionLocal = scoped_session(
    sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        future=True,
        expire_on_commit=False,
    )
)


@contextmanager
def get_session():
    """Context manager returning a SQLAlchemy session."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
