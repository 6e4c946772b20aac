"""Database initialization and schema upgrades."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import inspect

from .config import settings
from .database import engine
from .models import Base

logger = logging.getLogger("uvicorn.error")

COUNTER_STATUS_SQL = (
    ("attendingCount", "Attending"),
    ("notAttendingCount", "Not Attending"),
    ("maybeCount", "Maybe"),
    ("pendingCount", "Pending"),
)

# Columns added to ``events`` after the first schema; pre-Alembic databases may
# lack any of them.
LEGACY_EVENT_COLUMNS = {
    "eventEndTime": "TEXT DEFAULT ''",
    "eventDuration": "TEXT DEFAULT ''",
    "status": "TEXT NOT NULL DEFAULT 'Created'",
    "attendingCount": "INTEGER NOT NULL DEFAULT 0",
    "notAttendingCount": "INTEGER NOT NULL DEFAULT 0",
    "maybeCount": "INTEGER NOT NULL DEFAULT 0",
    "pendingCount": "INTEGER NOT NULL DEFAULT 0",
    "updated_at": "DATETIME",
}


def init_db() -> None:
    upgrade_database(make_backup=False)


def ensure_schema_updates() -> list[str]:
    """Perform lightweight schema updates for existing SQLite deployments."""
    actions: list[str] = []
    if engine.dialect.name != "sqlite":
        return actions

    inspector = inspect(engine)
    if not inspector.has_table("events"):
        return actions

    if not inspector.has_table("eventAttendees"):
        Base.metadata.tables["eventAttendees"].create(bind=engine)
        actions.append("Created eventAttendees table")

    columns = {col["name"] for col in inspector.get_columns("events")}
    with engine.begin() as conn:
        if "eventTime" in columns and "eventStartTime" not in columns:
            conn.exec_driver_sql(
                'ALTER TABLE events RENAME COLUMN "eventTime" TO "eventStartTime"'
            )
            columns.add("eventStartTime")
            actions.append("Renamed events.eventTime to events.eventStartTime")
        for name, ddl in LEGACY_EVENT_COLUMNS.items():
            if name in columns:
                continue
            conn.exec_driver_sql(f'ALTER TABLE events ADD COLUMN "{name}" {ddl}')
            actions.append(f"Added events.{name} column")
        if "attendingCount" not in columns:
            _backfill_counters(conn)
            actions.append("Backfilled RSVP counters from eventAttendees")
        if "updated_at" not in columns:
            conn.exec_driver_sql(
                'UPDATE events SET "updated_at" = "created_at" WHERE "updated_at" IS NULL'
            )
    return actions


def _backfill_counters(conn) -> None:
    for column, status in COUNTER_STATUS_SQL:
        conn.exec_driver_sql(
            f'UPDATE events SET "{column}" = ('
            'SELECT COUNT(*) FROM "eventAttendees" a '
            'WHERE a."eventId" = events.id AND a."responseStatus" = ?)',
            (status,),
        )


def _alembic_config() -> Config:
    package_dir = Path(__file__).resolve().parent
    script_location = package_dir / "alembic"
    ini_path = script_location.parent / "alembic.ini"

    config = Config(str(ini_path)) if ini_path.exists() else Config()
    config.set_main_option("script_location", str(script_location))
    config.set_main_option(
        "sqlalchemy.url",
        engine.url.render_as_string(hide_password=False).replace("%", "%%"),
    )
    return config


def upgrade_database(*, make_backup: bool = True) -> list[str]:
    """Upgrade the database schema in-place.

    Returns a list of applied actions; empty if already up-to-date.
    """
    actions: list[str] = []
    db_path = Path(settings.database_path)

    if make_backup and engine.dialect.name == "sqlite" and db_path.exists():
        backup_path = db_path.with_suffix(db_path.suffix + ".bak")
        shutil.copy(db_path, backup_path)
        actions.append(f"Backup created at {backup_path}")

    inspector = inspect(engine)
    has_alembic = inspector.has_table("alembic_version")
    has_events = inspector.has_table("events")
    config = _alembic_config()

    if not has_alembic and not has_events:
        # Fresh database: run migrations normally.
        command.upgrade(config, "head")
        actions.append("Ran Alembic upgrade to head (fresh database)")
    elif not has_alembic:
        # Tables created before Alembic tracking: patch columns, then baseline.
        actions.extend(ensure_schema_updates())
        command.stamp(config, "head")
        actions.append("Stamped existing database to Alembic head")
    else:
        command.upgrade(config, "head")
        actions.append("Applied Alembic migrations to head")

    for action in actions:
        logger.info("Database upgrade: %s", action)
    return actions
