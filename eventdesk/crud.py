"""CRUD helpers for events: creation, edits, lifecycle and read queries."""

from __future__ import annotations

import logging
from typing import Any, Sequence

from sqlalchemy import select, update
from sqlalchemy.engine import RowMapping
from sqlalchemy.orm import Session

from .errors import InvalidInputError, NotFoundError
from .models import Event, EventStatus, Rsvp
from .utils import MAX_ROW_ID, parse_positive_int, utcnow

logger = logging.getLogger("uvicorn.error")

REQUIRED_TEXT_FIELDS = (
    "creator_email",
    "event_name",
    "description",
    "event_date",
    "event_start_time",
    "event_end_time",
)
OPTIONAL_TEXT_FIELDS = ("event_duration",)
EDITABLE_FIELDS = REQUIRED_TEXT_FIELDS + OPTIONAL_TEXT_FIELDS + ("targeted_attendees",)


def require_event_id(raw: Any) -> int:
    """Return ``raw`` as a positive event id or raise InvalidInputError."""
    event_id = parse_positive_int(raw)
    if event_id is None:
        raise InvalidInputError("Invalid Event ID provided.")
    return event_id


def _check_text(name: str, value: Any, *, required: bool) -> str | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise InvalidInputError(
                "Missing required event fields. All fields are mandatory.",
                details=name,
            )
        return None
    if not isinstance(value, str):
        raise InvalidInputError(
            "Invalid data types for one or more string fields.", details=name
        )
    return value


def _check_targeted_attendees(value: Any) -> int:
    if value is None:
        raise InvalidInputError(
            "Missing required event fields. All fields are mandatory.",
            details="targeted_attendees",
        )
    # JSON clients may send whole numbers as floats, e.g. 5.0.
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInputError("Targeted Attendees must be a positive integer.")
    if not 0 < value <= MAX_ROW_ID:
        raise InvalidInputError("Targeted Attendees must be a positive integer.")
    return value


def create_event(
    session: Session,
    *,
    creator_email: str,
    event_name: str,
    description: str,
    targeted_attendees: int,
    event_date: str,
    event_start_time: str,
    event_end_time: str,
    event_duration: str | None = None,
) -> Event:
    """Validate and persist a new event in the ``Created`` state."""
    fields = {
        "creator_email": creator_email,
        "event_name": event_name,
        "description": description,
        "event_date": event_date,
        "event_start_time": event_start_time,
        "event_end_time": event_end_time,
    }
    checked = {
        name: _check_text(name, value, required=True) for name, value in fields.items()
    }
    attendees = _check_targeted_attendees(targeted_attendees)
    duration = _check_text("event_duration", event_duration, required=False)

    now = utcnow()
    event = Event(
        **checked,
        targeted_attendees=attendees,
        event_duration=duration,
        status=EventStatus.created.value,
        attending_count=0,
        not_attending_count=0,
        maybe_count=0,
        pending_count=0,
        created_at=now,
        updated_at=now,
    )
    session.add(event)
    session.flush()
    logger.info("Event created: ID=%s name=%r", event.id, event.event_name)
    return event


def get_event(session: Session, event_id: int) -> Event:
    event = session.get(Event, event_id)
    if event is None:
        raise NotFoundError(f"Event with ID {event_id} not found.")
    return event


def update_event(session: Session, event_id: int, **changes: Any) -> Event:
    """Apply a partial edit of the descriptive fields of an event.

    Identity, status, counters and ``created_at`` are not editable here;
    status goes through the lifecycle helpers and counters through the
    RSVP engine.
    """
    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise InvalidInputError(
            "Unknown or read-only event fields.", details=", ".join(sorted(unknown))
        )
    checked: dict[str, Any] = {}
    for name, value in changes.items():
        if name == "targeted_attendees":
            checked[name] = _check_targeted_attendees(value)
        else:
            checked[name] = _check_text(
                name, value, required=name in REQUIRED_TEXT_FIELDS
            )

    event = get_event(session, event_id)
    for name, value in checked.items():
        setattr(event, name, value)
    event.updated_at = utcnow()
    session.add(event)
    session.flush()
    logger.info("Event updated: ID=%s fields=%s", event.id, sorted(checked))
    return event


def delete_event(session: Session, event_id: int) -> None:
    """Delete an event together with all of its RSVP rows."""
    event = get_event(session, event_id)
    removed = len(event.rsvps)
    session.delete(event)
    session.flush()
    logger.info("Event deleted: ID=%s (%d RSVPs removed)", event_id, removed)


def set_event_status(session: Session, event_id: int, status: EventStatus) -> int:
    """Overwrite the status of an event; last write wins.

    Returns the number of rows changed. Raises NotFoundError when no row
    matched.
    """
    result = session.execute(
        update(Event)
        .where(Event.id == event_id)
        .values(status=EventStatus(status).value, updated_at=utcnow())
    )
    if result.rowcount == 0:
        raise NotFoundError("Event not found")
    logger.info("Event %s status set to %s", event_id, EventStatus(status).value)
    return result.rowcount


def publish_event(session: Session, event_id: int) -> int:
    return set_event_status(session, event_id, EventStatus.published)


def cancel_event(session: Session, event_id: int) -> int:
    return set_event_status(session, event_id, EventStatus.cancelled)


def archive_event(session: Session, event_id: int) -> int:
    return set_event_status(session, event_id, EventStatus.archived)


def list_events(session: Session) -> Sequence[Event]:
    return session.scalars(select(Event).order_by(Event.id.asc())).all()


def list_events_with_counts(session: Session) -> Sequence[Event]:
    """Return events newest-created first; counts are read from the row."""
    stmt = select(Event).order_by(Event.created_at.desc(), Event.id.desc())
    return session.scalars(stmt).all()


def list_attendees_for_event(session: Session, event_id: int) -> Sequence[Rsvp]:
    get_event(session, event_id)
    stmt = select(Rsvp).where(Rsvp.event_id == event_id).order_by(Rsvp.id.asc())
    return session.scalars(stmt).all()


def list_events_for_attendee(session: Session, attendee_email: str) -> Sequence[RowMapping]:
    """Return every event the attendee responded to, with their response."""
    stmt = (
        select(
            Event.id.label("id"),
            Event.event_name.label("eventName"),
            Event.event_date.label("eventDate"),
            Event.event_start_time.label("eventStartTime"),
            Event.event_end_time.label("eventEndTime"),
            Rsvp.response_status.label("responseStatus"),
        )
        .select_from(Rsvp)
        .join(Event, Rsvp.event_id == Event.id)
        .where(Rsvp.attendee_email == attendee_email)
        .order_by(Event.id.asc())
    )
    return session.execute(stmt).mappings().all()
