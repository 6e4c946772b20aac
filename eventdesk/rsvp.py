"""RSVP upsert engine.

Every attendee has at most one response per event. Submitting again updates
that response in place, and the event's four running counters are moved in
the same transaction so that they always add up to the number of response
rows. Counter changes are applied as in-database arithmetic through
:data:`~eventdesk.models.COUNTER_COLUMNS`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from .crud import get_event, require_event_id
from .errors import ConflictError, InvalidInputError, NotFoundError, StoreFailureError
from .models import COUNTER_COLUMNS, Event, ResponseStatus, Rsvp
from .utils import is_valid_email, utcnow

logger = logging.getLogger("uvicorn.error")

ALLOWED_RESPONSE_STATUSES = [status.value for status in ResponseStatus]


@dataclass(frozen=True)
class SubmitResult:
    created: bool
    rsvp: Rsvp
    previous_status: ResponseStatus | None = None


@dataclass
class CounterDrift:
    event_id: int
    stored: dict[str, int] = field(default_factory=dict)
    actual: dict[str, int] = field(default_factory=dict)


def normalize_response_status(raw: str | ResponseStatus | None) -> ResponseStatus:
    """Resolve an optional response status, defaulting to ``Pending``."""
    if raw is None or raw == "":
        return ResponseStatus.pending
    try:
        return ResponseStatus(raw)
    except ValueError as exc:
        raise InvalidInputError(
            "Invalid response status. Must be one of: "
            + ", ".join(ALLOWED_RESPONSE_STATUSES)
        ) from exc


def _require_email(raw: str | None) -> str:
    if not raw:
        raise InvalidInputError("Attendee email is required.")
    if not is_valid_email(raw):
        raise InvalidInputError("Invalid email format.")
    return raw


# Server databases name the constraint; SQLite lists its columns.
ATTENDEE_UNIQUE_MARKERS = (
    "uq_event_attendee",
    "eventAttendees.eventId, eventAttendees.attendeeEmail",
)


def _is_unique_violation(exc: IntegrityError) -> bool:
    """True when ``exc`` is the one-response-per-attendee constraint firing."""
    raw = str(exc.orig) if getattr(exc, "orig", None) else str(exc)
    return any(marker in raw for marker in ATTENDEE_UNIQUE_MARKERS)


def _lock_event(session: Session, event_id: int, now: datetime) -> None:
    # Writing the event row first serializes concurrent upserts on this event:
    # a row lock on server databases, the database write lock on SQLite.
    result = session.execute(
        update(Event).where(Event.id == event_id).values(updated_at=now)
    )
    if result.rowcount == 0:
        raise NotFoundError(f"Event with ID {event_id} not found.")


def _find_response(session: Session, event_id: int, attendee_email: str) -> Rsvp | None:
    stmt = (
        select(Rsvp)
        .where(Rsvp.event_id == event_id, Rsvp.attendee_email == attendee_email)
        .execution_options(populate_existing=True)
    )
    return session.scalars(stmt).first()


def _bump_counter(
    session: Session, event_id: int, status: ResponseStatus, delta: int
) -> None:
    column = COUNTER_COLUMNS[status]
    session.execute(
        update(Event).where(Event.id == event_id).values({column: column + delta})
    )


def submit_response(
    session: Session,
    event_id: int | str,
    attendee_email: str | None,
    response_status: str | ResponseStatus | None = None,
    notes: str | None = None,
) -> SubmitResult:
    """Insert or update the attendee's response and move the event counters.

    Runs as one transaction on ``session``: it is committed on success and
    rolled back on any failure, so the counters are never left half-written.
    Raises InvalidInputError before touching the store, NotFoundError when
    the event does not exist, ConflictError when a concurrent insert won the
    unique ``(eventId, attendeeEmail)`` race, and StoreFailureError for other
    persistence errors.
    """
    event_id = require_event_id(event_id)
    attendee_email = _require_email(attendee_email)
    new_status = normalize_response_status(response_status)
    notes = notes or None

    try:
        now = utcnow()
        _lock_event(session, event_id, now)
        existing = _find_response(session, event_id, attendee_email)
        if existing is None:
            rsvp = Rsvp(
                event_id=event_id,
                attendee_email=attendee_email,
                response_status=new_status.value,
                notes=notes,
                rsvp_date=now,
                created_at=now,
            )
            session.add(rsvp)
            session.flush()
            _bump_counter(session, event_id, new_status, +1)
            result = SubmitResult(created=True, rsvp=rsvp)
        else:
            previous = ResponseStatus(existing.response_status)
            existing.response_status = new_status.value
            existing.notes = notes
            existing.rsvp_date = now
            session.flush()
            _bump_counter(session, event_id, previous, -1)
            _bump_counter(session, event_id, new_status, +1)
            result = SubmitResult(created=False, rsvp=existing, previous_status=previous)
        session.commit()
    except Exception as exc:
        session.rollback()
        if isinstance(exc, IntegrityError) and _is_unique_violation(exc):
            logger.warning(
                "Concurrent RSVP insert for event %s and %s lost the race",
                event_id,
                attendee_email,
            )
            raise ConflictError(
                "This attendee has already responded for this event."
            ) from exc
        if isinstance(exc, SQLAlchemyError) and not isinstance(exc, OperationalError):
            logger.error(
                "Database transaction error for attendee response: %s", exc
            )
            raise StoreFailureError(
                "Failed to record/update attendee response.", details=str(exc)
            ) from exc
        raise

    if result.created:
        logger.info(
            "Attendee response recorded: Event ID=%s, Attendee Email=%s, Status=%s.",
            event_id,
            attendee_email,
            new_status.value,
        )
    else:
        logger.info(
            "Attendee response updated: Event ID=%s, Attendee Email=%s. "
            "Status changed from %s to %s.",
            event_id,
            attendee_email,
            result.previous_status.value,
            new_status.value,
        )
    return result


def count_responses(session: Session, event_id: int) -> dict[ResponseStatus, int]:
    """Count response rows of an event per status, straight from the table."""
    rows = session.execute(
        select(Rsvp.response_status, func.count())
        .where(Rsvp.event_id == event_id)
        .group_by(Rsvp.response_status)
    ).all()
    counts = {status: 0 for status in ResponseStatus}
    for status, count in rows:
        counts[ResponseStatus(status)] = count
    return counts


def stored_counters(event: Event) -> dict[ResponseStatus, int]:
    return {
        status: getattr(event, column.key) or 0
        for status, column in COUNTER_COLUMNS.items()
    }


def recount_counters(
    session: Session, event_id: int | None = None, *, fix: bool = False
) -> list[CounterDrift]:
    """Compare stored counters with the response rows, optionally repairing them."""
    if event_id is not None:
        get_event(session, event_id)
    stmt = (
        select(Event)
        .order_by(Event.id.asc())
        .execution_options(populate_existing=True)
    )
    if event_id is not None:
        stmt = stmt.where(Event.id == event_id)
    events = session.scalars(stmt).all()
    drifts: list[CounterDrift] = []
    for event in events:
        actual = count_responses(session, event.id)
        stored = stored_counters(event)
        if actual == stored:
            continue
        drifts.append(
            CounterDrift(
                event_id=event.id,
                stored={status.value: value for status, value in stored.items()},
                actual={status.value: value for status, value in actual.items()},
            )
        )
        logger.warning(
            "Counter drift on event %s: stored=%s actual=%s",
            event.id,
            drifts[-1].stored,
            drifts[-1].actual,
        )
        if fix:
            for status, column in COUNTER_COLUMNS.items():
                setattr(event, column.key, actual[status])
            event.updated_at = utcnow()
            session.add(event)
    if fix and drifts:
        session.flush()
    return drifts
