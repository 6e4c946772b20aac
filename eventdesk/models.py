"""SQLAlchemy models for Event Desk."""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

from .utils import utcnow

Base = declarative_base()


class EventStatus(str, enum.Enum):
    created = "Created"
    published = "Published"
    archived = "Archived"
    cancelled = "Cancelled"


class ResponseStatus(str, enum.Enum):
    pending = "Pending"
    attending = "Attending"
    not_attending = "Not Attending"
    maybe = "Maybe"


def _now() -> datetime:
    return utcnow()


def _in_clause(column: str, values: type[enum.Enum]) -> str:
    quoted = ", ".join(f"'{member.value}'" for member in values)
    return f'"{column}" IN ({quoted})'


class Event(Base):
    __tablename__ = "events"
    __table_args__ = (
        CheckConstraint(_in_clause("status", EventStatus), name="ck_events_status"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    creator_email = Column("creatorEmail", Text, nullable=False)
    event_name = Column("eventName", Text, nullable=False)
    description = Column(Text, nullable=True)
    targeted_attendees = Column("targetedAttendees", Integer, nullable=False)
    event_date = Column("eventDate", Text, nullable=True)
    event_start_time = Column("eventStartTime", Text, nullable=True)
    event_end_time = Column("eventEndTime", Text, nullable=True)
    event_duration = Column("eventDuration", Text, nullable=True)
    status = Column(
        String(16), nullable=False, default=EventStatus.created.value
    )
    attending_count = Column("attendingCount", Integer, nullable=False, default=0)
    not_attending_count = Column(
        "notAttendingCount", Integer, nullable=False, default=0
    )
    maybe_count = Column("maybeCount", Integer, nullable=False, default=0)
    pending_count = Column("pendingCount", Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, nullable=True)

    rsvps = relationship(
        "Rsvp",
        back_populates="event",
        cascade="all, delete-orphan",
        order_by="Rsvp.id",
    )

    @property
    def total_rsvps(self) -> int:
        """Return the sum of the four stored RSVP counters."""
        return (
            (self.attending_count or 0)
            + (self.not_attending_count or 0)
            + (self.maybe_count or 0)
            + (self.pending_count or 0)
        )


class Rsvp(Base):
    __tablename__ = "eventAttendees"
    __table_args__ = (
        UniqueConstraint("eventId", "attendeeEmail", name="uq_event_attendee"),
        CheckConstraint(
            _in_clause("responseStatus", ResponseStatus),
            name="ck_event_attendees_response_status",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(
        "eventId",
        Integer,
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
    )
    attendee_email = Column("attendeeEmail", Text, nullable=False)
    response_status = Column(
        "responseStatus",
        String(16),
        nullable=False,
        default=ResponseStatus.pending.value,
    )
    rsvp_date = Column("rsvpDate", DateTime, default=_now, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)

    event = relationship("Event", back_populates="rsvps")


# One counter column per response status; every counter write goes through this map.
COUNTER_COLUMNS = {
    ResponseStatus.attending: Event.attending_count,
    ResponseStatus.not_attending: Event.not_attending_count,
    ResponseStatus.maybe: Event.maybe_count,
    ResponseStatus.pending: Event.pending_count,
}
