"""Development helpers for populating fake events and attendee responses."""

from __future__ import annotations

import random
from datetime import date, timedelta

from faker import Faker
from sqlalchemy.orm import Session

from .crud import create_event, publish_event
from .database import get_session
from .models import Event, ResponseStatus
from .rsvp import submit_response
from .storage import init_db

_event_types = [
    "Mixer",
    "Hangout",
    "Workshop",
    "Hackathon",
    "Field Trip",
    "Meet & Greet",
    "Dinner",
    "Discussion",
]
_response_statuses = [
    ResponseStatus.attending,
    ResponseStatus.attending,
    ResponseStatus.attending,
    ResponseStatus.maybe,
    ResponseStatus.not_attending,
    ResponseStatus.pending,
]


def seed_fake_data(
    *,
    event_count: int = 5,
    max_rsvps_per_event: int = 8,
) -> dict[str, int]:
    """Populate the database with synthetic events and responses."""
    if event_count < 0:
        raise ValueError("event_count must be >= 0")
    if max_rsvps_per_event < 0:
        raise ValueError("max_rsvps_per_event must be >= 0")

    init_db()
    fake = Faker()
    stats = {"events": 0, "rsvps": 0}

    with get_session() as session:
        for _ in range(event_count):
            event = _create_event(session, fake)
            stats["events"] += 1
            stats["rsvps"] += _create_rsvps(session, fake, event, max_rsvps_per_event)

    return stats


def _create_event(session: Session, fake: Faker) -> Event:
    start_hour = random.randint(8, 19)
    length = random.randint(1, 4)
    event_day = date.today() + timedelta(days=random.randint(-7, 30))
    event = create_event(
        session,
        creator_email=fake.email(),
        event_name=f"{fake.city()} {random.choice(_event_types)}",
        description="\n\n".join(fake.paragraphs(nb=2)),
        targeted_attendees=random.randint(5, 60),
        event_date=event_day.isoformat(),
        event_start_time=f"{start_hour:02d}:00",
        event_end_time=f"{start_hour + length:02d}:00",
        event_duration=f"{length} hour{'s' if length > 1 else ''}",
    )
    if random.random() < 0.7:
        publish_event(session, event.id)
    # Responses run in their own transactions and need the event committed.
    session.commit()
    return event


def _create_rsvps(session: Session, fake: Faker, event: Event, max_rsvps: int) -> int:
    if max_rsvps <= 0:
        return 0
    total = random.randint(0, max_rsvps)
    emails = {fake.unique.email() for _ in range(total)}
    for email in emails:
        notes = fake.sentence() if random.random() < 0.3 else None
        submit_response(
            session,
            event.id,
            email,
            random.choice(_response_statuses).value,
            notes,
        )
    return len(emails)
