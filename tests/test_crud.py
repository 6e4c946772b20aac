from __future__ import annotations

import pytest
from sqlalchemy import select

from conftest import event_fields
from eventdesk.crud import (
    archive_event,
    cancel_event,
    create_event,
    delete_event,
    get_event,
    list_attendees_for_event,
    list_events,
    list_events_for_attendee,
    list_events_with_counts,
    publish_event,
    require_event_id,
    update_event,
)
from eventdesk.errors import InvalidInputError, NotFoundError
from eventdesk.models import Event, Rsvp
from eventdesk.rsvp import submit_response


def test_create_event_starts_created_with_zero_counters(session):
    event = create_event(session, **event_fields(event_duration="8 hours"))
    session.commit()

    stored = get_event(session, event.id)
    assert stored.status == "Created"
    assert stored.event_duration == "8 hours"
    assert (
        stored.attending_count,
        stored.not_attending_count,
        stored.maybe_count,
        stored.pending_count,
    ) == (0, 0, 0, 0)
    assert stored.created_at is not None


def test_create_event_assigns_increasing_ids(session):
    first = create_event(session, **event_fields())
    second = create_event(session, **event_fields(event_name="Second"))
    assert second.id > first.id


@pytest.mark.parametrize("missing", ["creator_email", "event_name", "event_end_time"])
def test_create_event_requires_every_field(session, missing):
    with pytest.raises(InvalidInputError) as excinfo:
        create_event(session, **event_fields(**{missing: "  "}))
    assert "Missing required event fields" in excinfo.value.message


def test_create_event_rejects_non_text_fields(session):
    with pytest.raises(InvalidInputError) as excinfo:
        create_event(session, **event_fields(event_name=42))
    assert "Invalid data types" in excinfo.value.message


@pytest.mark.parametrize("value", [0, -3, "10", True, 2.5, 2**63])
def test_create_event_rejects_bad_targeted_attendees(session, value):
    with pytest.raises(InvalidInputError) as excinfo:
        create_event(session, **event_fields(targeted_attendees=value))
    assert excinfo.value.message == "Targeted Attendees must be a positive integer."


def test_get_event_missing_raises(session):
    with pytest.raises(NotFoundError):
        get_event(session, 999)


def test_update_event_changes_only_given_fields(session, make_event):
    event_id = make_event()
    event = update_event(session, event_id, event_name="Renamed", targeted_attendees=25)
    session.commit()

    assert event.event_name == "Renamed"
    assert event.targeted_attendees == 25
    assert event.description == "Planning day"
    assert event.updated_at >= event.created_at


def test_update_event_rejects_read_only_fields(session, make_event):
    event_id = make_event()
    with pytest.raises(InvalidInputError):
        update_event(session, event_id, status="Published")
    with pytest.raises(InvalidInputError):
        update_event(session, event_id, attending_count=5)


def test_update_event_cannot_blank_required_field(session, make_event):
    event_id = make_event()
    with pytest.raises(InvalidInputError):
        update_event(session, event_id, event_name="")


def test_lifecycle_transitions_are_unconditional(session, make_event):
    event_id = make_event()

    assert cancel_event(session, event_id) == 1
    session.commit()
    assert get_event(session, event_id).status == "Cancelled"

    # Any state may move to any other.
    assert publish_event(session, event_id) == 1
    session.commit()
    session.expire_all()
    assert get_event(session, event_id).status == "Published"

    archive_event(session, event_id)
    session.commit()
    session.expire_all()
    assert get_event(session, event_id).status == "Archived"


def test_lifecycle_on_missing_event(session):
    with pytest.raises(NotFoundError) as excinfo:
        publish_event(session, 404)
    assert excinfo.value.message == "Event not found"


def test_delete_event_removes_rsvps(session, make_event):
    event_id = make_event()
    submit_response(session, event_id, "a@example.com", "Attending")
    submit_response(session, event_id, "b@example.com", "Maybe")

    delete_event(session, event_id)
    session.commit()

    assert session.get(Event, event_id) is None
    assert session.scalars(select(Rsvp).where(Rsvp.event_id == event_id)).all() == []


def test_list_events_orders_by_id(session, make_event):
    ids = [make_event(event_name=f"Event {i}") for i in range(3)]
    assert [event.id for event in list_events(session)] == ids


def test_list_events_with_counts_newest_first(session, make_event):
    ids = [make_event(event_name=f"Event {i}") for i in range(3)]
    listed = [event.id for event in list_events_with_counts(session)]
    assert listed == list(reversed(ids))


def test_list_attendees_for_event(session, make_event):
    event_id = make_event()
    submit_response(session, event_id, "a@example.com", "Attending")
    submit_response(session, event_id, "b@example.com")

    attendees = list_attendees_for_event(session, event_id)
    assert [rsvp.attendee_email for rsvp in attendees] == [
        "a@example.com",
        "b@example.com",
    ]
    assert attendees[1].response_status == "Pending"


def test_list_attendees_for_missing_event(session):
    with pytest.raises(NotFoundError):
        list_attendees_for_event(session, 12)


def test_list_events_for_attendee(session, make_event):
    first = make_event(event_name="First")
    second = make_event(event_name="Second")
    make_event(event_name="Unrelated")
    submit_response(session, first, "guest@example.com", "Maybe")
    submit_response(session, second, "guest@example.com", "Not Attending")

    rows = list_events_for_attendee(session, "guest@example.com")
    assert [dict(row) for row in rows] == [
        {
            "id": first,
            "eventName": "First",
            "eventDate": "2025-03-01",
            "eventStartTime": "09:00",
            "eventEndTime": "17:00",
            "responseStatus": "Maybe",
        },
        {
            "id": second,
            "eventName": "Second",
            "eventDate": "2025-03-01",
            "eventStartTime": "09:00",
            "eventEndTime": "17:00",
            "responseStatus": "Not Attending",
        },
    ]
    assert list_events_for_attendee(session, "nobody@example.com") == []


@pytest.mark.parametrize("raw", ["abc", "0", "-1", None, "1.5"])
def test_require_event_id_rejects_invalid(raw):
    with pytest.raises(InvalidInputError) as excinfo:
        require_event_id(raw)
    assert excinfo.value.message == "Invalid Event ID provided."


def test_require_event_id_accepts_digit_strings():
    assert require_event_id("17") == 17
    assert require_event_id(3) == 3


def test_create_event_accepts_whole_float_attendees(session):
    event = create_event(session, **event_fields(targeted_attendees=12.0))
    assert event.targeted_attendees == 12
    assert isinstance(event.targeted_attendees, int)


def test_require_event_id_rejects_out_of_range():
    with pytest.raises(InvalidInputError):
        require_event_id("99999999999999999999")
