"""FastAPI application for Event Desk."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from importlib.metadata import PackageNotFoundError, version as pkg_version
from pathlib import Path
import tomllib

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, StrictStr
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from .crud import (
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
from .database import SessionLocal
from .errors import EventDeskError, NotFoundError
from .models import Event, Rsvp
from .rsvp import submit_response
from .storage import init_db
from .utils import isoformat, parse_positive_int

# Use uvicorn's error logger so messages get the level prefix in the default log
# format.
logger = logging.getLogger("uvicorn.error")

WELCOME_MESSAGE = "Welcome to Event Desk"


def _load_app_version() -> str:
    """Return the current package version, falling back to pyproject for dev runs."""
    try:
        return pkg_version("eventdesk")
    except PackageNotFoundError:
        pyproject_path = Path(__file__).resolve().parent.parent / "pyproject.toml"
        if pyproject_path.exists():
            data = tomllib.loads(pyproject_path.read_text())
            project = data.get("project") or {}
            return str(project.get("version") or "dev")
    return "dev"


APP_VERSION = _load_app_version()


@asynccontextmanager
async def lifespan(_: FastAPI):
    init_db()
    yield


app = FastAPI(title="Event Desk", version=APP_VERSION, lifespan=lifespan)


def get_db():
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def _error_response(status_code: int, message: str, details=None) -> JSONResponse:
    payload = {"error": message}
    if details is not None:
        payload["details"] = details
    return JSONResponse(payload, status_code=status_code)


@app.exception_handler(EventDeskError)
async def event_desk_error_handler(request: Request, exc: EventDeskError):
    if exc.status_code >= 500:
        logger.error(
            "Store failure on %s %s: %s", request.method, request.url.path, exc.details
        )
    return _error_response(exc.status_code, exc.message, exc.details)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _error_response(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return _error_response(
        400,
        "Invalid request payload.",
        jsonable_encoder(exc.errors()),
    )


@app.exception_handler(OperationalError)
async def operational_error_handler(request: Request, exc: OperationalError):
    raw = str(exc.orig) if getattr(exc, "orig", None) else str(exc)
    if "database is locked" in raw.lower():
        logger.error(
            "SQLite database is locked while handling %s %s",
            request.method,
            request.url.path,
        )
        return _error_response(
            503,
            "The database is busy at the moment. Please wait a few seconds and try again.",
        )
    logger.error(
        "Operational database error on %s %s: %s",
        request.method,
        request.url.path,
        raw,
    )
    return _error_response(500, "We hit a database issue. Please try again.", raw)


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(
        "Database error on %s %s: %s", request.method, request.url.path, exc
    )
    return _error_response(500, "Database operation failed.", str(exc))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Gracefully handle unexpected errors."""
    logger.exception(
        "Unhandled error while processing %s %s", request.method, request.url.path
    )
    return _error_response(500, "Internal server error")


def _serialize_event(event: Event, *, include_total: bool = False) -> dict:
    payload = {
        "id": event.id,
        "creatorEmail": event.creator_email,
        "eventName": event.event_name,
        "description": event.description,
        "targetedAttendees": event.targeted_attendees,
        "eventDate": event.event_date,
        "eventStartTime": event.event_start_time,
        "eventEndTime": event.event_end_time,
        "eventDuration": event.event_duration,
        "status": event.status,
        "created_at": isoformat(event.created_at),
        "updated_at": isoformat(event.updated_at),
        "attendingCount": event.attending_count,
        "notAttendingCount": event.not_attending_count,
        "maybeCount": event.maybe_count,
        "pendingCount": event.pending_count,
    }
    if include_total:
        payload["totalRsvps"] = event.total_rsvps
    return payload


def _serialize_rsvp(rsvp: Rsvp) -> dict:
    return {
        "id": rsvp.id,
        "eventId": rsvp.event_id,
        "attendeeEmail": rsvp.attendee_email,
        "responseStatus": rsvp.response_status,
        "notes": rsvp.notes,
        "rsvpDate": isoformat(rsvp.rsvp_date),
        "created_at": isoformat(rsvp.created_at),
    }


def _event_id_or_404(raw: str) -> int:
    # A non-numeric id can never match a row.
    event_id = parse_positive_int(raw)
    if event_id is None:
        raise NotFoundError("Event not found")
    return event_id


class EventFields(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    creator_email: StrictStr | None = Field(None, alias="creatorEmail")
    event_name: StrictStr | None = Field(None, alias="eventName")
    description: StrictStr | None = None
    event_date: StrictStr | None = Field(None, alias="eventDate")
    event_start_time: StrictStr | None = Field(None, alias="eventStartTime")
    event_end_time: StrictStr | None = Field(None, alias="eventEndTime")
    event_duration: StrictStr | None = Field(None, alias="eventDuration")


class EventCreatePayload(EventFields):
    targeted_attendees: StrictInt | StrictFloat | None = Field(
        None, alias="targetedAttendees"
    )


class EventUpdatePayload(EventFields):
    # Edit forms post the whole event back, numbers included as strings.
    targeted_attendees: StrictInt | StrictFloat | StrictStr | None = Field(
        None, alias="targetedAttendees"
    )


class AttendeeResponsePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    attendee_email: StrictStr | None = Field(None, alias="attendeeEmail")
    response_status: StrictStr | None = Field(None, alias="responseStatus")
    notes: StrictStr | None = None


@app.get("/api/message", response_class=PlainTextResponse)
def api_message():
    return WELCOME_MESSAGE


@app.post("/api/create-event", status_code=201)
def api_create_event(payload: EventCreatePayload, db: Session = Depends(get_db)):
    event = create_event(db, **payload.model_dump())
    db.commit()
    return {
        "message": "Event created successfully!",
        "eventId": event.id,
        "changes": 1,
    }


@app.get("/api/events")
def api_list_events(db: Session = Depends(get_db)):
    return [_serialize_event(event) for event in list_events(db)]


@app.get("/api/events-with-rsvp-counts")
def api_events_with_rsvp_counts(db: Session = Depends(get_db)):
    return [
        _serialize_event(event, include_total=True)
        for event in list_events_with_counts(db)
    ]


@app.get("/api/events/{event_id}")
def api_get_event(event_id: str, db: Session = Depends(get_db)):
    return _serialize_event(get_event(db, _event_id_or_404(event_id)))


@app.put("/api/events/{event_id}")
def api_update_event(
    event_id: str, payload: EventUpdatePayload, db: Session = Depends(get_db)
):
    changes = payload.model_dump(exclude_unset=True)
    raw_target = changes.get("targeted_attendees")
    if isinstance(raw_target, str):
        changes["targeted_attendees"] = parse_positive_int(raw_target) or raw_target
    event = update_event(db, _event_id_or_404(event_id), **changes)
    db.commit()
    return _serialize_event(event)


@app.delete("/api/events/{event_id}")
def api_delete_event(event_id: str, db: Session = Depends(get_db)):
    delete_event(db, _event_id_or_404(event_id))
    db.commit()
    return {"success": True, "message": "Event deleted"}


def _transition(db: Session, raw_id: str, action, message: str) -> dict:
    changes = action(db, _event_id_or_404(raw_id))
    db.commit()
    return {"success": True, "message": message, "changes": changes}


@app.put("/api/events/{event_id}/publish")
def api_publish_event(event_id: str, db: Session = Depends(get_db)):
    return _transition(db, event_id, publish_event, "Event published")


@app.put("/api/events/{event_id}/cancel")
def api_cancel_event(event_id: str, db: Session = Depends(get_db)):
    return _transition(db, event_id, cancel_event, "Event cancelled")


@app.put("/api/events/{event_id}/archive")
def api_archive_event(event_id: str, db: Session = Depends(get_db)):
    return _transition(db, event_id, archive_event, "Event archived")


@app.post("/api/events/{event_id}/attendees")
def api_submit_attendee_response(
    event_id: str, payload: AttendeeResponsePayload, db: Session = Depends(get_db)
):
    result = submit_response(
        db,
        event_id,
        payload.attendee_email,
        payload.response_status,
        payload.notes,
    )
    if result.created:
        message, status_code = "Attendee response recorded successfully!", 201
    else:
        message, status_code = "Attendee response updated successfully!", 200
    return JSONResponse(
        {
            "message": message,
            "created": result.created,
            "rsvp": _serialize_rsvp(result.rsvp),
        },
        status_code=status_code,
    )


@app.get("/api/events/{event_id}/attendees")
def api_list_attendees(event_id: str, db: Session = Depends(get_db)):
    attendees = list_attendees_for_event(db, require_event_id(event_id))
    return [_serialize_rsvp(rsvp) for rsvp in attendees]


@app.get("/api/attendee/{email}/events")
def api_attendee_events(email: str, db: Session = Depends(get_db)):
    return [dict(row) for row in list_events_for_attendee(db, email)]
