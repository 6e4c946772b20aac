"""Domain errors raised by the Event Desk store and RSVP engine."""

from __future__ import annotations


class EventDeskError(Exception):
    """Base class for errors that map onto an HTTP status code."""

    status_code = 500

    def __init__(self, message: str, *, details: str | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidInputError(EventDeskError):
    """Missing or malformed field, bad enum value, non-positive integer."""

    status_code = 400


class NotFoundError(EventDeskError):
    status_code = 404


class ConflictError(EventDeskError):
    """Unique constraint lost a race with a concurrent insert; retry as update."""

    status_code = 409


class StoreFailureError(EventDeskError):
    status_code = 500
