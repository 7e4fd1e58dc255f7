"""Typed reads and writes for events and RSVPs on top of a Repository."""

from __future__ import annotations

from datetime import datetime

from .backends.interfaces import Order, Repository
from .entities import RESPONSES, RSVP, Event, decode_row, decode_rows
from .errors import NotFoundError
from .utils import to_naive_utc

EVENTS = "events"
RSVPS = "rsvps"


def list_events(repository: Repository) -> list[Event]:
    """Return every event in Repository insertion order."""
    return decode_rows(Event, EVENTS, repository.select(EVENTS))


def get_event(repository: Repository, event_id: str) -> Event:
    rows = repository.select(EVENTS, {"id": event_id})
    if not rows:
        raise NotFoundError(EVENTS, event_id)
    return decode_row(Event, EVENTS, rows[0])


def list_rsvps(repository: Repository, event_id: str | None = None) -> list[RSVP]:
    filters = {"event_id": event_id} if event_id is not None else None
    return decode_rows(RSVP, RSVPS, repository.select(RSVPS, filters))


def list_rsvps_for_event(repository: Repository, event_id: str) -> list[RSVP]:
    """RSVPs for one event, oldest first."""
    return decode_rows(
        RSVP,
        RSVPS,
        repository.select(RSVPS, {"event_id": event_id}, Order("created_at")),
    )


def create_event(
    repository: Repository,
    *,
    title: str,
    date_time: datetime,
    location: str,
    description: str = "",
    allow_plus_one: bool = False,
) -> None:
    repository.insert(
        EVENTS,
        {
            "title": title,
            "date_time": to_naive_utc(date_time),
            "location": location,
            "description": description or "",
            "allow_plus_one": bool(allow_plus_one),
        },
    )


def create_rsvp(
    repository: Repository,
    *,
    event_id: str,
    name: str,
    email: str,
    response: str,
    plus_one: bool = False,
    dietary_preferences: str = "",
) -> None:
    if response not in RESPONSES:
        raise ValueError(f"Invalid response {response!r}")
    repository.insert(
        RSVPS,
        {
            "event_id": event_id,
            "name": name,
            "email": email,
            "response": response,
            "plus_one": bool(plus_one),
            "dietary_preferences": dietary_preferences or "",
        },
    )
