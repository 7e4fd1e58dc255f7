"""Form validation and single-insert submission for RSVPs and new events."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from urllib.parse import urlencode

from . import crud
from .backends.interfaces import Repository
from .entities import RESPONSES, Event
from .errors import RepoError
from .utils import local_to_utc, looks_like_email, to_naive_utc, utcnow

logger = logging.getLogger("uvicorn.error")

RSVP_FAILED_NOTICE = "We couldn't save your RSVP. Please try again."
EVENT_FAILED_NOTICE = "We couldn't create the event. Please try again."
PAST_DATE_ERROR = "Please select a future date and time"


@dataclass(frozen=True)
class SubmitResult:
    """Outcome of a submission: a redirect on success, errors otherwise.

    ``form`` always carries the values to re-render, so nothing typed is lost.
    """

    form: object
    redirect_to: str | None = None
    errors: dict[str, str] = field(default_factory=dict)
    notice: str | None = None

    @property
    def ok(self) -> bool:
        return self.redirect_to is not None


@dataclass(frozen=True)
class RSVPForm:
    name: str = ""
    email: str = ""
    response: str = "yes"
    plus_one: bool = False
    dietary_preferences: str = ""

    def normalized(self, event: Event) -> RSVPForm:
        response = (self.response or "").strip().lower()
        plus_one = bool(self.plus_one) and event.allow_plus_one and response == "yes"
        return replace(
            self,
            name=(self.name or "").strip(),
            email=(self.email or "").strip(),
            response=response,
            plus_one=plus_one,
            dietary_preferences=(self.dietary_preferences or "").strip(),
        )

    def validate(self) -> dict[str, str]:
        errors: dict[str, str] = {}
        if not self.name:
            errors["name"] = "Please enter your name"
        if not self.email:
            errors["email"] = "Please enter your email"
        elif not looks_like_email(self.email):
            errors["email"] = "Please enter a valid email address"
        if not self.response:
            errors["response"] = "Please choose a response"
        elif self.response not in RESPONSES:
            errors["response"] = "Please choose yes, no or maybe"
        return errors


def thank_you_location(response: str) -> str:
    return f"/thank-you?{urlencode({'response': response})}"


def submit_rsvp(repository: Repository, form: RSVPForm, event: Event) -> SubmitResult:
    """Validate and insert one RSVP for ``event``.

    Nothing is sent to the Repository when validation fails. An insert
    failure is reported once; there is no retry.
    """
    cleaned = form.normalized(event)
    errors = cleaned.validate()
    if errors:
        return SubmitResult(form=cleaned, errors=errors)
    try:
        crud.create_rsvp(
            repository,
            event_id=event.id,
            name=cleaned.name,
            email=cleaned.email,
            response=cleaned.response,
            plus_one=cleaned.plus_one,
            dietary_preferences=cleaned.dietary_preferences,
        )
    except RepoError as exc:
        logger.error("RSVP submission for event %s failed: %s", event.id, exc)
        return SubmitResult(form=cleaned, notice=RSVP_FAILED_NOTICE)
    logger.info("RSVP recorded for event %s (%s)", event.id, cleaned.response)
    return SubmitResult(form=cleaned, redirect_to=thank_you_location(cleaned.response))


@dataclass(frozen=True)
class EventForm:
    title: str = ""
    date_time: str = ""
    timezone_offset_minutes: int = 0
    location: str = ""
    description: str = ""
    allow_plus_one: bool = False

    def normalized(self) -> EventForm:
        return replace(
            self,
            title=(self.title or "").strip(),
            date_time=(self.date_time or "").strip(),
            location=(self.location or "").strip(),
            description=(self.description or "").strip(),
            allow_plus_one=bool(self.allow_plus_one),
        )

    def parsed_date_time(self) -> datetime | None:
        """The chosen moment as naive UTC, or ``None`` if unparseable."""
        if not self.date_time:
            return None
        try:
            local = datetime.fromisoformat(self.date_time)
        except ValueError:
            return None
        if local.tzinfo is not None:
            return to_naive_utc(local)
        return local_to_utc(local, self.timezone_offset_minutes)

    def validate(self, now: datetime) -> dict[str, str]:
        errors: dict[str, str] = {}
        if not self.title:
            errors["title"] = "Please enter a title"
        if not self.location:
            errors["location"] = "Please enter a location"
        when = self.parsed_date_time()
        if not self.date_time:
            errors["date_time"] = "Please choose a date and time"
        elif when is None:
            errors["date_time"] = "Please enter a valid date and time"
        elif when <= now:
            errors["date_time"] = PAST_DATE_ERROR
        return errors


def submit_event(
    repository: Repository, form: EventForm, *, now: datetime | None = None
) -> SubmitResult:
    """Validate and insert one event; the date must be strictly in the future."""
    cleaned = form.normalized()
    errors = cleaned.validate(now or utcnow())
    if errors:
        return SubmitResult(form=cleaned, errors=errors)
    try:
        crud.create_event(
            repository,
            title=cleaned.title,
            date_time=cleaned.parsed_date_time(),
            location=cleaned.location,
            description=cleaned.description,
            allow_plus_one=cleaned.allow_plus_one,
        )
    except RepoError as exc:
        logger.error("Event creation failed: %s", exc)
        return SubmitResult(form=cleaned, notice=EVENT_FAILED_NOTICE)
    logger.info("Event created: %s", cleaned.title)
    return SubmitResult(form=cleaned, redirect_to="/admin?created=1")
