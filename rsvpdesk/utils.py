"""Utility helpers for RSVP Desk."""

from __future__ import annotations

import re
from datetime import UTC, datetime, timedelta

_email_pattern = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def utcnow() -> datetime:
    """Return a naive UTC datetime."""

    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Convert aware datetimes to naive UTC; naive values are assumed UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def local_to_utc(value: datetime, offset_minutes: int | str | None) -> datetime:
    """Normalize a naive browser-local datetime to naive UTC.

    ``offset_minutes`` follows ``Date.getTimezoneOffset()``: minutes to add to
    local time to reach UTC.
    """
    try:
        offset = int(offset_minutes or 0)
    except (TypeError, ValueError):
        offset = 0
    return value + timedelta(minutes=offset)


def looks_like_email(value: str | None) -> bool:
    return bool(value and _email_pattern.match(value.strip()))


def humanize_time(value: datetime | None, *, now: datetime | None = None) -> str:
    """Return a friendly string such as 'in 2 weeks' or '3 hours ago'."""
    if not value:
        return ""
    now = now or utcnow()
    delta_seconds = (value - now).total_seconds()
    past = delta_seconds < 0
    seconds = abs(delta_seconds)

    units = [
        ("year", 365 * 24 * 3600),
        ("month", 30 * 24 * 3600),
        ("week", 7 * 24 * 3600),
        ("day", 24 * 3600),
        ("hour", 3600),
        ("minute", 60),
    ]
    for name, step in units:
        amount = int(seconds // step)
        if amount >= 1:
            label = name if amount == 1 else f"{name}s"
            return f"{amount} {label} ago" if past else f"in {amount} {label}"
    return "moments ago" if past else "in moments"


def format_when(value: datetime | None) -> str:
    """Render an event timestamp for templates, e.g. 'Sat 14 Mar 2026, 19:30 UTC'."""
    if not value:
        return ""
    return value.strftime("%a %d %b %Y, %H:%M UTC")
