from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

from rsvpdesk.utils import (
    format_when,
    humanize_time,
    local_to_utc,
    looks_like_email,
    to_naive_utc,
)


def test_humanize_time_handles_future_and_past():
    now = datetime(2024, 1, 1, 12, 0, 0)
    future = now + timedelta(days=2, hours=3)
    past = now - timedelta(seconds=10)
    assert humanize_time(future, now=now) == "in 2 days"
    assert humanize_time(past, now=now) == "moments ago"


def test_humanize_time_uses_largest_whole_unit():
    now = datetime(2025, 12, 1, 12, 0, 0)
    assert humanize_time(now + timedelta(days=15), now=now) == "in 2 weeks"
    assert humanize_time(now - timedelta(hours=1), now=now) == "1 hour ago"
    assert humanize_time(None, now=now) == ""


def test_to_naive_utc_converts_aware_values():
    aware = datetime(2030, 6, 1, 20, 0, tzinfo=timezone(timedelta(hours=2)))
    assert to_naive_utc(aware) == datetime(2030, 6, 1, 18, 0)
    naive = datetime(2030, 6, 1, 20, 0)
    assert to_naive_utc(naive) is naive
    assert to_naive_utc(datetime(2030, 6, 1, tzinfo=UTC)).tzinfo is None


def test_local_to_utc_applies_browser_offset():
    local = datetime(2030, 1, 1, 10, 0)
    # getTimezoneOffset() is -60 in UTC+1.
    assert local_to_utc(local, -60) == datetime(2030, 1, 1, 9, 0)
    assert local_to_utc(local, "300") == datetime(2030, 1, 1, 15, 0)
    assert local_to_utc(local, "garbage") == local


def test_looks_like_email():
    assert looks_like_email("guest@example.com")
    assert looks_like_email("  guest@example.com ")
    assert not looks_like_email("guest@")
    assert not looks_like_email("")
    assert not looks_like_email(None)


def test_format_when():
    assert format_when(datetime(2026, 3, 14, 19, 30)) == "Sat 14 Mar 2026, 19:30 UTC"
    assert format_when(None) == ""
