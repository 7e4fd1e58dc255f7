from __future__ import annotations

from rsvpdesk import crud
from rsvpdesk.seed import seed_fake_data
from rsvpdesk.utils import utcnow


def test_seed_creates_events_and_rsvps(sql_repository):
    stats = seed_fake_data(
        sql_repository, event_count=6, max_rsvps_per_event=3, past_percentage=50, seed=7
    )

    events = crud.list_events(sql_repository)
    rsvps = crud.list_rsvps(sql_repository)
    assert stats == {"events": 6, "rsvps": len(rsvps)}
    assert len(events) == 6
    assert {rsvp.event_id for rsvp in rsvps} <= {event.id for event in events}
    by_id = {event.id: event for event in events}
    for rsvp in rsvps:
        if rsvp.plus_one:
            assert rsvp.response == "yes"
            assert by_id[rsvp.event_id].allow_plus_one


def test_seed_can_create_only_past_events(sql_repository):
    seed_fake_data(sql_repository, event_count=4, past_percentage=100, seed=1)

    now = utcnow()
    assert all(event.date_time < now for event in crud.list_events(sql_repository))
