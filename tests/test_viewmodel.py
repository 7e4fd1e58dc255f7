from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from rsvpdesk.entities import RSVP, Event
from rsvpdesk.viewmodel import (
    AdminListState,
    derive_view,
    partition_events,
    rsvp_counts,
)

NOW = datetime(2030, 5, 1, 12, 0, 0)


def _event(event_id: str, title: str, *, days: float, location: str = "Town Hall"):
    return Event(
        id=event_id,
        title=title,
        date_time=NOW + timedelta(days=days),
        location=location,
    )


def _rsvp(event_id: str, response: str, *, plus_one: bool = False, rsvp_id: str = "r"):
    return RSVP(
        id=f"{rsvp_id}-{event_id}-{response}",
        event_id=event_id,
        name="Guest",
        email="guest@example.com",
        response=response,
        plus_one=plus_one,
    )


@pytest.fixture()
def events():
    return [
        _event("1", "Gala Night", days=3, location="Grand Hotel"),
        _event("2", "picnic", days=10, location="Riverside Park"),
        _event("3", "Book Club", days=-2),
        _event("4", "Annual Dinner", days=-30),
        _event("5", "Launch", days=0),
    ]


def test_partition_is_disjoint_and_exhaustive(events):
    upcoming, past = partition_events(events, NOW)

    upcoming_ids = {event.id for event in upcoming}
    past_ids = {event.id for event in past}
    assert upcoming_ids.isdisjoint(past_ids)
    assert upcoming_ids | past_ids == {event.id for event in events}
    # An event starting exactly now is still upcoming.
    assert "5" in upcoming_ids


def test_derive_view_is_deterministic(events):
    state = AdminListState(search_query="a", sort_by="name")
    first = derive_view(events, [], state, now=NOW)
    second = derive_view(events, [], state, now=NOW)
    assert first == second


def test_default_view_lists_upcoming_soonest_first(events):
    view = derive_view(events, [], AdminListState(), now=NOW)

    assert [row.event.id for row in view.rows] == ["5", "1", "2"]
    assert view.upcoming_count == 3
    assert view.past_count == 2
    assert view.total_pages == 1


def test_past_tab_defaults_to_most_recent_first(events):
    state = AdminListState().with_tab("past")
    view = derive_view(events, [], state, now=NOW)

    assert state.sort_order == "desc"
    assert [row.event.title for row in view.rows] == ["Book Club", "Annual Dinner"]


def test_tab_change_resets_page():
    state = AdminListState(current_page=4)

    assert state.with_tab("past").current_page == 1
    assert state.with_tab("upcoming").current_page == 1
    assert state.with_search("gala").current_page == 1


def test_tab_change_keeps_explicit_sort_order():
    state = AdminListState(active_tab="past", sort_order="asc")

    assert state.with_tab("upcoming").sort_order == "asc"
    assert AdminListState().with_tab("past").with_tab("upcoming").sort_order == "asc"


def test_unknown_tab_is_rejected():
    with pytest.raises(ValueError):
        AdminListState().with_tab("archived")


def test_name_sort_is_case_insensitive_and_desc_reverses_asc():
    titles = ["beta", "Alpha", "gamma", "alpha", "Beta"]
    events = [
        _event(str(index), title, days=index + 1) for index, title in enumerate(titles)
    ]
    asc = derive_view(events, [], AdminListState(sort_by="name"), now=NOW)
    desc = derive_view(
        events, [], AdminListState(sort_by="name", sort_order="desc"), now=NOW
    )

    asc_titles = [row.event.title for row in asc.rows]
    assert asc_titles == sorted(asc_titles, key=str.casefold)
    assert [row.event.id for row in desc.rows] == [
        row.event.id for row in reversed(asc.rows)
    ]


def test_search_matches_title_or_location(events):
    by_title = derive_view(events, [], AdminListState(search_query="gal"), now=NOW)
    by_location = derive_view(
        events, [], AdminListState(search_query="RIVERSIDE"), now=NOW
    )

    assert [row.event.title for row in by_title.rows] == ["Gala Night"]
    assert [row.event.title for row in by_location.rows] == ["picnic"]


def test_search_with_no_matches_is_empty(events):
    view = derive_view(events, [], AdminListState(search_query="zzz"), now=NOW)

    assert view.is_empty
    assert view.rows == ()
    assert view.total_pages == 1
    assert not view.has_next and not view.has_prev


def test_pagination_slices_by_page_size():
    events = [_event(str(index), f"Event {index:02d}", days=index + 1) for index in range(10)]

    first = derive_view(events, [], AdminListState(), now=NOW)
    second = derive_view(events, [], AdminListState(current_page=2), now=NOW)

    assert len(first.rows) == 8
    assert [row.event.id for row in second.rows] == ["8", "9"]
    assert first.total_pages == 2
    assert first.next_page == 2 and first.prev_page is None
    assert second.prev_page == 1 and second.next_page is None


def test_page_past_the_end_is_empty_not_an_error(events):
    view = derive_view(events, [], AdminListState(current_page=9), now=NOW)

    assert view.rows == ()
    assert view.total_events == 3
    assert not view.is_empty
    assert view.prev_page == 1


def test_empty_tab():
    only_past = [_event("1", "Old", days=-1)]
    view = derive_view(only_past, [], AdminListState(), now=NOW)

    assert view.is_empty
    assert view.upcoming_count == 0
    assert view.past_count == 1


def test_rows_carry_their_own_rsvps_and_counts(events):
    rsvps = [
        _rsvp("1", "yes", plus_one=True),
        _rsvp("1", "no"),
        _rsvp("1", "maybe", plus_one=True),
        _rsvp("2", "yes"),
    ]
    view = derive_view(events, rsvps, AdminListState(search_query="gala"), now=NOW)

    (row,) = view.rows
    assert {rsvp.event_id for rsvp in row.rsvps} == {"1"}
    assert row.counts.total == 3
    assert (row.counts.yes, row.counts.no, row.counts.maybe) == (1, 1, 1)
    # Only attending guests bring a plus one.
    assert row.counts.plus_ones == 1
    assert row.counts.headcount == 2


def test_rsvp_counts_of_nothing():
    counts = rsvp_counts([])
    assert counts.total == 0
    assert counts.headcount == 0


def test_state_from_query_ignores_unknown_values():
    state = AdminListState.from_query(
        tab="archived", q="  gala ", sort="size", order="sideways", page="abc"
    )

    assert state == AdminListState(search_query="gala")


def test_state_query_string_round_trip():
    state = AdminListState(
        active_tab="past", search_query="gala", sort_by="name", sort_order="asc", current_page=2
    )
    query = dict(pair.split("=") for pair in state.to_query().split("&"))

    assert AdminListState.from_query(**query) == state
    assert AdminListState().to_query() == ""


def test_name_sort_ignores_case():
    events = [
        _event("1", "Banana", days=1),
        _event("2", "apple", days=2),
        _event("3", "cherry", days=3),
    ]

    view = derive_view(events, [], AdminListState(sort_by="name"), now=NOW)

    assert [row.event.title for row in view.rows] == ["apple", "Banana", "cherry"]
