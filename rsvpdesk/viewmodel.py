"""Admin dashboard list state and the pure derivation of what to display."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Iterable, Literal, Sequence
from urllib.parse import urlencode

from .entities import RSVP, Event
from .utils import utcnow

Tab = Literal["upcoming", "past"]
SortBy = Literal["time", "name"]
SortOrder = Literal["asc", "desc"]

TABS: tuple[Tab, ...] = ("upcoming", "past")
SORT_FIELDS: tuple[SortBy, ...] = ("time", "name")
SORT_ORDERS: tuple[SortOrder, ...] = ("asc", "desc")
ADMIN_PAGE_SIZE = 8


def default_sort_order(tab: Tab) -> SortOrder:
    """Upcoming events read soonest-first, past events most-recent-first."""
    return "asc" if tab == "upcoming" else "desc"


@dataclass(frozen=True)
class AdminListState:
    active_tab: Tab = "upcoming"
    search_query: str = ""
    sort_by: SortBy = "time"
    sort_order: SortOrder = "asc"
    current_page: int = 1

    def with_tab(self, tab: Tab) -> AdminListState:
        """Switch tabs. The page always resets to 1.

        A sort order still at the old tab's default follows the new tab's
        default; an explicitly chosen order is kept.
        """
        if tab not in TABS:
            raise ValueError(f"Unknown tab {tab!r}")
        order = self.sort_order
        if order == default_sort_order(self.active_tab):
            order = default_sort_order(tab)
        return replace(self, active_tab=tab, sort_order=order, current_page=1)

    def with_search(self, query: str) -> AdminListState:
        return replace(self, search_query=query or "", current_page=1)

    def with_sort(self, sort_by: SortBy, sort_order: SortOrder) -> AdminListState:
        if sort_by not in SORT_FIELDS or sort_order not in SORT_ORDERS:
            raise ValueError(f"Unknown sort {sort_by!r} {sort_order!r}")
        return replace(self, sort_by=sort_by, sort_order=sort_order)

    def with_page(self, page: int) -> AdminListState:
        return replace(self, current_page=page)

    @classmethod
    def from_query(
        cls,
        *,
        tab: str | None = None,
        q: str | None = None,
        sort: str | None = None,
        order: str | None = None,
        page: int | str | None = None,
    ) -> AdminListState:
        """Build state from query parameters, ignoring values it does not know."""
        active_tab: Tab = tab if tab in TABS else "upcoming"
        sort_by: SortBy = sort if sort in SORT_FIELDS else "time"
        sort_order: SortOrder = (
            order if order in SORT_ORDERS else default_sort_order(active_tab)
        )
        try:
            current_page = max(int(page or 1), 1)
        except (TypeError, ValueError):
            current_page = 1
        return cls(
            active_tab=active_tab,
            search_query=(q or "").strip(),
            sort_by=sort_by,
            sort_order=sort_order,
            current_page=current_page,
        )

    def to_query(self) -> str:
        """Inverse of ``from_query``; default values are left out."""
        params: dict[str, str | int] = {}
        if self.active_tab != "upcoming":
            params["tab"] = self.active_tab
        if self.search_query:
            params["q"] = self.search_query
        if self.sort_by != "time":
            params["sort"] = self.sort_by
        if self.sort_order != default_sort_order(self.active_tab):
            params["order"] = self.sort_order
        if self.current_page != 1:
            params["page"] = self.current_page
        return urlencode(params)


@dataclass(frozen=True)
class RSVPCounts:
    total: int = 0
    yes: int = 0
    no: int = 0
    maybe: int = 0
    plus_ones: int = 0

    @property
    def headcount(self) -> int:
        """Guests expected to show up, plus-ones included."""
        return self.yes + self.plus_ones


@dataclass(frozen=True)
class EventRow:
    event: Event
    rsvps: tuple[RSVP, ...]
    counts: RSVPCounts


@dataclass(frozen=True)
class AdminView:
    state: AdminListState
    rows: tuple[EventRow, ...]
    total_events: int
    total_pages: int
    page_size: int
    upcoming_count: int
    past_count: int

    @property
    def page(self) -> int:
        return self.state.current_page

    @property
    def is_empty(self) -> bool:
        """No events at all in the active tab after searching."""
        return self.total_events == 0

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def prev_page(self) -> int | None:
        return min(self.page - 1, self.total_pages) if self.has_prev else None

    @property
    def next_page(self) -> int | None:
        return self.page + 1 if self.has_next else None


def partition_events(
    events: Iterable[Event], now: datetime
) -> tuple[list[Event], list[Event]]:
    """Split events into (upcoming, past); every event lands on exactly one side."""
    upcoming: list[Event] = []
    past: list[Event] = []
    for event in events:
        (upcoming if event.date_time >= now else past).append(event)
    return upcoming, past


def matches_search(event: Event, query: str) -> bool:
    needle = query.strip().casefold()
    if not needle:
        return True
    return needle in event.title.casefold() or needle in event.location.casefold()


def sort_events(
    events: Sequence[Event], sort_by: SortBy, sort_order: SortOrder
) -> list[Event]:
    """Order events by date or by title.

    Titles compare case-insensitively, so "apple" sorts before "Banana"; the
    raw title breaks ties. Ascending is a stable sort and descending is its
    exact reverse.
    """
    if sort_by == "name":
        ordered = sorted(events, key=lambda event: (event.title.casefold(), event.title))
    else:
        ordered = sorted(events, key=lambda event: event.date_time)
    if sort_order == "desc":
        ordered.reverse()
    return ordered


def rsvp_counts(rsvps: Iterable[RSVP]) -> RSVPCounts:
    yes = no = maybe = plus_ones = total = 0
    for rsvp in rsvps:
        total += 1
        if rsvp.response == "yes":
            yes += 1
            plus_ones += 1 if rsvp.plus_one else 0
        elif rsvp.response == "no":
            no += 1
        else:
            maybe += 1
    return RSVPCounts(total=total, yes=yes, no=no, maybe=maybe, plus_ones=plus_ones)


def rsvps_for(event: Event, rsvps: Iterable[RSVP]) -> tuple[RSVP, ...]:
    return tuple(rsvp for rsvp in rsvps if rsvp.event_id == event.id)


def derive_view(
    events: Sequence[Event],
    rsvps: Sequence[RSVP],
    state: AdminListState,
    *,
    now: datetime | None = None,
    page_size: int = ADMIN_PAGE_SIZE,
) -> AdminView:
    """Compute the ordered, filtered, paginated event rows for the dashboard.

    ``now`` is sampled once when not given, so an event sitting on the
    boundary cannot switch sides halfway through. A page past the end yields
    no rows rather than an error.
    """
    if page_size < 1:
        raise ValueError("page_size must be positive")
    now = now or utcnow()
    upcoming, past = partition_events(events, now)
    in_tab = upcoming if state.active_tab == "upcoming" else past
    filtered = [event for event in in_tab if matches_search(event, state.search_query)]
    ordered = sort_events(filtered, state.sort_by, state.sort_order)

    total_events = len(ordered)
    total_pages = max(1, -(-total_events // page_size))
    if state.current_page < 1:
        page_slice: list[Event] = []
    else:
        start = (state.current_page - 1) * page_size
        page_slice = ordered[start : start + page_size]

    rows = []
    for event in page_slice:
        matching = rsvps_for(event, rsvps)
        rows.append(EventRow(event=event, rsvps=matching, counts=rsvp_counts(matching)))

    return AdminView(
        state=state,
        rows=tuple(rows),
        total_events=total_events,
        total_pages=total_pages,
        page_size=page_size,
        upcoming_count=len(upcoming),
        past_count=len(past),
    )
