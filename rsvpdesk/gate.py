"""Auth gate for organizer-only pages.

The gate is a small state machine::

    INITIALIZING --no session / lookup error--> UNAUTHENTICATED (navigate to login)
    INITIALIZING --session-------------------> AUTHENTICATED (initial fetch)
    AUTHENTICATED --signed out / no session--> UNAUTHENTICATED (navigate to login)
    AUTHENTICATED --new session--------------> AUTHENTICATED (cached user updated)

Session-change notifications arrive through a queue fed by the Session
Store subscription, which lives exactly as long as ``AuthGate.mount()``.
Every mount, teardown and sign-out bumps a generation counter; a fetch whose
generation is no longer current is discarded, so a sign-out observed after a
fetch started always wins over that fetch's result.
"""

from __future__ import annotations

import logging
import queue
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generic, Iterator, TypeVar

from .auth import SessionChange, SessionClient
from .entities import AuthSession

logger = logging.getLogger("uvicorn.error")

T = TypeVar("T")

LOGIN_ROUTE = "/"


class GateState(str, Enum):
    INITIALIZING = "initializing"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"


class Navigator:
    """Records the navigation decided by a view; the first decision sticks."""

    def __init__(self) -> None:
        self.location: str | None = None

    def push(self, location: str) -> None:
        if self.location is None:
            self.location = location


class AuthGate:
    def __init__(
        self,
        client: SessionClient,
        navigator: Navigator,
        *,
        login_route: str = LOGIN_ROUTE,
        on_authenticated: Callable[[AuthGate], None] | None = None,
    ) -> None:
        self._client = client
        self._navigator = navigator
        self._login_route = login_route
        self._on_authenticated = on_authenticated
        self._channel: queue.SimpleQueue[SessionChange] = queue.SimpleQueue()
        self._generation = 0
        self._mounted = False
        self._in_flight = 0
        self.state = GateState.INITIALIZING
        self.user: AuthSession | None = None

    @property
    def mounted(self) -> bool:
        return self._mounted

    @property
    def loading(self) -> bool:
        """True while the session check or a gated fetch is outstanding."""
        return self.state is GateState.INITIALIZING or self._in_flight > 0

    @contextmanager
    def mount(self) -> Iterator[AuthGate]:
        if self._mounted:
            raise RuntimeError("AuthGate is already mounted")
        unsubscribe = self._client.on_session_change(self._channel.put)
        self._mounted = True
        self._generation += 1
        try:
            self._initialize()
            yield self
        finally:
            self._mounted = False
            self._generation += 1
            unsubscribe()

    def _initialize(self) -> None:
        try:
            session = self._client.get_current_session()
        except Exception:
            logger.exception("Session check failed; redirecting to login")
            session = None
        if session is None:
            self._enter_unauthenticated()
            return
        self.state = GateState.AUTHENTICATED
        self.user = session
        if self._on_authenticated is not None:
            self._on_authenticated(self)

    def _enter_unauthenticated(self) -> None:
        self.state = GateState.UNAUTHENTICATED
        self.user = None
        self._generation += 1
        self._navigator.push(self._login_route)

    def _apply(self, change: SessionChange) -> None:
        if self.state is GateState.UNAUTHENTICATED:
            return
        if change.signed_out:
            logger.info("Session ended while viewing a gated page (%s)", change.kind)
            self._enter_unauthenticated()
        elif self.state is GateState.AUTHENTICATED:
            self.user = change.session

    def pump(self) -> GateState:
        """Apply every queued session change and return the resulting state."""
        while True:
            try:
                change = self._channel.get_nowait()
            except queue.Empty:
                return self.state
            self._apply(change)

    def begin_fetch(self) -> int | None:
        """Return a generation token, or ``None`` if fetching is not allowed."""
        self.pump()
        if not self._mounted or self.state is not GateState.AUTHENTICATED:
            return None
        return self._generation

    def accept(self, token: int | None) -> bool:
        """Whether a fetch started with ``token`` may still be applied."""
        self.pump()
        return (
            token is not None
            and self._mounted
            and self.state is GateState.AUTHENTICATED
            and token == self._generation
        )

    def fetch(self, loader: Callable[[], T]) -> T | None:
        """Run ``loader`` and return its result, or ``None`` if it went stale.

        Errors raised by a fetch that has already been superseded are
        discarded along with its result.
        """
        token = self.begin_fetch()
        if token is None:
            return None
        self._in_flight += 1
        try:
            result = loader()
        except Exception:
            if not self.accept(token):
                logger.info("Discarding failed fetch after session change")
                return None
            raise
        finally:
            self._in_flight -= 1
        return result if self.accept(token) else None


@dataclass(frozen=True)
class GatedLoad(Generic[T]):
    state: GateState
    user: AuthSession | None
    data: T | None
    redirect_to: str | None

    @property
    def authenticated(self) -> bool:
        return self.state is GateState.AUTHENTICATED and self.redirect_to is None


def load_gated(
    client: SessionClient,
    loader: Callable[[AuthSession], T],
    *,
    login_route: str = LOGIN_ROUTE,
) -> GatedLoad[T]:
    """Mount a gate, run the initial fetch once authenticated, tear down."""
    navigator = Navigator()
    results: list[T | None] = []

    def initial_fetch(gate: AuthGate) -> None:
        user = gate.user
        results.append(gate.fetch(lambda: loader(user)))

    gate = AuthGate(
        client, navigator, login_route=login_route, on_authenticated=initial_fetch
    )
    with gate.mount():
        state = gate.pump()
        data = results[0] if results and state is GateState.AUTHENTICATED else None
        return GatedLoad(
            state=state, user=gate.user, data=data, redirect_to=navigator.location
        )
