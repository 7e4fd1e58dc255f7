"""Session Store: per-visitor session clients and change notifications."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Literal

from .backends.interfaces import AuthBackend
from .entities import AuthSession

logger = logging.getLogger("uvicorn.error")

ChangeKind = Literal["SIGNED_IN", "SIGNED_OUT", "TOKEN_REFRESHED"]


@dataclass(frozen=True)
class SessionChange:
    kind: ChangeKind
    session: AuthSession | None

    @property
    def signed_out(self) -> bool:
        return self.kind == "SIGNED_OUT" or self.session is None


Listener = Callable[[SessionChange], None]
Unsubscribe = Callable[[], None]


class SessionHub:
    """Fans session changes out to every subscriber of a session key.

    Publishing happens from request threads (sign-out in another tab) and
    from the scheduler thread (expiry sweep), so the listener table is
    guarded by a lock and listeners are called outside it.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: dict[str, list[Listener]] = {}

    def subscribe(self, key: str, listener: Listener) -> Unsubscribe:
        with self._lock:
            self._listeners.setdefault(key, []).append(listener)

        def unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(key)
                if not listeners:
                    return
                try:
                    listeners.remove(listener)
                except ValueError:
                    return
                if not listeners:
                    del self._listeners[key]

        return unsubscribe

    def publish(self, key: str, change: SessionChange) -> int:
        with self._lock:
            listeners = list(self._listeners.get(key, ()))
        for listener in listeners:
            try:
                listener(change)
            except Exception:
                logger.exception("Session change listener failed for %s", change.kind)
        return len(listeners)

    def subscriber_count(self, key: str | None = None) -> int:
        with self._lock:
            if key is not None:
                return len(self._listeners.get(key, ()))
            return sum(len(listeners) for listeners in self._listeners.values())


class SessionClient:
    """The Session Store as seen by one visitor (one session cookie)."""

    def __init__(
        self, backend: AuthBackend, hub: SessionHub, token: str | None = None
    ) -> None:
        self._backend = backend
        self._hub = hub
        self._token = token or None

    @property
    def token(self) -> str | None:
        return self._token

    def get_current_session(self) -> AuthSession | None:
        if not self._token:
            return None
        return self._backend.fetch_session(self._token)

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        session = self._backend.password_grant(email, password)
        self._token = session.access_token
        self._hub.publish(
            self._backend.session_key(session.access_token),
            SessionChange("SIGNED_IN", session),
        )
        return session

    def sign_out(self) -> None:
        token = self._token
        if not token:
            return
        self._backend.revoke(token)
        self._token = None
        self._hub.publish(
            self._backend.session_key(token), SessionChange("SIGNED_OUT", None)
        )

    def on_session_change(self, callback: Listener) -> Unsubscribe:
        if not self._token:
            return lambda: None
        return self._hub.subscribe(self._backend.session_key(self._token), callback)
