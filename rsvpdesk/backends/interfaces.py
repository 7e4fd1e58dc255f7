"""Backend interfaces.

The Repository and the auth backend are swappable: the SQL implementations
serve local and self-hosted deployments, the REST implementations talk to a
hosted Supabase-compatible service.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from hashlib import blake2s
from typing import Any, NamedTuple

from ..entities import AuthSession

TABLES = ("events", "rsvps")

Row = dict[str, Any]


class Order(NamedTuple):
    column: str
    descending: bool = False


def token_digest(token: str, key: str) -> str:
    """Keyed BLAKE2s digest of an access token; raw tokens are never stored."""
    hasher = blake2s(token.encode("utf-8"), key=blake2s(key.encode("utf-8")).digest())
    return hasher.hexdigest()


class Repository(ABC):
    """Row-oriented table API over ``events`` and ``rsvps``."""

    @abstractmethod
    def select(
        self,
        table: str,
        filters: dict[str, Any] | None = None,
        order: Order | None = None,
    ) -> list[Row]:
        """Return rows matching every equality filter, in ``order`` if given.

        Without an order, rows come back in insertion order.
        """
        ...

    @abstractmethod
    def insert(self, table: str, row: Row) -> None:
        """Insert a row; the server assigns ``id``. Raises ``RepoError``."""
        ...


class AuthBackend(ABC):
    """Credential checks and session bookkeeping behind ``SessionClient``."""

    def __init__(self, api_key: str) -> None:
        self._api_key = api_key

    def session_key(self, token: str) -> str:
        return token_digest(token, self._api_key)

    @abstractmethod
    def fetch_session(self, token: str) -> AuthSession | None:
        """Return the live session for ``token`` or ``None`` when absent/expired."""
        ...

    @abstractmethod
    def password_grant(self, email: str, password: str) -> AuthSession:
        """Exchange credentials for a new session. Raises ``AuthError``."""
        ...

    @abstractmethod
    def revoke(self, token: str) -> None:
        """End the session behind ``token``. Raises ``AuthError``."""
        ...

    def purge_expired(self, now: datetime) -> list[str]:
        """Delete expired sessions and return their session keys."""
        return []
