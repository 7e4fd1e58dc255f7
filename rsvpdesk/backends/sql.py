"""SQLAlchemy implementations of the Repository and the auth backend."""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import Table, delete, insert, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .. import database
from ..entities import AuthSession
from ..errors import AuthError, ErrorCode, RepoError, TransportError
from ..models import Base, Organizer, StoredSession
from ..utils import utcnow
from .interfaces import TABLES, AuthBackend, Order, Repository, Row

logger = logging.getLogger("uvicorn.error")

PASSWORD_ITERATIONS = 260_000
INVALID_CREDENTIALS = "Invalid login credentials"


def hash_password(password: str, *, iterations: int = PASSWORD_ITERATIONS) -> str:
    salt = secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    return "pbkdf2_sha256${}${}${}".format(
        iterations,
        base64.b64encode(salt).decode("ascii"),
        base64.b64encode(digest).decode("ascii"),
    )


def verify_password(password: str, encoded: str) -> bool:
    try:
        algorithm, iterations, salt, expected = encoded.split("$")
    except ValueError:
        return False
    if algorithm != "pbkdf2_sha256":
        return False
    digest = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        base64.b64decode(salt),
        int(iterations),
    )
    return hmac.compare_digest(base64.b64encode(digest).decode("ascii"), expected)


def _table(name: str) -> Table:
    if name not in TABLES:
        raise RepoError(f"Unknown table {name!r}")
    return Base.metadata.tables[name]


def _column(table: Table, name: str):
    try:
        return table.c[name]
    except KeyError as exc:
        raise RepoError(f"Unknown column {table.name}.{name}") from exc


class SqlRepository(Repository):
    """Table API over the local SQLAlchemy schema."""

    def select(
        self,
        table: str,
        filters: dict[str, Any] | None = None,
        order: Order | None = None,
    ) -> list[Row]:
        target = _table(table)
        stmt = select(target)
        for column, value in (filters or {}).items():
            stmt = stmt.where(_column(target, column) == value)
        if order is not None:
            column = _column(target, order.column)
            stmt = stmt.order_by(column.desc() if order.descending else column.asc())
        stmt = stmt.order_by(target.c.created_at.asc())
        try:
            with database.get_session() as session:
                return [dict(row) for row in session.execute(stmt).mappings()]
        except SQLAlchemyError as exc:
            logger.error("Select on %s failed: %s", table, exc)
            raise TransportError(f"Could not read {table}") from exc

    def insert(self, table: str, row: Row) -> None:
        target = _table(table)
        values = {key: value for key, value in row.items() if key != "id"}
        for column in values:
            _column(target, column)
        try:
            with database.get_session() as session:
                session.execute(insert(target).values(**values))
        except IntegrityError as exc:
            logger.error("Insert into %s rejected: %s", table, exc.orig)
            raise RepoError(f"The {table} row was rejected") from exc
        except SQLAlchemyError as exc:
            logger.error("Insert into %s failed: %s", table, exc)
            raise TransportError(f"Could not write to {table}") from exc


class SqlAuthBackend(AuthBackend):
    """Organizer accounts and server-side sessions stored next to the data."""

    def __init__(self, api_key: str, *, ttl: timedelta) -> None:
        super().__init__(api_key)
        self.ttl = ttl

    def password_grant(self, email: str, password: str) -> AuthSession:
        normalized = (email or "").strip().lower()
        if not normalized or not password:
            raise AuthError(INVALID_CREDENTIALS)
        token = secrets.token_urlsafe(32)
        now = utcnow()
        try:
            with database.get_session() as session:
                organizer = session.scalars(
                    select(Organizer).where(Organizer.email == normalized)
                ).first()
                if organizer is None or not verify_password(
                    password, organizer.password_hash
                ):
                    raise AuthError(INVALID_CREDENTIALS)
                stored = StoredSession(
                    token_digest=self.session_key(token),
                    organizer_id=organizer.id,
                    created_at=now,
                    expires_at=now + self.ttl,
                )
                session.add(stored)
                return AuthSession(
                    user_id=organizer.id,
                    email=organizer.email,
                    access_token=token,
                    expires_at=stored.expires_at,
                )
        except SQLAlchemyError as exc:
            logger.error("Sign-in lookup failed: %s", exc)
            raise AuthError(
                "Sign-in is unavailable right now", code=ErrorCode.AUTH_UNAVAILABLE
            ) from exc

    def fetch_session(self, token: str) -> AuthSession | None:
        digest = self.session_key(token)
        try:
            with database.get_session() as session:
                stored = session.get(StoredSession, digest)
                if stored is None:
                    return None
                if stored.expires_at <= utcnow():
                    session.delete(stored)
                    return None
                return AuthSession(
                    user_id=stored.organizer.id,
                    email=stored.organizer.email,
                    access_token=token,
                    expires_at=stored.expires_at,
                )
        except SQLAlchemyError as exc:
            raise AuthError(
                "Session lookup failed", code=ErrorCode.AUTH_UNAVAILABLE
            ) from exc

    def revoke(self, token: str) -> None:
        try:
            with database.get_session() as session:
                session.execute(
                    delete(StoredSession).where(
                        StoredSession.token_digest == self.session_key(token)
                    )
                )
        except SQLAlchemyError as exc:
            raise AuthError(
                "Sign-out failed", code=ErrorCode.AUTH_UNAVAILABLE
            ) from exc

    def purge_expired(self, now: datetime) -> list[str]:
        with database.get_session() as session:
            digests = list(
                session.scalars(
                    select(StoredSession.token_digest).where(
                        StoredSession.expires_at <= now
                    )
                )
            )
            if digests:
                session.execute(
                    delete(StoredSession).where(
                        StoredSession.token_digest.in_(digests)
                    )
                )
        return digests
