"""Supabase-compatible HTTP implementations (PostgREST tables, GoTrue auth)."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any

import requests

from ..entities import AuthSession
from ..errors import AuthError, ErrorCode, RepoError, TransportError
from ..utils import utcnow
from .interfaces import TABLES, AuthBackend, Order, Repository, Row

logger = logging.getLogger("uvicorn.error")


def _error_message(response: requests.Response, fallback: str) -> str:
    try:
        body = response.json()
    except ValueError:
        return fallback
    if not isinstance(body, dict):
        return fallback
    for key in ("error_description", "msg", "message", "error"):
        value = body.get(key)
        if isinstance(value, str) and value:
            return value
    return fallback


def _filter_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


def _json_value(value: Any) -> Any:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return f"{value.isoformat()}+00:00"
        return value.isoformat()
    return value


class _RestClient:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float,
        http: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.http = http or requests.Session()

    def _headers(self, bearer: str | None = None, **extra: str) -> dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {bearer or self.api_key}",
        }
        headers.update(extra)
        return headers


class RestRepository(_RestClient, Repository):
    """Talks to the ``/rest/v1`` table API."""

    def select(
        self,
        table: str,
        filters: dict[str, Any] | None = None,
        order: Order | None = None,
    ) -> list[Row]:
        if table not in TABLES:
            raise RepoError(f"Unknown table {table!r}")
        params: dict[str, str] = {"select": "*"}
        for column, value in (filters or {}).items():
            operator = "is" if value is None else "eq"
            params[column] = f"{operator}.{_filter_value(value)}"
        if order is not None:
            direction = "desc" if order.descending else "asc"
            params["order"] = f"{order.column}.{direction}"
        try:
            response = self.http.get(
                f"{self.base_url}/rest/v1/{table}",
                params=params,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error("Select on %s failed: %s", table, exc)
            raise TransportError(f"Could not read {table}") from exc
        if response.status_code >= 400:
            message = _error_message(response, f"Could not read {table}")
            logger.error(
                "Select on %s returned %s: %s", table, response.status_code, message
            )
            raise TransportError(message)
        try:
            rows = response.json()
        except ValueError as exc:
            raise TransportError(f"Unreadable response for {table}") from exc
        if not isinstance(rows, list):
            raise TransportError(f"Unexpected response shape for {table}")
        return rows

    def insert(self, table: str, row: Row) -> None:
        if table not in TABLES:
            raise RepoError(f"Unknown table {table!r}")
        payload = {
            key: _json_value(value) for key, value in row.items() if key != "id"
        }
        try:
            response = self.http.post(
                f"{self.base_url}/rest/v1/{table}",
                json=[payload],
                headers=self._headers(Prefer="return=minimal"),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error("Insert into %s failed: %s", table, exc)
            raise TransportError(f"Could not write to {table}") from exc
        if response.status_code >= 500:
            raise TransportError(_error_message(response, f"Could not write to {table}"))
        if response.status_code >= 400:
            message = _error_message(response, f"The {table} row was rejected")
            logger.error("Insert into %s rejected: %s", table, message)
            raise RepoError(message)


class RestAuthBackend(_RestClient, AuthBackend):
    """Talks to the ``/auth/v1`` endpoints."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float,
        http: requests.Session | None = None,
    ) -> None:
        _RestClient.__init__(self, base_url, api_key, timeout=timeout, http=http)
        AuthBackend.__init__(self, api_key)

    def password_grant(self, email: str, password: str) -> AuthSession:
        try:
            response = self.http.post(
                f"{self.base_url}/auth/v1/token",
                params={"grant_type": "password"},
                json={"email": email, "password": password},
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise AuthError(
                "Sign-in is unavailable right now", code=ErrorCode.AUTH_UNAVAILABLE
            ) from exc
        if response.status_code >= 500:
            raise AuthError(
                "Sign-in is unavailable right now", code=ErrorCode.AUTH_UNAVAILABLE
            )
        if response.status_code >= 400:
            raise AuthError(_error_message(response, "Invalid login credentials"))
        try:
            body = response.json()
            user = body.get("user") or {}
            expires_in = body.get("expires_in")
            return AuthSession(
                user_id=str(user.get("id", "")),
                email=user.get("email") or email,
                access_token=body["access_token"],
                expires_at=(
                    utcnow() + timedelta(seconds=int(expires_in))
                    if expires_in
                    else None
                ),
            )
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.error("Unreadable sign-in response: %s", exc)
            raise AuthError(
                "Sign-in is unavailable right now", code=ErrorCode.AUTH_UNAVAILABLE
            ) from exc

    def fetch_session(self, token: str) -> AuthSession | None:
        try:
            response = self.http.get(
                f"{self.base_url}/auth/v1/user",
                headers=self._headers(bearer=token),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise AuthError(
                "Session lookup failed", code=ErrorCode.AUTH_UNAVAILABLE
            ) from exc
        if response.status_code in (401, 403):
            return None
        if response.status_code >= 400:
            raise AuthError("Session lookup failed", code=ErrorCode.AUTH_UNAVAILABLE)
        try:
            user = response.json()
            return AuthSession(
                user_id=str(user["id"]),
                email=user.get("email") or "",
                access_token=token,
            )
        except (KeyError, TypeError, ValueError) as exc:
            logger.error("Unreadable session lookup response: %s", exc)
            raise AuthError(
                "Session lookup failed", code=ErrorCode.AUTH_UNAVAILABLE
            ) from exc

    def revoke(self, token: str) -> None:
        try:
            response = self.http.post(
                f"{self.base_url}/auth/v1/logout",
                headers=self._headers(bearer=token),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise AuthError("Sign-out failed", code=ErrorCode.AUTH_UNAVAILABLE) from exc
        # 401/403: the token is already invalid.
        if response.status_code >= 400 and response.status_code not in (401, 403):
            raise AuthError(
                _error_message(response, "Sign-out failed"),
                code=ErrorCode.AUTH_UNAVAILABLE,
            )
