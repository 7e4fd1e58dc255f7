from __future__ import annotations

from dataclasses import replace
from datetime import datetime

import pytest
import requests

from rsvpdesk.backends import build_backends
from rsvpdesk.backends.interfaces import Order
from rsvpdesk.backends.rest import RestAuthBackend, RestRepository
from rsvpdesk.backends.sql import SqlAuthBackend, SqlRepository
from rsvpdesk.config import settings
from rsvpdesk.errors import AuthError, ErrorCode, RepoError, TransportError

BASE_URL = "https://project.supabase.example"


class FakeResponse:
    def __init__(self, status_code: int = 200, body=None) -> None:
        self.status_code = status_code
        self._body = body

    def json(self):
        if self._body is None:
            raise ValueError("No JSON body")
        return self._body


class FakeHttp:
    """Stands in for ``requests.Session`` and records every call."""

    def __init__(self, *responses) -> None:
        self.responses = list(responses)
        self.calls: list[tuple[str, str, dict]] = []

    def _next(self, method, url, kwargs):
        self.calls.append((method, url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def get(self, url, **kwargs):
        return self._next("GET", url, kwargs)

    def post(self, url, **kwargs):
        return self._next("POST", url, kwargs)


def _repo(*responses):
    http = FakeHttp(*responses)
    return RestRepository(BASE_URL + "/", "anon-key", timeout=3.0, http=http), http


def _auth(*responses):
    http = FakeHttp(*responses)
    return RestAuthBackend(BASE_URL, "anon-key", timeout=3.0, http=http), http


def test_select_sends_filters_order_and_key():
    repo, http = _repo(FakeResponse(200, [{"id": 1, "title": "Gala"}]))

    rows = repo.select("rsvps", {"event_id": "42"}, Order("created_at"))

    assert rows == [{"id": 1, "title": "Gala"}]
    ((method, url, kwargs),) = http.calls
    assert method == "GET"
    assert url == f"{BASE_URL}/rest/v1/rsvps"
    assert kwargs["params"] == {
        "select": "*",
        "event_id": "eq.42",
        "order": "created_at.asc",
    }
    assert kwargs["headers"]["apikey"] == "anon-key"
    assert kwargs["headers"]["Authorization"] == "Bearer anon-key"
    assert kwargs["timeout"] == 3.0


@pytest.mark.parametrize(
    "response",
    [
        FakeResponse(503, {"message": "upstream down"}),
        FakeResponse(200, {"not": "a list"}),
        FakeResponse(200, None),
        requests.ConnectionError("refused"),
    ],
)
def test_select_failures_are_transport_errors(response):
    repo, _ = _repo(response)

    with pytest.raises(TransportError):
        repo.select("events")


def test_insert_posts_one_row_without_id():
    repo, http = _repo(FakeResponse(201))

    repo.insert(
        "events",
        {"id": "ignored", "title": "Gala", "date_time": datetime(2031, 1, 1, 18, 0)},
    )

    ((method, url, kwargs),) = http.calls
    assert method == "POST"
    assert url == f"{BASE_URL}/rest/v1/events"
    assert kwargs["json"] == [{"title": "Gala", "date_time": "2031-01-01T18:00:00+00:00"}]
    assert kwargs["headers"]["Prefer"] == "return=minimal"


def test_rejected_insert_is_a_repo_error():
    repo, _ = _repo(FakeResponse(409, {"message": "duplicate key value"}))

    with pytest.raises(RepoError) as excinfo:
        repo.insert("rsvps", {"name": "Ana"})

    assert type(excinfo.value) is RepoError
    assert excinfo.value.message == "duplicate key value"


def test_unknown_table_is_refused_without_a_request():
    repo, http = _repo()

    with pytest.raises(RepoError):
        repo.select("organizers")
    assert http.calls == []


def test_password_grant_builds_a_session():
    auth, http = _auth(
        FakeResponse(
            200,
            {
                "access_token": "jwt-token",
                "expires_in": 3600,
                "user": {"id": "user-1", "email": "organizer@example.com"},
            },
        )
    )

    session = auth.password_grant("organizer@example.com", "secret")

    assert session.access_token == "jwt-token"
    assert session.user_id == "user-1"
    assert session.expires_at is not None
    ((_, url, kwargs),) = http.calls
    assert url == f"{BASE_URL}/auth/v1/token"
    assert kwargs["params"] == {"grant_type": "password"}
    assert kwargs["json"] == {"email": "organizer@example.com", "password": "secret"}


def test_password_grant_errors():
    auth, _ = _auth(
        FakeResponse(400, {"error_description": "Invalid login credentials"}),
        FakeResponse(502),
        requests.Timeout("slow"),
    )

    with pytest.raises(AuthError) as invalid:
        auth.password_grant("organizer@example.com", "nope")
    assert invalid.value.code is ErrorCode.AUTH_INVALID_CREDENTIALS
    assert invalid.value.message == "Invalid login credentials"

    for _ in range(2):
        with pytest.raises(AuthError) as unavailable:
            auth.password_grant("organizer@example.com", "secret")
        assert unavailable.value.code is ErrorCode.AUTH_UNAVAILABLE


def test_fetch_session_uses_the_access_token():
    auth, http = _auth(
        FakeResponse(200, {"id": "user-1", "email": "organizer@example.com"}),
        FakeResponse(401, {"msg": "JWT expired"}),
    )

    session = auth.fetch_session("jwt-token")
    assert session.email == "organizer@example.com"
    assert http.calls[0][2]["headers"]["Authorization"] == "Bearer jwt-token"

    assert auth.fetch_session("expired-token") is None


@pytest.mark.parametrize(
    "response",
    [
        FakeResponse(200, None),
        FakeResponse(200, {}),
        FakeResponse(200, {"error": "weird"}),
        FakeResponse(200, ["not", "an", "object"]),
    ],
)
def test_unreadable_sign_in_reply_is_unavailable(response):
    auth, _ = _auth(response)

    with pytest.raises(AuthError) as excinfo:
        auth.password_grant("organizer@example.com", "secret")

    assert excinfo.value.code is ErrorCode.AUTH_UNAVAILABLE


@pytest.mark.parametrize(
    "response",
    [FakeResponse(200, None), FakeResponse(200, {}), FakeResponse(200, [1, 2])],
)
def test_unreadable_session_lookup_is_unavailable(response):
    auth, _ = _auth(response)

    with pytest.raises(AuthError) as excinfo:
        auth.fetch_session("jwt-token")

    assert excinfo.value.code is ErrorCode.AUTH_UNAVAILABLE


def test_missing_email_in_sign_in_reply_falls_back_to_the_login():
    auth, _ = _auth(
        FakeResponse(200, {"access_token": "jwt-token", "user": {"id": "u", "email": None}})
    )

    session = auth.password_grant("organizer@example.com", "secret")

    assert session.email == "organizer@example.com"
    assert session.expires_at is None


def test_revoke_tolerates_already_invalid_tokens():
    auth, _ = _auth(FakeResponse(204), FakeResponse(401), FakeResponse(500))

    auth.revoke("jwt-token")
    auth.revoke("jwt-token")
    with pytest.raises(AuthError):
        auth.revoke("jwt-token")


def test_build_backends_follows_the_repository_url():
    rest_settings = replace(settings, repository_url=BASE_URL)

    repository, auth_backend = build_backends(rest_settings)
    assert isinstance(repository, RestRepository)
    assert isinstance(auth_backend, RestAuthBackend)

    repository, auth_backend = build_backends(settings)
    assert isinstance(repository, SqlRepository)
    assert isinstance(auth_backend, SqlAuthBackend)
