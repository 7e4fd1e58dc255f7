"""Shared web helpers and the simpler page routes."""

from __future__ import annotations

from pathlib import Path

from fastapi import Request, Response
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from .auth import SessionClient
from .backends.interfaces import Repository
from .config import settings
from .entities import RESPONSES, AuthSession
from .gate import load_gated
from .utils import format_when, humanize_time, utcnow

templates = Jinja2Templates(directory=Path(__file__).parent / "templates")
templates.env.filters["relative_time"] = humanize_time
templates.env.filters["when"] = format_when

THANK_YOU_MESSAGES = {
    "yes": (
        "Thank you for your RSVP!",
        "We're excited to see you at the event. Your response has been recorded.",
    ),
    "maybe": (
        "Thanks for letting us know",
        "We've noted you as a maybe. RSVP again once your plans are settled.",
    ),
    "no": (
        "Thank you for letting us know",
        "We're sorry you can't make it, but we appreciate your response.",
    ),
}


def repository(request: Request) -> Repository:
    return request.app.state.repository


def session_client(request: Request) -> SessionClient:
    """A Session Store client bound to the visitor's session cookie."""
    token = request.cookies.get(settings.session_cookie_name)
    return SessionClient(
        request.app.state.auth_backend, request.app.state.session_hub, token
    )


def set_session_cookie(response: Response, session: AuthSession) -> None:
    max_age = None
    if session.expires_at is not None:
        max_age = max(int((session.expires_at - utcnow()).total_seconds()), 0)
    response.set_cookie(
        settings.session_cookie_name,
        session.access_token,
        max_age=max_age,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(settings.session_cookie_name)


def redirect(location: str, *, clear_session: bool = False) -> RedirectResponse:
    response = RedirectResponse(url=location, status_code=303)
    if clear_session:
        clear_session_cookie(response)
    return response


def analytics(request: Request):
    """Render the analytics placeholder for signed-in organizers."""
    loaded = load_gated(session_client(request), lambda user: user)
    if not loaded.authenticated:
        return redirect(loaded.redirect_to or "/", clear_session=True)
    return templates.TemplateResponse(
        request,
        "analytics.html",
        {"request": request, "user": loaded.user, "active_nav": "analytics"},
    )


def thank_you(request: Request, response: str | None = None):
    """Render the RSVP confirmation, tailored to the submitted response."""
    normalized = (response or "").strip().lower()
    if normalized not in RESPONSES:
        normalized = "no"
    title, message = THANK_YOU_MESSAGES[normalized]
    return templates.TemplateResponse(
        request,
        "thank_you.html",
        {
            "request": request,
            "response": normalized,
            "attending": normalized == "yes",
            "title": title,
            "message": message,
        },
    )


def register_web_routes(app):
    """Register web routes on the FastAPI app."""
    app.get("/admin/analytics", response_class=HTMLResponse)(analytics)
    app.get("/thank-you", response_class=HTMLResponse)(thank_you)
