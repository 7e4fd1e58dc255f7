"""FastAPI application for RSVP Desk."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from importlib.metadata import PackageNotFoundError, version as pkg_version
from pathlib import Path
import tomllib

from fastapi import FastAPI, Form, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import crud
from .auth import SessionHub
from .backends import build_backends
from .config import settings
from .errors import AuthError, ErrorCode, NotFoundError, RepoError, RowDecodeError
from .forms import EventForm, RSVPForm, submit_event, submit_rsvp
from .gate import load_gated
from .scheduler import start_scheduler, stop_scheduler
from .storage import init_db
from .viewmodel import TABS, AdminListState, derive_view, rsvp_counts
from .web import (
    clear_session_cookie,
    redirect,
    register_web_routes,
    repository,
    session_client,
    set_session_cookie,
    templates,
)

# Use uvicorn's error logger so messages get the level prefix in the default log
# format.
logger = logging.getLogger("uvicorn.error")


def _load_app_version() -> str:
    """Return the current package version, falling back to pyproject for dev runs."""
    try:
        return pkg_version("rsvpdesk")
    except PackageNotFoundError:
        pyproject_path = Path(__file__).resolve().parent.parent / "pyproject.toml"
        if pyproject_path.exists():
            data = tomllib.loads(pyproject_path.read_text())
            project = data.get("project") or {}
            return str(project.get("version") or "dev")
    return "dev"


APP_VERSION = _load_app_version()


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    if settings.enable_scheduler:
        start_scheduler(app.state.auth_backend, app.state.session_hub)
    try:
        yield
    finally:
        stop_scheduler()


app = FastAPI(title="RSVP Desk", version=APP_VERSION, lifespan=lifespan)
app.state.repository, app.state.auth_backend = build_backends(settings)
app.state.session_hub = SessionHub()

static_dir = Path(__file__).parent / "static"
app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")

templates.env.globals["app_version"] = APP_VERSION

register_web_routes(app)


def _wants_json(request: Request) -> bool:
    accept = (request.headers.get("accept") or "").lower()
    return "application/json" in accept and "text/html" not in accept


def _back_link(request: Request) -> tuple[str, str]:
    if request.url.path.startswith("/admin"):
        return "/admin", "Back to Events"
    return "/", "Back to Home"


def _render_error(
    request: Request,
    status_code: int,
    message: str | None,
    *,
    title: str = "Something went wrong",
    retry: bool = False,
):
    back_url, back_label = _back_link(request)
    context = {
        "request": request,
        "status_code": status_code,
        "title": title,
        "error_message": message or "Something went wrong.",
        "retry_url": str(request.url) if retry and request.method == "GET" else None,
        "back_url": back_url,
        "back_label": back_label,
    }
    return templates.TemplateResponse(
        request, "error.html", context, status_code=status_code
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render HTTP errors as friendly pages unless JSON was requested."""
    if _wants_json(request):
        return JSONResponse({"detail": exc.detail}, status_code=exc.status_code)
    detail = exc.detail if isinstance(exc.detail, str) else "Something went wrong."
    if exc.status_code == 404:
        return _render_error(request, 404, detail, title="Not Found")
    return _render_error(request, exc.status_code, detail)


@app.exception_handler(RepoError)
async def repo_error_handler(request: Request, exc: RepoError):
    if isinstance(exc, NotFoundError):
        status = 404
        title = "Event Not Found"
        detail = (
            "The event you're looking for doesn't exist or has been removed. "
            "Please check the event link and try again."
        )
    elif isinstance(exc, RowDecodeError):
        logger.error(
            "Malformed data while handling %s %s: %s",
            request.method,
            request.url.path,
            exc,
        )
        status = 502
        title = "Something went wrong"
        detail = "We received data we couldn't read. Please try again later."
    else:
        logger.error(
            "Repository error on %s %s: %s", request.method, request.url.path, exc
        )
        status = 503
        title = "Something went wrong"
        detail = "We couldn't load this page right now. Please try again."
    if _wants_json(request):
        return JSONResponse(
            {"detail": detail, "code": exc.code.value}, status_code=status
        )
    return _render_error(request, status, detail, title=title, retry=status != 404)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    if _wants_json(request):
        return JSONResponse({"detail": exc.errors()}, status_code=422)
    return _render_error(
        request,
        422,
        "Some of the fields were invalid. Please double-check and try again.",
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Gracefully handle unexpected errors."""
    logger.exception(
        "Unhandled error while processing %s %s", request.method, request.url.path
    )
    if _wants_json(request):
        return JSONResponse({"detail": "Internal server error"}, status_code=500)
    return _render_error(
        request,
        500,
        "We hit a snag while processing that request. Please try again.",
        retry=True,
    )


@app.get("/healthz", include_in_schema=False)
def healthz():
    return {"status": "ok", "backend": settings.backend, "version": APP_VERSION}


@app.get("/")
def login_page(request: Request):
    client = session_client(request)
    try:
        session = client.get_current_session()
    except AuthError as exc:
        logger.error("Session check on the login page failed: %s", exc)
        session = None
    if session is not None:
        return redirect("/admin")
    response = templates.TemplateResponse(
        request, "login.html", {"request": request, "email": "", "error": None}
    )
    if client.token:
        clear_session_cookie(response)
    return response


@app.post("/login")
def login(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
):
    client = session_client(request)
    try:
        session = client.sign_in_with_password(email.strip(), password)
    except AuthError as exc:
        logger.info("Failed sign-in for %s: %s", email.strip() or "<blank>", exc)
        message = exc.message
        status_code = 503 if exc.code is ErrorCode.AUTH_UNAVAILABLE else 401
        return templates.TemplateResponse(
            request,
            "login.html",
            {"request": request, "email": email, "error": message},
            status_code=status_code,
        )
    response = redirect("/admin")
    set_session_cookie(response, session)
    return response


@app.post("/logout")
def logout(request: Request):
    client = session_client(request)
    try:
        client.sign_out()
    except AuthError as exc:
        logger.error("Sign-out failed: %s", exc)
    return redirect("/", clear_session=True)


def _dashboard_view(request: Request, state: AdminListState):
    repo = repository(request)
    events = crud.list_events(repo)
    rsvps = crud.list_rsvps(repo)
    return derive_view(
        events, rsvps, state, page_size=settings.admin_events_per_page
    )


def _render_dashboard(
    request: Request,
    *,
    user,
    view,
    form: EventForm | None = None,
    errors: dict[str, str] | None = None,
    notice: str | None = None,
    created: bool = False,
    status_code: int = 200,
):
    state = view.state
    return templates.TemplateResponse(
        request,
        "admin.html",
        {
            "request": request,
            "user": user,
            "view": view,
            "state": state,
            "tab_states": {tab: state.with_tab(tab) for tab in TABS},
            "form": form or EventForm(),
            "errors": errors or {},
            "notice": notice,
            "created": created,
            "active_nav": "events",
        },
        status_code=status_code,
    )


@app.get("/admin")
def admin_dashboard(
    request: Request,
    tab: str | None = Query(default=None),
    q: str | None = Query(default=None),
    sort: str | None = Query(default=None),
    order: str | None = Query(default=None),
    page: str | None = Query(default=None),
    created: bool = Query(default=False),
):
    state = AdminListState.from_query(tab=tab, q=q, sort=sort, order=order, page=page)
    loaded = load_gated(
        session_client(request), lambda user: _dashboard_view(request, state)
    )
    if not loaded.authenticated:
        return redirect(loaded.redirect_to or "/", clear_session=True)
    return _render_dashboard(
        request, user=loaded.user, view=loaded.data, created=created
    )


@app.post("/admin/events")
def create_event_view(
    request: Request,
    title: str = Form(""),
    date_time: str = Form(""),
    location: str = Form(""),
    description: str = Form(""),
    allow_plus_one: bool = Form(False),
    timezone_offset_minutes: int = Form(0),
):
    form = EventForm(
        title=title,
        date_time=date_time,
        timezone_offset_minutes=timezone_offset_minutes,
        location=location,
        description=description,
        allow_plus_one=allow_plus_one,
    )

    def create(user):
        result = submit_event(repository(request), form)
        if result.ok:
            return result, None
        return result, _dashboard_view(request, AdminListState())

    loaded = load_gated(session_client(request), create)
    if not loaded.authenticated:
        return redirect(loaded.redirect_to or "/", clear_session=True)
    result, view = loaded.data
    if result.ok:
        return redirect(result.redirect_to)
    return _render_dashboard(
        request,
        user=loaded.user,
        view=view,
        form=result.form,
        errors=result.errors,
        notice=result.notice,
        status_code=400 if result.errors else 503,
    )


@app.get("/admin/events/{event_id}")
def admin_event_detail(event_id: str, request: Request):
    def load(user):
        repo = repository(request)
        event = crud.get_event(repo, event_id)
        rsvps = crud.list_rsvps_for_event(repo, event.id)
        return event, rsvps

    loaded = load_gated(session_client(request), load)
    if not loaded.authenticated:
        return redirect(loaded.redirect_to or "/", clear_session=True)
    event, rsvps = loaded.data
    return templates.TemplateResponse(
        request,
        "admin_event.html",
        {
            "request": request,
            "user": loaded.user,
            "event": event,
            "rsvps": rsvps,
            "counts": rsvp_counts(rsvps),
            "active_nav": "events",
        },
    )


def _render_rsvp_page(
    request: Request,
    event,
    *,
    form: RSVPForm | None = None,
    errors: dict[str, str] | None = None,
    notice: str | None = None,
    status_code: int = 200,
):
    return templates.TemplateResponse(
        request,
        "event.html",
        {
            "request": request,
            "event": event,
            "form": form or RSVPForm(),
            "errors": errors or {},
            "notice": notice,
        },
        status_code=status_code,
    )


@app.get("/event/{event_id}")
def event_page(event_id: str, request: Request):
    event = crud.get_event(repository(request), event_id)
    return _render_rsvp_page(request, event)


@app.post("/event/{event_id}")
def submit_rsvp_view(
    event_id: str,
    request: Request,
    name: str = Form(""),
    email: str = Form(""),
    response: str = Form(""),
    plus_one: bool = Form(False),
    dietary_preferences: str = Form(""),
):
    repo = repository(request)
    event = crud.get_event(repo, event_id)
    form = RSVPForm(
        name=name,
        email=email,
        response=response,
        plus_one=plus_one,
        dietary_preferences=dietary_preferences,
    )
    result = submit_rsvp(repo, form, event)
    if result.ok:
        return redirect(result.redirect_to)
    return _render_rsvp_page(
        request,
        event,
        form=result.form,
        errors=result.errors,
        notice=result.notice,
        status_code=400 if result.errors else 503,
    )
