"""APScheduler integration."""

from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from .auth import SessionChange, SessionHub
from .backends.interfaces import AuthBackend
from .config import settings
from .utils import utcnow

logger = logging.getLogger("uvicorn.error")

_scheduler: BackgroundScheduler | None = None


def purge_expired_sessions(backend: AuthBackend, hub: SessionHub) -> int:
    """Delete expired sessions and tell any open gates they are signed out."""
    expired = backend.purge_expired(utcnow())
    for key in expired:
        hub.publish(key, SessionChange("SIGNED_OUT", None))
    if expired:
        logger.info("Purged %d expired organizer sessions", len(expired))
    return len(expired)


def start_scheduler(backend: AuthBackend, hub: SessionHub) -> BackgroundScheduler:
    global _scheduler
    if _scheduler and _scheduler.running:
        return _scheduler
    scheduler = BackgroundScheduler(timezone="UTC")
    scheduler.add_job(
        purge_expired_sessions,
        "interval",
        args=(backend, hub),
        minutes=settings.session_sweep_minutes,
        id="session-sweep",
        max_instances=1,
        replace_existing=True,
    )
    scheduler.start()
    _scheduler = scheduler
    return scheduler


def stop_scheduler() -> None:
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
        _scheduler = None
