"""Schema management and organizer provisioning for the SQL backend."""

from __future__ import annotations

import shutil
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import inspect, select

from .backends.sql import hash_password
from .config import settings
from .database import engine, get_session
from .models import Organizer
from .utils import utcnow


class StorageError(RuntimeError):
    """Raised for SQL-only maintenance against a REST deployment."""


def _require_engine():
    if engine is None:
        raise StorageError(
            "The repository URL points at a hosted service; "
            "its schema is managed there, not by this application."
        )
    return engine


def init_db() -> None:
    if settings.backend == "sql":
        upgrade_database(make_backup=False)


def _alembic_config() -> Config:
    package_dir = Path(__file__).resolve().parent
    script_location = package_dir / "alembic"
    ini_path = script_location.parent / "alembic.ini"

    config = Config(str(ini_path)) if ini_path.exists() else Config()
    config.set_main_option("script_location", str(script_location))
    # Config values go through configparser interpolation.
    url = _require_engine().url.render_as_string(hide_password=False)
    config.set_main_option("sqlalchemy.url", url.replace("%", "%%"))
    return config


def _sqlite_file(db_engine) -> Path | None:
    if db_engine.dialect.name != "sqlite":
        return None
    database = db_engine.url.database
    if not database or database == ":memory:":
        return None
    return Path(database)


def upgrade_database(*, make_backup: bool = True) -> list[str]:
    """Upgrade the database schema in-place.

    Returns a list of applied actions.
    """
    db_engine = _require_engine()
    actions: list[str] = []
    db_path = _sqlite_file(db_engine)

    if make_backup and db_path is not None and db_path.exists():
        backup_path = db_path.with_suffix(db_path.suffix + ".bak")
        shutil.copy(db_path, backup_path)
        actions.append(f"Backup created at {backup_path}")

    inspector = inspect(db_engine)
    has_alembic = inspector.has_table("alembic_version")
    has_events = inspector.has_table("events")
    config = _alembic_config()

    if not has_alembic and not has_events:
        command.upgrade(config, "head")
        actions.append("Ran Alembic upgrade to head (fresh database)")
    elif not has_alembic:
        # Tables created outside Alembic: baseline them.
        command.stamp(config, "head")
        actions.append("Stamped existing database to Alembic head")
    else:
        command.upgrade(config, "head")
        actions.append("Applied Alembic migrations to head")

    return actions


def create_organizer(email: str, password: str) -> Organizer:
    """Create an organizer account, or reset the password of an existing one."""
    _require_engine()
    normalized = (email or "").strip().lower()
    if "@" not in normalized:
        raise ValueError("A valid email address is required")
    if len(password or "") < 8:
        raise ValueError("Passwords must be at least 8 characters")
    with get_session() as session:
        organizer = session.scalars(
            select(Organizer).where(Organizer.email == normalized)
        ).first()
        if organizer is None:
            organizer = Organizer(email=normalized, created_at=utcnow())
        organizer.password_hash = hash_password(password)
        session.add(organizer)
        session.flush()
        return organizer
