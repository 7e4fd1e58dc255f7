"""Global configuration for RSVP Desk."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any, Callable

REQUIRED_KEYS = ("repository_url", "repository_key")

DEFAULTS: dict[str, Any] = {
    "repository_url": None,
    "repository_key": None,
    "admin_events_per_page": 8,
    "session_ttl_hours": 12,
    "session_sweep_minutes": 15,
    "session_cookie_name": "rsvpdesk_session",
    "cookie_secure": False,
    "request_timeout_seconds": 10.0,
    "enable_scheduler": True,
    "seed_events": 12,
    "seed_rsvps_per_event": 6,
    "app_host": "0.0.0.0",
    "app_port": 8000,
}

TYPE_CASTERS: dict[str, Callable[[Any], Any]] = {
    "repository_url": str,
    "repository_key": str,
    "admin_events_per_page": int,
    "session_ttl_hours": int,
    "session_sweep_minutes": int,
    "session_cookie_name": str,
    "cookie_secure": bool,
    "request_timeout_seconds": float,
    "enable_scheduler": bool,
    "seed_events": int,
    "seed_rsvps_per_event": int,
    "app_host": str,
    "app_port": int,
}


class ConfigError(RuntimeError):
    """Raised when required configuration is missing or malformed."""


@dataclass(frozen=True)
class Settings:
    base_dir: Path
    repository_url: str
    repository_key: str
    admin_events_per_page: int
    session_ttl_hours: int
    session_sweep_minutes: int
    session_cookie_name: str
    cookie_secure: bool
    request_timeout_seconds: float
    enable_scheduler: bool
    seed_events: int
    seed_rsvps_per_event: int
    app_host: str
    app_port: int
    config_path: Path

    @property
    def backend(self) -> str:
        """``rest`` for hosted HTTP endpoints, ``sql`` for SQLAlchemy URLs."""
        if self.repository_url.lower().startswith(("http://", "https://")):
            return "rest"
        return "sql"

    @property
    def database_url(self) -> str | None:
        return self.repository_url if self.backend == "sql" else None

    @property
    def session_ttl(self) -> timedelta:
        return timedelta(hours=self.session_ttl_hours)


def _boolify(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    raise ValueError(f"Cannot parse boolean value from {value!r}")


def _cast_value(key: str, value: Any) -> Any:
    if key not in TYPE_CASTERS:
        return value
    caster = TYPE_CASTERS[key]
    try:
        if caster is bool:
            return _boolify(value)
        return caster(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid value for {key}: {value!r}") from exc


def _load_toml_config(config_path: Path) -> dict[str, Any]:
    if not config_path.exists():
        return {}
    with config_path.open("rb") as handle:
        return tomllib.load(handle)


def _config_layered_value(key: str, *, toml_config: dict[str, Any]) -> Any:
    env_key = f"RSVPDESK_{key.upper()}"
    if env_key in os.environ:
        return _cast_value(key, os.environ[env_key])
    if key in toml_config:
        return _cast_value(key, toml_config[key])
    return DEFAULTS[key]


def load_settings(config_override: Path | None = None) -> Settings:
    base_dir = Path(os.getenv("RSVPDESK_BASE_DIR", Path.cwd()))
    env_config = os.getenv("RSVPDESK_CONFIG")
    config_path = Path(config_override or env_config or base_dir / "rsvpdesk.toml")
    toml_config = _load_toml_config(config_path)

    values = {
        key: _config_layered_value(key, toml_config=toml_config) for key in DEFAULTS
    }
    missing = [
        key for key in REQUIRED_KEYS if not (values[key] or "").strip()
    ]
    if missing:
        names = ", ".join(f"RSVPDESK_{key.upper()}" for key in missing)
        raise ConfigError(
            f"Missing required configuration: {names} "
            f"(set the environment variables or add them to {config_path})"
        )
    values["repository_url"] = values["repository_url"].strip()
    values["repository_key"] = values["repository_key"].strip()
    if values["admin_events_per_page"] < 1:
        raise ConfigError("admin_events_per_page must be at least 1")

    return Settings(base_dir=base_dir, config_path=config_path, **values)


def settings_as_dict(settings: Settings) -> dict[str, Any]:
    """Return a printable view of the settings with the API key masked."""
    key = settings.repository_key
    return {
        "base_dir": str(settings.base_dir),
        "config_path": str(settings.config_path),
        "backend": settings.backend,
        "repository_url": settings.repository_url,
        "repository_key": f"{key[:4]}…" if len(key) > 4 else "****",
        "admin_events_per_page": settings.admin_events_per_page,
        "session_ttl_hours": settings.session_ttl_hours,
        "session_sweep_minutes": settings.session_sweep_minutes,
        "session_cookie_name": settings.session_cookie_name,
        "cookie_secure": settings.cookie_secure,
        "request_timeout_seconds": settings.request_timeout_seconds,
        "enable_scheduler": settings.enable_scheduler,
        "seed_events": settings.seed_events,
        "seed_rsvps_per_event": settings.seed_rsvps_per_event,
        "app_host": settings.app_host,
        "app_port": settings.app_port,
    }


settings = load_settings()
