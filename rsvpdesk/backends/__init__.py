"""Repository and auth backends selected from the configured repository URL."""

from __future__ import annotations

from ..config import Settings
from .interfaces import AuthBackend, Order, Repository, Row, token_digest


def build_backends(settings: Settings) -> tuple[Repository, AuthBackend]:
    if settings.backend == "rest":
        from .rest import RestAuthBackend, RestRepository

        return (
            RestRepository(
                settings.repository_url,
                settings.repository_key,
                timeout=settings.request_timeout_seconds,
            ),
            RestAuthBackend(
                settings.repository_url,
                settings.repository_key,
                timeout=settings.request_timeout_seconds,
            ),
        )

    from .sql import SqlAuthBackend, SqlRepository

    return (
        SqlRepository(),
        SqlAuthBackend(settings.repository_key, ttl=settings.session_ttl),
    )


__all__ = [
    "AuthBackend",
    "Order",
    "Repository",
    "Row",
    "build_backends",
    "token_digest",
]
