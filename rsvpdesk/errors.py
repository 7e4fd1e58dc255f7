"""Error taxonomy shared by the backends and the web layer."""

from __future__ import annotations

from enum import Enum


class ErrorCode(Enum):
    """Stable error codes, also used in JSON error bodies."""

    AUTH_INVALID_CREDENTIALS = "AUTH_INVALID_CREDENTIALS"
    AUTH_SESSION_EXPIRED = "AUTH_SESSION_EXPIRED"
    AUTH_UNAVAILABLE = "AUTH_UNAVAILABLE"
    NOT_FOUND = "NOT_FOUND"
    TRANSPORT = "TRANSPORT"
    DECODE = "DECODE"


class RSVPDeskError(Exception):
    """Base error carrying a code and a user-safe message."""

    code: ErrorCode = ErrorCode.TRANSPORT

    def __init__(self, message: str, *, code: ErrorCode | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class AuthError(RSVPDeskError):
    """Invalid credentials, expired session, or an unreachable auth service."""

    code = ErrorCode.AUTH_INVALID_CREDENTIALS


class RepoError(RSVPDeskError):
    """Any failure reported by the Repository."""

    code = ErrorCode.TRANSPORT


class NotFoundError(RepoError):
    """Raised when a queried row does not exist."""

    code = ErrorCode.NOT_FOUND

    def __init__(self, table: str, row_id: str) -> None:
        super().__init__(f"No {table} row with id {row_id!r}")
        self.table = table
        self.row_id = row_id


class TransportError(RepoError):
    """Connection failures and unexpected responses from the Repository."""

    code = ErrorCode.TRANSPORT


class RowDecodeError(RepoError):
    """A row returned by the Repository does not match the entity shape."""

    code = ErrorCode.DECODE

    def __init__(self, table: str, detail: str) -> None:
        super().__init__(f"Malformed {table} row: {detail}")
        self.table = table
        self.detail = detail
