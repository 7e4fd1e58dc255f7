"""Typed entities decoded from Repository and Session Store rows."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Mapping, TypeVar

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from .errors import RowDecodeError
from .utils import to_naive_utc

ResponseValue = Literal["yes", "no", "maybe"]
RESPONSES: tuple[str, ...] = ("yes", "no", "maybe")


class _Entity(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


class Event(_Entity):
    id: str
    title: str
    date_time: datetime
    location: str = ""
    description: str = ""
    allow_plus_one: bool = False

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value

    @field_validator("location", "description", mode="before")
    @classmethod
    def _blank_text(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("date_time")
    @classmethod
    def _naive_utc(cls, value: datetime) -> datetime:
        return to_naive_utc(value)


class RSVP(_Entity):
    id: str
    event_id: str
    name: str
    email: str
    response: ResponseValue
    plus_one: bool = Field(
        default=False,
        validation_alias=AliasChoices("plus_one", "will_bring_plus_one"),
    )
    dietary_preferences: str = ""

    @field_validator("id", "event_id", mode="before")
    @classmethod
    def _stringify_ids(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value

    @field_validator("plus_one", mode="before")
    @classmethod
    def _null_is_false(cls, value: Any) -> Any:
        return False if value is None else value

    @field_validator("dietary_preferences", mode="before")
    @classmethod
    def _blank_text(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def attending(self) -> bool:
        return self.response == "yes"


class AuthSession(_Entity):
    """The Session Store's view of a signed-in organizer."""

    user_id: str
    email: str
    access_token: str
    expires_at: datetime | None = None

    @field_validator("expires_at")
    @classmethod
    def _naive_utc(cls, value: datetime | None) -> datetime | None:
        return to_naive_utc(value)

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now


EntityT = TypeVar("EntityT", bound=_Entity)


def decode_row(model: type[EntityT], table: str, row: Mapping[str, Any]) -> EntityT:
    """Map one loosely typed row into ``model`` or raise ``RowDecodeError``."""
    try:
        return model.model_validate(dict(row))
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or '<row>'}: {error['msg']}"
            for error in exc.errors()
        )
        raise RowDecodeError(table, problems) from exc
    except (TypeError, ValueError) as exc:
        raise RowDecodeError(table, f"expected a mapping, got {type(row).__name__}") from exc


def decode_rows(
    model: type[EntityT], table: str, rows: list[Mapping[str, Any]]
) -> list[EntityT]:
    return [decode_row(model, table, row) for row in rows]
