"""Data contracts shared by the dashboard controller and its services."""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field, fields
from datetime import date, datetime, timezone
from typing import Any, Dict, Mapping, Optional, Tuple


def parse_timestamp(value: object) -> Optional[datetime]:
    """Parse an ISO-8601 date or timestamp into an aware UTC-based ``datetime``.

    Date-only values are read as midnight UTC and naive timestamps as UTC.
    Returns ``None`` for empty input and raises :class:`ValueError` for text
    that is not ISO-8601.
    """

    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _optional_text(value: object) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _reference_id(value: object) -> Optional[str]:
    if isinstance(value, Mapping):
        value = value.get("_id") or value.get("id")
    return _optional_text(value)


def _optional_int(value: object) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class Session:
    """The authenticated identity used for protected requests."""

    token: str
    user_id: str


@dataclass(frozen=True)
class Event:
    """An event as returned by the backend."""

    id: str
    title: str
    description: str = ""
    date: Optional[datetime] = None
    location: str = ""
    max_participants: Optional[int] = None
    created_by: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Event":
        if not isinstance(payload, Mapping):
            raise ValueError("Event payload must be an object")
        event_id = _reference_id(payload.get("_id") or payload.get("id"))
        if event_id is None:
            raise ValueError("Event payload is missing an identifier")
        title = payload.get("title")
        if title is None:
            raise ValueError(f"Event {event_id} is missing a title")
        try:
            when = parse_timestamp(payload.get("date"))
        except ValueError:
            when = None
        return cls(
            id=event_id,
            title=str(title),
            description=str(payload.get("description") or ""),
            date=when,
            location=str(payload.get("location") or ""),
            max_participants=_optional_int(payload.get("maxParticipants")),
            created_by=_reference_id(payload.get("createdBy")),
        )


@dataclass(frozen=True)
class EventPage:
    """One page of a server-paginated event listing."""

    items: Tuple[Event, ...]
    page: int
    total_pages: int

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError("Page numbers start at 1")
        if self.total_pages < 1:
            object.__setattr__(self, "total_pages", 1)


@dataclass(frozen=True)
class RegistrationMember:
    id: str
    name: str
    email: str

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "RegistrationMember":
        if not isinstance(payload, Mapping):
            raise ValueError("Member payload must be an object")
        member_id = _reference_id(payload.get("_id") or payload.get("id"))
        if member_id is None:
            raise ValueError("Member payload is missing an identifier")
        return cls(
            id=member_id,
            name=str(payload.get("name") or ""),
            email=str(payload.get("email") or ""),
        )


# Maps backend field names onto form attribute names.
FORM_WIRE_NAMES: Dict[str, str] = {
    "title": "title",
    "description": "description",
    "date": "date",
    "location": "location",
    "maxParticipants": "max_participants",
}


@dataclass
class CreateEventForm:
    """Draft of the create-event form as typed by the user."""

    title: str = ""
    description: str = ""
    date: str = ""
    location: str = ""
    max_participants: str = ""

    def update(self, name: str, value: object) -> None:
        attribute = FORM_WIRE_NAMES.get(name, name)
        if attribute not in FORM_WIRE_NAMES.values():
            raise KeyError(f"Unknown form field '{name}'")
        setattr(self, attribute, "" if value is None else str(value))


@dataclass
class ValidationErrors:
    """Per-field messages for the create-event form."""

    title: Optional[str] = None
    date: Optional[str] = None
    location: Optional[str] = None
    max_participants: Optional[str] = None

    def __bool__(self) -> bool:
        return any(getattr(self, item.name) for item in fields(self))

    def as_dict(self) -> Dict[str, str]:
        wire = {attribute: name for name, attribute in FORM_WIRE_NAMES.items()}
        return {
            wire[item.name]: getattr(self, item.name)
            for item in fields(self)
            if getattr(self, item.name)
        }


_notice_ids = itertools.count(1)


@dataclass(frozen=True)
class Notice:
    """A transient message shown to the user until dismissed."""

    level: str
    message: str
    id: int = field(default_factory=lambda: next(_notice_ids))


__all__ = [
    "CreateEventForm",
    "Event",
    "EventPage",
    "FORM_WIRE_NAMES",
    "Notice",
    "RegistrationMember",
    "Session",
    "ValidationErrors",
    "parse_timestamp",
]
