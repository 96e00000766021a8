"""Event query and mutation services used by the dashboard."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional, Union

from .api import EventboardAPI
from .errors import APIError, CreateFailed, QueryFailed, RegisterFailed, Unauthenticated
from .models import CreateEventForm, Event, EventPage, Session, ValidationErrors
from .sessions import SessionStore
from .validation import parse_participants, validate_event_form

logger = logging.getLogger("eventboard.events")

DEFAULT_PAGE_SIZE = 10

CreateResult = Union[Event, ValidationErrors]


def require_session(store: SessionStore, message: str | None = None) -> Session:
    """Return the current session or raise :class:`Unauthenticated`."""

    session = store.get_session()
    if session is None:
        raise Unauthenticated(message)
    return session


def _parse_total_pages(value: object) -> int:
    try:
        total = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 1
    return max(total, 1)


class EventQueryService:
    """Issue paginated, filtered event queries."""

    def __init__(self, api: EventboardAPI, sessions: SessionStore) -> None:
        self._api = api
        self._sessions = sessions

    async def query_events(
        self,
        page: int,
        page_size: int = DEFAULT_PAGE_SIZE,
        search_text: str = "",
    ) -> EventPage:
        if page < 1:
            raise ValueError("page must be at least 1")
        if page_size < 1:
            raise ValueError("page_size must be at least 1")

        try:
            payload = await self._api.list_events(
                page=page,
                limit=page_size,
                search=search_text,
                token=self._sessions.get_token(),
            )
        except APIError as exc:
            raise QueryFailed(exc.message, status_code=exc.status_code) from exc

        raw_events = (payload.get("events") or []) if isinstance(payload, dict) else None
        if not isinstance(raw_events, list):
            logger.warning("Unexpected event listing: %r", payload)
            raise QueryFailed()
        try:
            items = tuple(Event.from_payload(item) for item in raw_events)
        except ValueError as exc:
            logger.warning("Malformed event in listing: %s", exc)
            raise QueryFailed() from exc

        return EventPage(
            items=items,
            page=page,
            total_pages=_parse_total_pages(payload.get("totalPages")),
        )


class EventMutationService:
    """Create events and register the current user for them."""

    def __init__(self, api: EventboardAPI, sessions: SessionStore) -> None:
        self._api = api
        self._sessions = sessions

    async def create_event(
        self,
        draft: CreateEventForm,
        created_by: str | None = None,
        *,
        now: datetime | None = None,
    ) -> CreateResult:
        """Validate ``draft`` and create the event.

        Returns the :class:`ValidationErrors` without touching the network
        when any field is invalid, otherwise the created :class:`Event`.
        """

        errors = validate_event_form(draft, now=now)
        if errors:
            return errors

        session = require_session(self._sessions, "Please login to create an event.")
        payload: Dict[str, Any] = {
            "title": draft.title.strip(),
            "description": draft.description.strip(),
            "date": draft.date.strip(),
            "location": draft.location.strip(),
            "maxParticipants": parse_participants(draft.max_participants),
            "createdBy": created_by or session.user_id,
        }

        try:
            created = await self._api.create_event(session.token, payload)
        except APIError as exc:
            raise CreateFailed(exc.message, status_code=exc.status_code) from exc

        if isinstance(created, dict) and isinstance(created.get("event"), dict):
            created = created["event"]
        try:
            event = Event.from_payload(created)
        except ValueError as exc:
            logger.warning("Malformed event in create response: %s", exc)
            raise CreateFailed() from exc
        logger.info("Created event %s (%s)", event.id, event.title)
        return event

    async def register_for_event(self, event_id: str, user_id: str | None = None) -> Optional[str]:
        """Register a user for an event and return the server's message, if any."""

        session = require_session(self._sessions, "Please login to register for the event.")
        try:
            result = await self._api.register_for_event(
                session.token, event_id, user_id or session.user_id
            )
        except APIError as exc:
            raise RegisterFailed(exc.message, status_code=exc.status_code) from exc

        logger.info("Registered user %s for event %s", user_id or session.user_id, event_id)
        if isinstance(result, dict):
            message = result.get("message")
            if isinstance(message, str) and message.strip():
                return message.strip()
        return None


__all__ = [
    "CreateResult",
    "DEFAULT_PAGE_SIZE",
    "EventMutationService",
    "EventQueryService",
    "require_session",
]
