"""Fetch the members registered for a single event."""

from __future__ import annotations

import logging
from typing import List

from .api import EventboardAPI
from .errors import APIError, FetchFailed
from .events import require_session
from .models import RegistrationMember
from .sessions import SessionStore

logger = logging.getLogger("eventboard.members")


class RegisteredMembersService:
    def __init__(self, api: EventboardAPI, sessions: SessionStore) -> None:
        self._api = api
        self._sessions = sessions

    async def fetch_members(self, event_id: str) -> List[RegistrationMember]:
        session = require_session(self._sessions, "Please login to view registered users.")
        try:
            payload = await self._api.registered_users(session.token, event_id)
        except APIError as exc:
            raise FetchFailed(exc.message, status_code=exc.status_code) from exc

        if payload is None:
            return []
        raw_users = payload.get("users") if isinstance(payload, dict) else payload
        if raw_users is None:
            return []
        if not isinstance(raw_users, list):
            logger.warning("Unexpected member list for event %s: %r", event_id, payload)
            raise FetchFailed()
        try:
            return [RegistrationMember.from_payload(item) for item in raw_users]
        except ValueError as exc:
            logger.warning("Malformed member for event %s: %s", event_id, exc)
            raise FetchFailed() from exc


__all__ = ["RegisteredMembersService"]
