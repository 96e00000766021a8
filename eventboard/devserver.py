"""In-memory development backend implementing the event service endpoints.

The dashboard talks to a separately deployed REST service. This module
provides a small FastAPI stand-in with the same six endpoints so the client
can be exercised locally (``main.py serve-mock``) and in the test-suite
(mounted directly through :class:`httpx.ASGITransport`). State lives in
process memory and is lost on restart.
"""
from __future__ import annotations

import logging
import math
import secrets
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from fastapi import Depends, FastAPI, HTTPException, Query, status
from passlib.exc import UnknownHashError
from pydantic import BaseModel, Field, field_validator

from .models import parse_timestamp
from .security import DEFAULT_PASSWORD_ROUNDS, TokenRegistry, bearer_user, password_context

logger = logging.getLogger("eventboard.devserver")

_MAX_PAGE_SIZE = 100


def _new_id() -> str:
    return secrets.token_hex(12)


@dataclass
class _UserRecord:
    id: str
    name: str
    email: str
    password_hash: str

    def to_payload(self) -> Dict[str, object]:
        return {"_id": self.id, "name": self.name, "email": self.email}


@dataclass
class _EventRecord:
    id: str
    title: str
    description: str
    date: str
    location: str
    max_participants: int
    created_by: Optional[str]
    registered_users: List[str] = field(default_factory=list)

    def to_payload(self) -> Dict[str, object]:
        return {
            "_id": self.id,
            "title": self.title,
            "description": self.description,
            "date": self.date,
            "location": self.location,
            "maxParticipants": self.max_participants,
            "createdBy": self.created_by,
            "registeredUsers": list(self.registered_users),
        }


class InMemoryBackend:
    """Users, events and registrations kept in process memory."""

    def __init__(self, *, password_rounds: int = DEFAULT_PASSWORD_ROUNDS) -> None:
        self._passwords = password_context(password_rounds)
        self._users: Dict[str, _UserRecord] = {}
        self._events: List[_EventRecord] = []
        self._lock = threading.Lock()

    def create_user(self, name: str, email: str, password: str) -> _UserRecord:
        normalised_email = email.strip().lower()
        if not normalised_email:
            raise ValueError("Email is required")
        hashed = self._passwords.hash(password)
        with self._lock:
            if any(user.email == normalised_email for user in self._users.values()):
                raise ValueError("A user with this email already exists")
            user = _UserRecord(id=_new_id(), name=name.strip(), email=normalised_email, password_hash=hashed)
            self._users[user.id] = user
        return user

    def authenticate(self, email: str, password: str) -> Optional[_UserRecord]:
        normalised_email = email.strip().lower()
        with self._lock:
            user = next((item for item in self._users.values() if item.email == normalised_email), None)
        if user is None:
            return None
        try:
            verified = self._passwords.verify(password, user.password_hash)
        except UnknownHashError:
            logger.error("Stored password of user %s has an unknown hash format", user.id)
            return None
        return user if verified else None

    def get_user(self, user_id: str) -> Optional[_UserRecord]:
        with self._lock:
            return self._users.get(user_id)

    def create_event(
        self,
        *,
        title: str,
        description: str,
        date: str,
        location: str,
        max_participants: int,
        created_by: Optional[str],
    ) -> _EventRecord:
        record = _EventRecord(
            id=_new_id(),
            title=title,
            description=description,
            date=date,
            location=location,
            max_participants=max_participants,
            created_by=created_by,
        )
        with self._lock:
            self._events.append(record)
        return record

    def list_events(self, *, page: int, limit: int, search: str = "") -> Tuple[List[_EventRecord], int]:
        needle = search.strip().lower()
        with self._lock:
            matches = [
                event
                for event in self._events
                if not needle
                or needle in event.title.lower()
                or needle in event.description.lower()
                or needle in event.location.lower()
            ]
        total_pages = max(1, math.ceil(len(matches) / limit))
        start = (page - 1) * limit
        return matches[start : start + limit], total_pages

    def register(self, event_id: str, user_id: str) -> _EventRecord:
        with self._lock:
            event = next((item for item in self._events if item.id == event_id), None)
            if event is None:
                raise LookupError("Event not found")
            if user_id in event.registered_users:
                raise ValueError("You are already registered for this event")
            if len(event.registered_users) >= event.max_participants:
                raise ValueError("This event is full")
            event.registered_users.append(user_id)
            return event

    def registered_users(self, event_id: str) -> List[_UserRecord]:
        with self._lock:
            event = next((item for item in self._events if item.id == event_id), None)
            if event is None:
                raise LookupError("Event not found")
            return [self._users[user_id] for user_id in event.registered_users if user_id in self._users]


class RegisterUserRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=6)
    confirmPassword: str

    @field_validator("name", "email")
    @classmethod
    def _strip(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("must not be empty")
        return stripped


class LoginRequest(BaseModel):
    email: str
    password: str


class CreateEventRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=5000)
    date: str
    location: str = Field(..., min_length=1, max_length=200)
    maxParticipants: int = Field(..., ge=1)
    createdBy: Optional[str] = None

    @field_validator("title", "location")
    @classmethod
    def _require_text(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("must not be empty")
        return stripped


class RegisterForEventRequest(BaseModel):
    userId: Optional[str] = None


def create_app(
    *,
    backend: InMemoryBackend | None = None,
    tokens: TokenRegistry | None = None,
) -> FastAPI:
    if backend is None:
        backend = InMemoryBackend()
    if tokens is None:
        tokens = TokenRegistry()
    auth = bearer_user(tokens)

    app = FastAPI(
        title="Eventboard development backend",
        description="In-memory stand-in for the event-management REST service",
        version="1.0.0",
    )
    app.state.backend = backend
    app.state.tokens = tokens

    @app.get("/health")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/users/register", status_code=status.HTTP_201_CREATED)
    async def register_user(payload: RegisterUserRequest) -> Dict[str, object]:
        if payload.password != payload.confirmPassword:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Passwords do not match")
        try:
            user = backend.create_user(payload.name, payload.email, payload.password)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        logger.info("Registered user %s", user.id)
        return {
            "message": "User registered successfully",
            "token": tokens.issue(user.id),
            "user": user.to_payload(),
        }

    @app.post("/users/login")
    async def login(payload: LoginRequest) -> Dict[str, object]:
        user = backend.authenticate(payload.email, payload.password)
        if user is None:
            logger.warning("Failed login attempt for %s", payload.email)
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")
        return {"user": user.to_payload(), "token": tokens.issue(user.id)}

    @app.post("/events/create", status_code=status.HTTP_201_CREATED)
    async def create_event(payload: CreateEventRequest, user_id: str = Depends(auth)) -> Dict[str, object]:
        try:
            when = parse_timestamp(payload.date)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Date is invalid") from exc
        if when is None or when <= datetime.now(timezone.utc):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Date must be in the future")
        record = backend.create_event(
            title=payload.title,
            description=payload.description.strip(),
            date=payload.date.strip(),
            location=payload.location,
            max_participants=payload.maxParticipants,
            created_by=payload.createdBy or user_id,
        )
        return record.to_payload()

    @app.get("/events")
    async def list_events(
        page: int = Query(default=1, ge=1),
        limit: int = Query(default=10, ge=1, le=_MAX_PAGE_SIZE),
        search: str = Query(default=""),
        user_id: str = Depends(auth),
    ) -> Dict[str, object]:
        events, total_pages = backend.list_events(page=page, limit=limit, search=search)
        return {"events": [event.to_payload() for event in events], "totalPages": total_pages}

    @app.post("/events/{event_id}/register")
    async def register_for_event(
        event_id: str,
        payload: RegisterForEventRequest,
        user_id: str = Depends(auth),
    ) -> Dict[str, str]:
        target_user = payload.userId or user_id
        if target_user != user_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You can only register yourself for an event",
            )
        try:
            event = backend.register(event_id, target_user)
        except LookupError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        return {"message": f"Registered for {event.title}"}

    @app.get("/events/{event_id}/registered-users")
    async def registered_users(event_id: str, user_id: str = Depends(auth)) -> Dict[str, object]:
        try:
            users = backend.registered_users(event_id)
        except LookupError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        return {"users": [user.to_payload() for user in users]}

    return app


__all__ = ["CreateEventRequest", "InMemoryBackend", "create_app"]
