from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import httpx
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from eventboard.api import EventboardAPI
from eventboard.devserver import InMemoryBackend, create_app
from eventboard.errors import Unauthenticated
from eventboard.models import Event, EventPage, RegistrationMember
from eventboard.security import TokenRegistry
from eventboard.sessions import SessionStore

BASE_URL = "http://testserver"
USER_EMAIL = "a@b.com"
USER_PASSWORD = "secret1"


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def backend() -> InMemoryBackend:
    return InMemoryBackend(password_rounds=1_000)


@pytest.fixture
def tokens() -> TokenRegistry:
    return TokenRegistry()


@pytest.fixture
def dev_app(backend: InMemoryBackend, tokens: TokenRegistry):
    return create_app(backend=backend, tokens=tokens)


class RecordingTransport(httpx.AsyncBaseTransport):
    """Forward to another transport while keeping every request sent."""

    def __init__(self, inner: httpx.AsyncBaseTransport) -> None:
        self.inner = inner
        self.requests: List[httpx.Request] = []

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return await self.inner.handle_async_request(request)

    def matching(self, method: str, path: str) -> List[httpx.Request]:
        return [item for item in self.requests if item.method == method and item.url.path == path]


@pytest.fixture
def recorder(dev_app) -> RecordingTransport:
    return RecordingTransport(httpx.ASGITransport(app=dev_app))


@pytest.fixture
async def api(recorder: RecordingTransport):
    client = EventboardAPI(BASE_URL, transport=recorder)
    yield client
    await client.aclose()


@pytest.fixture
def sessions() -> SessionStore:
    return SessionStore()


def seed_user(backend: InMemoryBackend, tokens: TokenRegistry, sessions: SessionStore | None = None):
    user = backend.create_user("Ada", USER_EMAIL, USER_PASSWORD)
    token = tokens.issue(user.id)
    if sessions is not None:
        sessions.set_session(user.id, token)
    return user, token


def seed_events(backend: InMemoryBackend, count: int, *, prefix: str = "Event", location: str = "Hall A"):
    return [
        backend.create_event(
            title=f"{prefix} {index}",
            description=f"Description {index}",
            date="2099-01-01",
            location=location,
            max_participants=5,
            created_by=None,
        )
        for index in range(1, count + 1)
    ]


def make_event(event_id: str, title: str | None = None) -> Event:
    return Event(id=event_id, title=title or f"Event {event_id}", location="Hall A")


def make_page(page: int, count: int = 3, total_pages: int = 3) -> EventPage:
    items = tuple(make_event(f"p{page}-{index}") for index in range(count))
    return EventPage(items=items, page=page, total_pages=total_pages)


class FakeQueries:
    """Scripted stand-in for the event query service."""

    def __init__(self) -> None:
        self.calls: List[Tuple[int, int, str]] = []
        self.results: Dict[Tuple[int, str], object] = {}
        self.gates: Dict[Tuple[int, str], asyncio.Event] = {}

    async def query_events(self, page: int, page_size: int = 10, search_text: str = "") -> EventPage:
        self.calls.append((page, page_size, search_text))
        gate = self.gates.get((page, search_text))
        if gate is not None:
            await gate.wait()
        result = self.results.get((page, search_text))
        if isinstance(result, Exception):
            raise result
        if result is None:
            return make_page(page)
        return result  # type: ignore[return-value]


class FakeMutations:
    def __init__(self, sessions: SessionStore) -> None:
        self.sessions = sessions
        self.create_calls: List[object] = []
        self.register_calls: List[str] = []
        self.create_result: object = make_event("created", "Created event")
        self.register_error: Optional[Exception] = None
        self.create_gate: Optional[asyncio.Event] = None
        self.register_gate: Optional[asyncio.Event] = None

    async def create_event(self, draft, created_by=None, *, now=None):
        from eventboard.validation import validate_event_form

        errors = validate_event_form(draft, now=now)
        if errors:
            return errors
        if self.sessions.get_session() is None:
            raise Unauthenticated("Please login to create an event.")
        self.create_calls.append(draft)
        if self.create_gate is not None:
            await self.create_gate.wait()
        if isinstance(self.create_result, Exception):
            raise self.create_result
        return self.create_result

    async def register_for_event(self, event_id, user_id=None):
        if self.sessions.get_session() is None:
            raise Unauthenticated("Please login to register for the event.")
        self.register_calls.append(event_id)
        if self.register_gate is not None:
            await self.register_gate.wait()
        if self.register_error is not None:
            raise self.register_error
        return None


class FakeMembers:
    def __init__(self, sessions: SessionStore) -> None:
        self.sessions = sessions
        self.calls: List[str] = []
        self.result: object = [RegistrationMember(id="u1", name="Ada", email="ada@example.com")]
        self.gate: Optional[asyncio.Event] = None

    async def fetch_members(self, event_id: str):
        if self.sessions.get_session() is None:
            raise Unauthenticated("Please login to view registered users.")
        self.calls.append(event_id)
        if self.gate is not None:
            await self.gate.wait()
        if isinstance(self.result, Exception):
            raise self.result
        return list(self.result)  # type: ignore[call-overload]
