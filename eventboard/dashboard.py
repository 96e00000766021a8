"""State and interaction controller for the events dashboard.

The controller owns everything the dashboard view shows: the current page of
events, the search text, the event-detail modal with its member list, the
create-event form with its validation errors, loading flags and notices. View
code calls the handler methods in response to user input and re-renders from
:attr:`DashboardController.state` whenever a listener fires.

Requests are plain awaits; nothing is cancelled in flight. Instead every list
query takes a sequence number and only the latest one may touch the state,
member fetches are tied to the modal generation that started them, and a
logout bumps the epoch so that any late response is dropped.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Callable, List, Optional, Set, Tuple

from .api import EventboardAPI
from .errors import (
    CreateFailed,
    FetchFailed,
    QueryFailed,
    RegisterFailed,
    Unauthenticated,
)
from .events import DEFAULT_PAGE_SIZE, EventMutationService, EventQueryService
from .members import RegisteredMembersService
from .models import CreateEventForm, Event, Notice, RegistrationMember, ValidationErrors
from .sessions import SessionStore

logger = logging.getLogger("eventboard.dashboard")

LOGIN_ROUTE = "login"
SESSION_EXPIRED_MESSAGE = "Your session has expired. Please login again."

Listener = Callable[["DashboardState"], None]
Navigator = Callable[[str], None]


@dataclass
class DashboardState:
    """Everything the dashboard view renders."""

    events: Tuple[Event, ...] = ()
    page: int = 1
    total_pages: int = 1
    search_text: str = ""
    list_loading: bool = False
    selected_event: Optional[Event] = None
    members: Tuple[RegistrationMember, ...] = ()
    members_loaded: bool = False
    members_loading: bool = False
    register_submitting: bool = False
    create_open: bool = False
    form: CreateEventForm = field(default_factory=CreateEventForm)
    errors: ValidationErrors = field(default_factory=ValidationErrors)
    create_submitting: bool = False
    notices: List[Notice] = field(default_factory=list)

    @property
    def event_modal_open(self) -> bool:
        return self.selected_event is not None

    @property
    def create_modal_open(self) -> bool:
        return self.create_open


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DashboardController:
    """Mediate between dashboard user actions and the event services."""

    def __init__(
        self,
        *,
        sessions: SessionStore,
        queries: EventQueryService,
        mutations: EventMutationService,
        members: RegisteredMembersService,
        page_size: int = DEFAULT_PAGE_SIZE,
        search_debounce: float | None = None,
        navigate: Navigator | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        self._sessions = sessions
        self._queries = queries
        self._mutations = mutations
        self._members = members
        self._page_size = page_size
        self._search_debounce = search_debounce if search_debounce and search_debounce > 0 else None
        self._navigate = navigate
        self._clock = clock
        self._listeners: List[Listener] = []
        self._query_seq = 0
        self._modal_generation = 0
        self._create_generation = 0
        self._epoch = 0
        self._debounce_task: asyncio.Task[None] | None = None
        self._search_tasks: Set[asyncio.Task[None]] = set()
        self.state = DashboardState()

    @classmethod
    def from_api(
        cls,
        api: EventboardAPI,
        sessions: SessionStore,
        **kwargs: object,
    ) -> "DashboardController":
        return cls(
            sessions=sessions,
            queries=EventQueryService(api, sessions),
            mutations=EventMutationService(api, sessions),
            members=RegisteredMembersService(api, sessions),
            **kwargs,  # type: ignore[arg-type]
        )

    @property
    def page_size(self) -> int:
        return self._page_size

    # ------------------------------------------------------------------
    # Listeners and notices
    # ------------------------------------------------------------------
    def add_listener(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _remove() -> None:
            with suppress(ValueError):
                self._listeners.remove(listener)

        return _remove

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self.state)

    def _notice(self, level: str, message: str) -> Notice:
        notice = Notice(level=level, message=message)
        self.state.notices.append(notice)
        self._notify()
        return notice

    def dismiss_notice(self, notice_id: int) -> None:
        self.state.notices = [notice for notice in self.state.notices if notice.id != notice_id]
        self._notify()

    def clear_notices(self) -> None:
        self.state.notices = []
        self._notify()

    # ------------------------------------------------------------------
    # Event list
    # ------------------------------------------------------------------
    async def mount(self) -> None:
        await self._load(self.state.page, self.state.search_text)

    async def _load(self, page: int, search_text: str) -> bool:
        self._query_seq += 1
        seq = self._query_seq
        self.state.list_loading = True
        self._notify()

        try:
            result = await self._queries.query_events(page, self._page_size, search_text)
        except QueryFailed as exc:
            if seq != self._query_seq:
                logger.debug("Ignoring failure of superseded query #%s", seq)
                return False
            self.state.list_loading = False
            if exc.authentication_failed:
                self._handle_auth_failure()
                return False
            logger.warning("Fetching events failed: %s", exc)
            self._notice("error", exc.user_message())
            return False

        if seq != self._query_seq:
            logger.debug("Discarding stale results of query #%s (page %s)", seq, page)
            return False

        self.state.events = result.items
        self.state.total_pages = result.total_pages
        self.state.list_loading = False
        self._notify()
        return True

    def set_search_text(self, text: str) -> None:
        """Record typed search text, scheduling a debounced search if enabled."""

        self.state.search_text = text
        self._notify()
        if self._search_debounce is None:
            return
        self._cancel_debounce()
        task = asyncio.get_running_loop().create_task(self._debounced_search())
        self._search_tasks.add(task)
        task.add_done_callback(self._search_tasks.discard)
        self._debounce_task = task

    async def _debounced_search(self) -> None:
        assert self._search_debounce is not None
        await asyncio.sleep(self._search_debounce)
        self._debounce_task = None
        await self._search()

    def _cancel_debounce(self) -> None:
        if self._debounce_task is not None:
            self._debounce_task.cancel()
            self._debounce_task = None

    async def submit_search(self) -> None:
        """Run the search immediately (the Enter key)."""

        self._cancel_debounce()
        await self._search()

    async def _search(self) -> None:
        self.state.page = 1
        await self._load(1, self.state.search_text)

    async def change_page(self, page: int) -> None:
        if page < 1:
            raise ValueError("page must be at least 1")
        self.state.page = page
        await self._load(page, self.state.search_text)

    async def refresh(self) -> None:
        await self._load(self.state.page, self.state.search_text)

    # ------------------------------------------------------------------
    # Event detail modal
    # ------------------------------------------------------------------
    def _reset_modal(self, event: Optional[Event]) -> None:
        self._modal_generation += 1
        self.state.selected_event = event
        self.state.members = ()
        self.state.members_loaded = False
        self.state.members_loading = False
        self._notify()

    def open_event(self, event: Event) -> None:
        self._reset_modal(event)

    def close_event(self) -> None:
        self._reset_modal(None)

    async def view_members(self) -> None:
        event = self.state.selected_event
        if event is None or self.state.members_loading:
            return
        generation = self._modal_generation
        self.state.members_loading = True
        self._notify()

        try:
            members = await self._members.fetch_members(event.id)
        except Unauthenticated as exc:
            if generation == self._modal_generation:
                self._notice("warning", exc.user_message())
        except FetchFailed as exc:
            if generation != self._modal_generation:
                logger.debug("Ignoring member fetch failure for closed modal of %s", event.id)
            elif exc.authentication_failed:
                self._handle_auth_failure()
            else:
                logger.warning("Fetching members of event %s failed: %s", event.id, exc)
                self.state.members = ()
                self.state.members_loaded = True
                self._notice("error", exc.user_message())
        else:
            if generation == self._modal_generation:
                self.state.members = tuple(members)
                self.state.members_loaded = True
            else:
                logger.debug("Discarding members of %s; the modal was closed", event.id)
        finally:
            if generation == self._modal_generation:
                self.state.members_loading = False
                self._notify()

    async def register(self) -> None:
        event = self.state.selected_event
        if event is None:
            self._notice("warning", "No event selected for registration.")
            return
        if self.state.register_submitting:
            return

        epoch = self._epoch
        generation = self._modal_generation
        self.state.register_submitting = True
        self._notify()
        try:
            await self._mutations.register_for_event(event.id)
        except Unauthenticated as exc:
            self._notice("warning", exc.user_message())
            return
        except RegisterFailed as exc:
            if epoch != self._epoch:
                return
            if exc.authentication_failed:
                self._handle_auth_failure()
                return
            logger.warning("Registration for event %s failed: %s", event.id, exc)
            self._notice("error", exc.user_message("Failed to register."))
            if generation == self._modal_generation:
                self.close_event()
            return
        finally:
            if epoch == self._epoch:
                self.state.register_submitting = False
                self._notify()

        if epoch != self._epoch:
            return
        self._notice("success", f"Successfully registered for: {event.title}")
        if generation == self._modal_generation:
            self.close_event()
        await self.refresh()

    # ------------------------------------------------------------------
    # Create-event modal
    # ------------------------------------------------------------------
    def open_create(self) -> None:
        self._create_generation += 1
        self.state.create_open = True
        self.state.form = CreateEventForm()
        self.state.errors = ValidationErrors()
        self._notify()

    def update_form(self, name: str, value: object) -> None:
        if not self.state.create_open:
            logger.debug("Ignoring edit of %s; the create form is closed", name)
            return
        self.state.form.update(name, value)
        self._notify()

    def close_create(self) -> None:
        self._create_generation += 1
        self.state.create_open = False
        self.state.form = CreateEventForm()
        self.state.errors = ValidationErrors()
        self._notify()

    async def submit_create(self) -> Optional[Event]:
        """Validate and submit the draft; returns the created event on success."""

        if not self.state.create_open or self.state.create_submitting:
            return None

        epoch = self._epoch
        generation = self._create_generation
        self.state.create_submitting = True
        self.state.errors = ValidationErrors()
        self._notify()
        try:
            result = await self._mutations.create_event(replace(self.state.form), now=self._clock())
        except Unauthenticated as exc:
            self._notice("warning", exc.user_message())
            return None
        except CreateFailed as exc:
            if epoch != self._epoch:
                return None
            if exc.authentication_failed:
                self._handle_auth_failure()
                return None
            logger.warning("Creating event failed: %s", exc)
            self._notice("error", exc.user_message())
            return None
        finally:
            if epoch == self._epoch:
                self.state.create_submitting = False
                self._notify()

        if epoch != self._epoch:
            return None
        if isinstance(result, ValidationErrors):
            if generation == self._create_generation:
                self.state.errors = result
                self._notify()
            return None

        self.state.events = self.state.events + (result,)
        if generation == self._create_generation:
            self.close_create()
        self._notice("success", "Event created successfully!")
        await self.refresh()
        return result

    # ------------------------------------------------------------------
    # Session handling
    # ------------------------------------------------------------------
    def logout(self) -> None:
        """Clear the session, discard all dashboard state and leave the view."""

        self._sessions.clear_session()
        self._cancel_debounce()
        self._epoch += 1
        self._query_seq += 1
        self._modal_generation += 1
        self._create_generation += 1
        self.state = DashboardState()
        self._notify()
        if self._navigate is not None:
            self._navigate(LOGIN_ROUTE)

    def _handle_auth_failure(self) -> None:
        logger.warning("The event service rejected the stored session; logging out")
        self.logout()
        self._notice("warning", SESSION_EXPIRED_MESSAGE)

    async def aclose(self) -> None:
        self._cancel_debounce()
        for task in list(self._search_tasks):
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task


__all__ = ["DashboardController", "DashboardState", "LOGIN_ROUTE", "SESSION_EXPIRED_MESSAGE"]
