"""Login, then drive the dashboard against the development backend."""

from __future__ import annotations

import pytest

from eventboard.accounts import AccountService
from eventboard.dashboard import DashboardController

from conftest import USER_EMAIL, USER_PASSWORD, seed_events

pytestmark = pytest.mark.anyio


@pytest.fixture
def account(backend):
    return backend.create_user("Ada", USER_EMAIL, USER_PASSWORD)


async def _login_and_mount(api, sessions, routes=None):
    session = await AccountService(api, sessions).login(USER_EMAIL, USER_PASSWORD)
    controller = DashboardController.from_api(api, sessions, navigate=(routes if routes is not None else []).append)
    await controller.mount()
    return session, controller


async def test_mount_after_login_queries_once_with_token(api, recorder, backend, account, sessions):
    seed_events(backend, 12)

    session, controller = await _login_and_mount(api, sessions)

    queries = recorder.matching("GET", "/events")
    assert len(queries) == 1
    assert queries[0].headers["Authorization"] == f"Bearer {session.token}"
    assert dict(queries[0].url.params) == {"page": "1", "limit": "10", "search": ""}
    assert len(controller.state.events) == 10
    assert controller.state.total_pages == 2


async def test_search_with_enter_issues_one_query(api, recorder, backend, account, sessions):
    seed_events(backend, 4, prefix="Jazz")
    seed_events(backend, 3, prefix="Conference")
    _, controller = await _login_and_mount(api, sessions)
    await controller.change_page(1)
    before = len(recorder.matching("GET", "/events"))

    controller.set_search_text("conf")
    await controller.submit_search()

    queries = recorder.matching("GET", "/events")[before:]
    assert len(queries) == 1
    assert dict(queries[0].url.params) == {"page": "1", "limit": "10", "search": "conf"}
    assert controller.state.page == 1
    assert [event.title for event in controller.state.events] == [
        "Conference 1",
        "Conference 2",
        "Conference 3",
    ]


async def test_create_register_and_view_members(api, backend, account, sessions):
    _, controller = await _login_and_mount(api, sessions)

    controller.open_create()
    controller.update_form("title", "Launch party")
    controller.update_form("date", "2099-12-31")
    controller.update_form("location", "Rooftop")
    controller.update_form("maxParticipants", "2")
    created = await controller.submit_create()

    assert created is not None
    assert [event.title for event in controller.state.events] == ["Launch party"]

    controller.open_event(controller.state.events[0])
    await controller.register()
    assert controller.state.notices[-1].message == "Successfully registered for: Launch party"

    controller.open_event(controller.state.events[0])
    await controller.view_members()
    assert [member.email for member in controller.state.members] == [USER_EMAIL]


async def test_revoked_token_logs_user_out(api, tokens, account, sessions):
    routes: list[str] = []
    session, controller = await _login_and_mount(api, sessions, routes)
    tokens.revoke(session.token)

    await controller.change_page(1)

    assert sessions.get_session() is None
    assert routes == ["login"]


async def test_create_dashboard_uses_config(api, recorder, backend, account, sessions, tmp_path):
    from eventboard import ClientConfig, create_dashboard

    seed_events(backend, 5)
    await AccountService(api, sessions).login(USER_EMAIL, USER_PASSWORD)
    config = ClientConfig(page_size=2, session_path=tmp_path / "session.json")

    controller = create_dashboard(config, sessions, api=api)
    await controller.mount()

    assert recorder.matching("GET", "/events")[-1].url.params["limit"] == "2"
    assert len(controller.state.events) == 2
    assert controller.state.total_pages == 3
