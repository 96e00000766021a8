"""Command-line interface for the eventboard client."""

from __future__ import annotations
import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from getpass import getpass
from pathlib import Path
from typing import List, Optional, Sequence

import anyio

from eventboard import create_dashboard
from eventboard.accounts import AccountService
from eventboard.api import EventboardAPI
from eventboard.config import ClientConfig, load_client_config, normalise_api_url
from eventboard.dashboard import LOGIN_ROUTE, DashboardController, DashboardState
from eventboard.errors import EventboardError, InvalidFormError
from eventboard.models import Event
from eventboard.sessions import SessionStore

logger = logging.getLogger("eventboard.main")

_KNOWN_COMMANDS = {"dashboard", "login", "signup", "logout", "events", "serve-mock"}
_FORM_PROMPTS = (
    ("title", "Title"),
    ("description", "Description"),
    ("date", "Date (YYYY-MM-DD)"),
    ("location", "Location"),
    ("max_participants", "Max Participants"),
)


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--api-url", default=None, help="Base URL of the event service")
    common.add_argument("--config", default=None, help="Path to a YAML configuration file")
    common.add_argument("--session-file", default=None, help="Where the login session is stored")

    parser = argparse.ArgumentParser(description="Event dashboard client")
    subparsers = parser.add_subparsers(dest="command")
    parser.set_defaults(command="dashboard")

    subparsers.add_parser("dashboard", parents=[common], help="Open the interactive events dashboard")

    login_parser = subparsers.add_parser("login", parents=[common], help="Log in and store the session")
    login_parser.add_argument("--email", default=None, help="Account email address")

    signup_parser = subparsers.add_parser("signup", parents=[common], help="Create a new account")
    signup_parser.add_argument("--name", default=None, help="Display name")
    signup_parser.add_argument("--email", default=None, help="Account email address")

    subparsers.add_parser("logout", parents=[common], help="Forget the stored session")

    events_parser = subparsers.add_parser("events", parents=[common], help="Print one page of events")
    events_parser.add_argument("--page", type=int, default=1, help="Page to show (default: 1)")
    events_parser.add_argument("--search", default="", help="Only show events matching this text")

    serve_parser = subparsers.add_parser(
        "serve-mock", parents=[common], help="Run the in-memory development backend"
    )
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=5000, help="Port (default: 5000)")

    args_list = list(argv) if argv is not None else sys.argv[1:]
    if not args_list:
        args_list = ["dashboard"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in _KNOWN_COMMANDS:
            args_list = ["dashboard", *args_list]

    return parser.parse_args(args_list)


def _resolve_config(args: argparse.Namespace) -> ClientConfig:
    config = load_client_config(Path(args.config).expanduser() if args.config else None)
    if args.api_url:
        config = replace(config, api_url=normalise_api_url(args.api_url))
    if args.session_file:
        config = replace(config, session_path=Path(args.session_file).expanduser().resolve(strict=False))
    return config


# ----------------------------------------------------------------------
# Rendering
# ----------------------------------------------------------------------
def _format_date(event: Event) -> str:
    if event.date is None:
        return "-"
    return event.date.strftime("%Y-%m-%d")


def _truncate(text: str, width: int) -> str:
    return text if len(text) <= width else text[: width - 1] + "…"


def _render_events(state: DashboardState) -> None:
    if not state.events:
        print("No events found.")
    else:
        print(f"{'#':>3}  {'Title':<28}  {'Date':<10}  {'Location':<20}  Description")
        print("-" * 90)
        for index, event in enumerate(state.events, start=1):
            print(
                f"{index:>3}  {_truncate(event.title, 28):<28}  {_format_date(event):<10}  "
                f"{_truncate(event.location, 20):<20}  {_truncate(event.description, 30)}"
            )
    pages = " ".join(
        f"[{number}]" if number == state.page else str(number)
        for number in range(1, state.total_pages + 1)
    )
    print(f"\nPage {state.page} of {state.total_pages}: {pages}")
    if state.search_text:
        print(f"Search: {state.search_text!r}")


def _render_notices(state: DashboardState) -> None:
    for notice in state.notices:
        print(f"[{notice.level.upper()}] {notice.message}")


def _render_event_modal(state: DashboardState) -> None:
    event = state.selected_event
    if event is None:
        return
    print(f"\n== {event.title} ==")
    if event.description:
        print(event.description)
    print(f"Date: {event.date.isoformat() if event.date else '-'}")
    print(f"Location: {event.location or '-'}")
    print(f"Max Participants: {event.max_participants if event.max_participants is not None else '-'}")
    if state.members_loading:
        print("Loading members...")
    elif state.members:
        print("Registered Members:")
        for member in state.members:
            print(f"  - {member.name} ({member.email})")
    else:
        print("No members registered yet.")


def _render(state: DashboardState) -> None:
    print()
    _render_notices(state)
    if state.list_loading:
        print("Loading events...")
    _render_events(state)
    _render_event_modal(state)


# ----------------------------------------------------------------------
# Interactive flows
# ----------------------------------------------------------------------
async def _ask(prompt: str) -> str:
    return await anyio.to_thread.run_sync(input, prompt)


async def _ask_secret(prompt: str) -> str:
    return await anyio.to_thread.run_sync(getpass, prompt)


async def _login_flow(accounts: AccountService, email: str | None = None) -> bool:
    for _ in range(3):
        address = email or (await _ask("Email: ")).strip()
        password = await _ask_secret("Password: ")
        try:
            session = await accounts.login(address, password)
        except InvalidFormError as exc:
            for field_name, message in exc.errors.items():
                print(f"  {field_name}: {message}")
            email = None
            continue
        except EventboardError as exc:
            print(f"Login failed: {exc.user_message()}")
            email = None
            continue
        print(f"Login successful! Signed in as user {session.user_id}.")
        return True
    return False


async def _prompt_create_form(controller: DashboardController) -> None:
    controller.open_create()
    while controller.state.create_open:
        form = controller.state.form
        for attribute, label in _FORM_PROMPTS:
            current = getattr(form, attribute)
            suffix = f" [{current}]" if current else ""
            answer = await _ask(f"{label}{suffix}: ")
            if answer.strip() or not current:
                controller.update_form(attribute, answer)

        created = await controller.submit_create()
        if created is not None:
            return

        errors = controller.state.errors.as_dict()
        for field_name, message in errors.items():
            print(f"  {field_name}: {message}")
        _render_notices(controller.state)
        controller.clear_notices()
        retry = (await _ask("Edit and retry? [y/N]: ")).strip().lower()
        if retry not in {"y", "yes"}:
            controller.close_create()


async def _event_modal_loop(controller: DashboardController) -> None:
    while controller.state.selected_event is not None:
        _render_event_modal(controller.state)
        print("\n  m) View members   g) Register   x) Close")
        choice = (await _ask("Choice: ")).strip().lower()
        if choice == "m":
            await controller.view_members()
        elif choice == "g":
            await controller.register()
            _render_notices(controller.state)
            controller.clear_notices()
        elif choice == "x":
            controller.close_event()
        else:
            print("Invalid selection.")


async def _run_dashboard(config: ClientConfig, sessions: SessionStore) -> None:
    routes: List[str] = []

    async with EventboardAPI(config.api_url, timeout=config.timeout) as api:
        accounts = AccountService(api, sessions)
        if sessions.get_session() is None:
            print("Please login to continue.")
            if not await _login_flow(accounts):
                print("Unable to log in.")
                return

        controller = create_dashboard(config, sessions, api=api, navigate=routes.append)
        await controller.mount()

        print("Events Dashboard")
        print("Press Ctrl+C at any time to exit.")
        try:
            while True:
                _render(controller.state)
                controller.clear_notices()
                print(
                    "\n  s <text>) Search   p <n>) Page   o <n>) Open event   c) Create event\n"
                    "  r) Refresh   l) Logout   q) Quit"
                )
                command, _, argument = (await _ask("Choice: ")).strip().partition(" ")
                command = command.lower()

                if command == "s":
                    controller.set_search_text(argument.strip())
                    await controller.submit_search()
                elif command == "p":
                    page = _parse_positive(argument)
                    if page is None or page > controller.state.total_pages:
                        print("Invalid page number.")
                        continue
                    await controller.change_page(page)
                elif command == "o":
                    index = _parse_positive(argument)
                    if index is None or index > len(controller.state.events):
                        print("Invalid event number.")
                        continue
                    controller.open_event(controller.state.events[index - 1])
                    await _event_modal_loop(controller)
                elif command == "c":
                    await _prompt_create_form(controller)
                elif command == "r":
                    await controller.refresh()
                elif command == "l":
                    controller.logout()
                elif command == "q":
                    print("Goodbye!")
                    return
                else:
                    print("Invalid selection. Please choose one of the listed options.")

                if LOGIN_ROUTE in routes:
                    _render_notices(controller.state)
                    print("You have been logged out.")
                    return
        except (KeyboardInterrupt, EOFError):
            print("\nExiting dashboard.")
        finally:
            await controller.aclose()


def _parse_positive(value: str) -> Optional[int]:
    try:
        number = int(value.strip())
    except ValueError:
        return None
    return number if number >= 1 else None


# ----------------------------------------------------------------------
# One-shot commands
# ----------------------------------------------------------------------
async def _login(config: ClientConfig, sessions: SessionStore, email: str | None) -> bool:
    async with EventboardAPI(config.api_url, timeout=config.timeout) as api:
        return await _login_flow(AccountService(api, sessions), email)


async def _signup(config: ClientConfig, sessions: SessionStore, name: str | None, email: str | None) -> bool:
    name = name or (await _ask("Name: ")).strip()
    email = email or (await _ask("Email: ")).strip()
    password = await _ask_secret("Password (min 6 characters): ")
    confirmation = await _ask_secret("Confirm password: ")

    async with EventboardAPI(config.api_url, timeout=config.timeout) as api:
        try:
            token = await AccountService(api, sessions).sign_up(name, email, password, confirmation)
        except InvalidFormError as exc:
            for field_name, message in exc.errors.items():
                print(f"  {field_name}: {message}")
            return False
        except EventboardError as exc:
            print(exc.user_message())
            return False

    if token:
        print("Registration successful. Log in with `main.py login` to open the dashboard.")
    else:
        print("Registration successful, but no token received.")
    return True


async def _print_events(config: ClientConfig, sessions: SessionStore, page: int, search: str) -> bool:
    async with EventboardAPI(config.api_url, timeout=config.timeout) as api:
        controller = DashboardController.from_api(api, sessions, page_size=config.page_size)
        controller.set_search_text(search)
        await controller.change_page(page)
        _render_notices(controller.state)
        if controller.state.notices:
            return False
        _render_events(controller.state)
        return True


def _serve_mock(*, host: str, port: int) -> None:
    from eventboard.devserver import create_app
    import uvicorn

    logger.info("Starting development backend on http://%s:%s", host, port)
    uvicorn.run(create_app(), host=host, port=port, log_level="info")


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)
    try:
        config = _resolve_config(args)
    except ValueError as exc:
        raise SystemExit(f"Invalid configuration: {exc}") from exc

    if args.command == "serve-mock":
        _serve_mock(host=args.host, port=args.port)
        return

    sessions = SessionStore.persistent(config.session_path)

    if args.command == "dashboard":
        try:
            asyncio.run(_run_dashboard(config, sessions))
        except KeyboardInterrupt:
            print("\nExiting dashboard.")
    elif args.command == "login":
        if not asyncio.run(_login(config, sessions, args.email)):
            raise SystemExit(1)
    elif args.command == "signup":
        if not asyncio.run(_signup(config, sessions, args.name, args.email)):
            raise SystemExit(1)
    elif args.command == "logout":
        sessions.clear_session()
        print("Logged out.")
    elif args.command == "events":
        if args.page < 1:
            raise SystemExit("--page must be at least 1")
        if not asyncio.run(_print_events(config, sessions, args.page, args.search)):
            raise SystemExit(1)


if __name__ == "__main__":
    main()
