"""Client library for the event-management dashboard."""

from __future__ import annotations

from typing import Any

from .api import EventboardAPI
from .config import ClientConfig, load_client_config
from .dashboard import DashboardController, DashboardState
from .sessions import SessionStore


def create_dashboard(
    config: ClientConfig,
    sessions: SessionStore,
    *,
    api: EventboardAPI | None = None,
    **kwargs: Any,
) -> DashboardController:
    """Factory wiring a :class:`DashboardController` to a configured API client."""

    if api is None:
        api = EventboardAPI(config.api_url, timeout=config.timeout)
    return DashboardController.from_api(
        api,
        sessions,
        page_size=config.page_size,
        search_debounce=config.search_debounce,
        **kwargs,
    )


def create_dev_app(*args: Any, **kwargs: Any):
    """Factory function for the in-memory development backend."""

    from .devserver import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "ClientConfig",
    "DashboardController",
    "DashboardState",
    "EventboardAPI",
    "SessionStore",
    "create_dashboard",
    "create_dev_app",
    "load_client_config",
]
