"""Async HTTP transport for the event-management REST service.

:class:`EventboardAPI` knows the six endpoints the dashboard consumes and
turns transport failures and non-success responses into :class:`APIError`
instances carrying the status code and the server's message when one was
sent. Higher-level services re-raise those as the operation-specific errors
from :mod:`eventboard.errors`.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote

import httpx

from .errors import APIError

logger = logging.getLogger("eventboard.api")

CREATE_USER_PATH = "/users/register"
LOGIN_USER_PATH = "/users/login"
CREATE_EVENT_PATH = "/events/create"
FETCH_EVENTS_PATH = "/events"


def register_for_event_path(event_id: object) -> str:
    return f"/events/{quote(str(event_id), safe='')}/register"


def registered_users_path(event_id: object) -> str:
    return f"/events/{quote(str(event_id), safe='')}/registered-users"


def _normalize_base_url(base_url: str) -> str:
    cleaned = (base_url or "").strip()
    if not cleaned:
        raise ValueError("API base URL must not be empty")
    return cleaned.rstrip("/")


def _extract_error_message(payload: object) -> Optional[str]:
    if isinstance(payload, dict):
        for key in ("message", "detail", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
            if isinstance(value, dict):
                nested = _extract_error_message(value)
                if nested:
                    return nested
    if isinstance(payload, str) and payload.strip():
        return payload.strip()
    return None


class EventboardAPI:
    """Thin async client around the backend endpoints."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = _normalize_base_url(base_url)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "EventboardAPI":
        return self

    async def __aexit__(self, *_exc_info: object) -> None:
        await self.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        token: str | None = None,
        params: Mapping[str, Any] | None = None,
        json_body: Any | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body (``None`` if empty)."""

        if not path.startswith("/"):
            path = "/" + path
        url = f"{self._base_url}{path}"
        headers: Dict[str, str] = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        logger.debug("Sending %s request to %s", method, url)
        try:
            response = await self._client.request(
                method,
                url,
                params=dict(params) if params is not None else None,
                json=json_body,
                headers=headers,
            )
        except httpx.RequestError as exc:
            logger.error("Request to %s failed: %s", url, exc)
            raise APIError(None) from exc

        if response.status_code >= 400:
            try:
                parsed: object = response.json()
            except ValueError:
                parsed = response.text
            message = _extract_error_message(parsed)
            logger.warning(
                "%s %s returned status %s: %s",
                method,
                path,
                response.status_code,
                message or "<no message>",
            )
            raise APIError(message, status_code=response.status_code)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            logger.error("%s %s returned a body that is not JSON", method, path)
            raise APIError(None, status_code=response.status_code) from exc

    async def register_user(self, payload: Mapping[str, Any]) -> Any:
        return await self.request("POST", CREATE_USER_PATH, json_body=dict(payload))

    async def login(self, email: str, password: str) -> Any:
        return await self.request(
            "POST", LOGIN_USER_PATH, json_body={"email": email, "password": password}
        )

    async def create_event(self, token: str, payload: Mapping[str, Any]) -> Any:
        return await self.request("POST", CREATE_EVENT_PATH, token=token, json_body=dict(payload))

    async def list_events(
        self,
        *,
        page: int,
        limit: int,
        search: str,
        token: str | None = None,
    ) -> Any:
        return await self.request(
            "GET",
            FETCH_EVENTS_PATH,
            token=token,
            params={"page": page, "limit": limit, "search": search},
        )

    async def register_for_event(self, token: str, event_id: object, user_id: str) -> Any:
        return await self.request(
            "POST",
            register_for_event_path(event_id),
            token=token,
            json_body={"userId": user_id},
        )

    async def registered_users(self, token: str, event_id: object) -> Any:
        return await self.request("GET", registered_users_path(event_id), token=token)


__all__ = [
    "CREATE_EVENT_PATH",
    "CREATE_USER_PATH",
    "EventboardAPI",
    "FETCH_EVENTS_PATH",
    "LOGIN_USER_PATH",
    "register_for_event_path",
    "registered_users_path",
]
