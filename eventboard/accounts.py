"""Login, sign-up and logout: the collaborators that produce a session."""

from __future__ import annotations

import logging
from typing import Optional

from .api import EventboardAPI
from .errors import APIError, InvalidFormError, LoginFailed, SignupFailed
from .models import Session
from .sessions import SessionStore
from .validation import validate_login, validate_signup

logger = logging.getLogger("eventboard.accounts")


class AccountService:
    """Authenticate against the backend and maintain the session store."""

    def __init__(self, api: EventboardAPI, sessions: SessionStore) -> None:
        self._api = api
        self._sessions = sessions

    async def login(self, email: str, password: str) -> Session:
        errors = validate_login(email, password)
        if errors:
            raise InvalidFormError(errors)

        try:
            payload = await self._api.login(email.strip(), password)
        except APIError as exc:
            logger.warning("Login failed for %s", email.strip())
            raise LoginFailed(exc.message, status_code=exc.status_code) from exc

        user = payload.get("user") if isinstance(payload, dict) else None
        user_id = None
        if isinstance(user, dict):
            user_id = user.get("_id") or user.get("id")
        token = payload.get("token") if isinstance(payload, dict) else None
        if not user_id or not token:
            raise LoginFailed("The event service returned an unexpected login response")

        return self._sessions.set_session(str(user_id), str(token))

    async def sign_up(
        self,
        name: str,
        email: str,
        password: str,
        confirm_password: str,
    ) -> Optional[str]:
        """Create an account and return the token the backend issued, if any."""

        errors = validate_signup(name, email, password, confirm_password)
        if errors:
            raise InvalidFormError(errors)

        try:
            payload = await self._api.register_user(
                {
                    "name": name.strip(),
                    "email": email.strip(),
                    "password": password,
                    "confirmPassword": confirm_password,
                }
            )
        except APIError as exc:
            raise SignupFailed(exc.message, status_code=exc.status_code) from exc

        logger.info("Registered account for %s", email.strip())
        token = payload.get("token") if isinstance(payload, dict) else None
        return str(token) if token else None

    def logout(self) -> None:
        self._sessions.clear_session()


__all__ = ["AccountService"]
