"""Passwords and bearer tokens for the development backend."""
from __future__ import annotations

import secrets
import threading
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Dict, NamedTuple, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext

DEFAULT_PASSWORD_ROUNDS = 29_000
DEFAULT_TOKEN_LIFETIME = timedelta(hours=12)

_bearer_scheme = HTTPBearer(auto_error=False)


def password_context(rounds: int = DEFAULT_PASSWORD_ROUNDS) -> CryptContext:
    """Build the passlib context used to store account passwords."""

    return CryptContext(schemes=["pbkdf2_sha256"], pbkdf2_sha256__default_rounds=rounds)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IssuedToken(NamedTuple):
    user_id: str
    expires_at: datetime


class TokenRegistry:
    """Bearer tokens handed out by the login and sign-up routes.

    A token is valid for a fixed ``lifetime`` after it was issued; using it
    does not extend it. Expired entries are dropped whenever a new token is
    issued.
    """

    def __init__(
        self,
        lifetime: timedelta = DEFAULT_TOKEN_LIFETIME,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if lifetime <= timedelta(0):
            raise ValueError("Token lifetime must be positive")
        self._lifetime = lifetime
        self._clock = clock
        self._issued: Dict[str, IssuedToken] = {}
        self._lock = threading.Lock()

    def issue(self, user_id: str) -> str:
        now = self._clock()
        token = secrets.token_hex(24)
        with self._lock:
            self._issued = {key: item for key, item in self._issued.items() if item.expires_at > now}
            self._issued[token] = IssuedToken(user_id, now + self._lifetime)
        return token

    def resolve(self, token: str) -> Optional[str]:
        with self._lock:
            issued = self._issued.get(token)
        if issued is None or issued.expires_at <= self._clock():
            return None
        return issued.user_id

    def revoke(self, token: str) -> None:
        with self._lock:
            self._issued.pop(token, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._issued)


def bearer_user(tokens: TokenRegistry) -> Callable[..., Awaitable[str]]:
    """Return a FastAPI dependency yielding the id of the token's owner."""

    async def current_user(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    ) -> str:
        if credentials is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Missing bearer token",
                headers={"WWW-Authenticate": "Bearer"},
            )
        user_id = tokens.resolve(credentials.credentials)
        if user_id is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or expired token",
                headers={"WWW-Authenticate": "Bearer"},
            )
        return user_id

    return current_user


__all__ = [
    "DEFAULT_PASSWORD_ROUNDS",
    "IssuedToken",
    "TokenRegistry",
    "bearer_user",
    "password_context",
]
