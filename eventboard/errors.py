"""Error taxonomy shared by the event dashboard services."""
from __future__ import annotations

from typing import Mapping, Optional


class EventboardError(RuntimeError):
    """Base class for failures surfaced to the dashboard user."""

    default_message = "The event service request failed"

    def __init__(self, message: str | None = None, *, status_code: int | None = None) -> None:
        self.message: Optional[str] = message.strip() if message and message.strip() else None
        self.status_code = status_code
        super().__init__(self.message or self.default_message)

    @property
    def authentication_failed(self) -> bool:
        return self.status_code == 401

    def user_message(self, fallback: str | None = None) -> str:
        """Return the server-provided message, else ``fallback``."""

        return self.message or fallback or self.default_message


class Unauthenticated(EventboardError):
    """Raised before sending a request that needs a session when none exists."""

    default_message = "Please login to continue."


class APIError(EventboardError):
    """Raised by the HTTP transport for network and non-success responses."""


class QueryFailed(APIError):
    default_message = "Failed to fetch events. Please try again."


class CreateFailed(APIError):
    default_message = "Failed to create event. Please try again."


class RegisterFailed(APIError):
    default_message = "Failed to register."


class FetchFailed(APIError):
    default_message = "Failed to fetch registered users."


class LoginFailed(APIError):
    default_message = "An error occurred during login."


class SignupFailed(APIError):
    default_message = "Registration failed. Please try again."


class InvalidFormError(EventboardError):
    """Raised when the login or sign-up form has field errors."""

    default_message = "The form contains invalid fields"

    def __init__(self, errors: Mapping[str, str]) -> None:
        self.errors = dict(errors)
        summary = "; ".join(f"{field}: {message}" for field, message in self.errors.items())
        super().__init__(summary or None)


__all__ = [
    "APIError",
    "CreateFailed",
    "EventboardError",
    "FetchFailed",
    "InvalidFormError",
    "LoginFailed",
    "QueryFailed",
    "RegisterFailed",
    "SignupFailed",
    "Unauthenticated",
]
