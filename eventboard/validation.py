"""Client-side form validation.

These checks only help the user; the backend remains the source of truth.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Dict, Optional

from .models import CreateEventForm, ValidationErrors, parse_timestamp

_EMAIL_PATTERN = re.compile(r"\S+@\S+\.\S+")
MIN_PASSWORD_LENGTH = 6


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_participants(value: object) -> Optional[int]:
    """Return the participant limit as an int, or ``None`` when not a whole number."""

    text = str(value).strip() if value is not None else ""
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return None
    if not number.is_integer():
        return None
    return int(number)


def validate_event_form(draft: CreateEventForm, *, now: datetime | None = None) -> ValidationErrors:
    """Check every field of ``draft`` and collect all violations."""

    reference = now or _utcnow()
    if reference.tzinfo is None:
        reference = reference.replace(tzinfo=timezone.utc)
    errors = ValidationErrors()

    if not draft.title.strip():
        errors.title = "Title is required"

    if not draft.date.strip():
        errors.date = "Date is required"
    else:
        try:
            when = parse_timestamp(draft.date)
        except ValueError:
            errors.date = "Date is invalid"
        else:
            if when is None:
                errors.date = "Date is required"
            elif when <= reference:
                errors.date = "Date must be in the future"

    if not draft.location.strip():
        errors.location = "Location is required"

    if not draft.max_participants.strip():
        errors.max_participants = "Max Participants is required"
    else:
        participants = parse_participants(draft.max_participants)
        if participants is None or participants <= 0:
            errors.max_participants = "Max Participants must be a positive number"

    return errors


def _check_email(email: str, errors: Dict[str, str]) -> None:
    if not email:
        errors["email"] = "Email is required"
    elif not _EMAIL_PATTERN.search(email):
        errors["email"] = "Email is invalid"


def _check_password(password: str, errors: Dict[str, str]) -> None:
    if not password:
        errors["password"] = "Password is required"
    elif len(password) < MIN_PASSWORD_LENGTH:
        errors["password"] = f"Password must be at least {MIN_PASSWORD_LENGTH} characters"


def validate_login(email: str, password: str) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    _check_email(email.strip(), errors)
    _check_password(password, errors)
    return errors


def validate_signup(name: str, email: str, password: str, confirm_password: str) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    if not name.strip():
        errors["name"] = "Name is required"
    _check_email(email.strip(), errors)
    _check_password(password, errors)
    if not confirm_password:
        errors["confirmPassword"] = "Confirm Password is required"
    elif confirm_password != password:
        errors["confirmPassword"] = "Passwords do not match"
    return errors


__all__ = [
    "MIN_PASSWORD_LENGTH",
    "parse_participants",
    "validate_event_form",
    "validate_login",
    "validate_signup",
]
