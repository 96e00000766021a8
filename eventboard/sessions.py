"""Client-side session storage for the event dashboard."""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Dict, Iterator, MutableMapping, Optional

from .models import Session

logger = logging.getLogger("eventboard.sessions")

TOKEN_KEY = "token"
USER_KEY = "user"


def resolve_session_path(env_value: Optional[str]) -> Path:
    """Resolve where the persisted session file lives."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    return (Path.home() / ".config" / "eventboard" / "session.json").resolve(strict=False)


class JSONFileStorage(MutableMapping[str, str]):
    """String key/value storage persisted to a small JSON document.

    Every mutation rewrites the whole file through a temporary file so a
    reader never observes a half-written session.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._data: Dict[str, str] = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> Dict[str, str]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            logger.warning("Unable to read session file %s: %s", self._path, exc)
            return {}
        try:
            payload = json.loads(raw) if raw.strip() else {}
        except ValueError:
            logger.warning("Ignoring corrupt session file %s", self._path)
            return {}
        if not isinstance(payload, dict):
            logger.warning("Ignoring unexpected session file contents in %s", self._path)
            return {}
        return {str(key): str(value) for key, value in payload.items() if value is not None}

    def _flush(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self._path.with_name(self._path.name + ".tmp")
        temp_path.write_text(json.dumps(self._data, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(temp_path, self._path)

    def update_many(self, values: Dict[str, str]) -> None:
        self._data.update(values)
        self._flush()

    def discard_many(self, *keys: str) -> None:
        for key in keys:
            self._data.pop(key, None)
        self._flush()

    def __getitem__(self, key: str) -> str:
        return self._data[key]

    def __setitem__(self, key: str, value: str) -> None:
        self._data[key] = value
        self._flush()

    def __delitem__(self, key: str) -> None:
        del self._data[key]
        self._flush()

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)


class SessionStore:
    """Hold the current token and user id behind a narrow interface."""

    def __init__(self, storage: MutableMapping[str, str] | None = None) -> None:
        self._storage: MutableMapping[str, str] = storage if storage is not None else {}
        self._lock = threading.Lock()

    @classmethod
    def persistent(cls, path: Path) -> "SessionStore":
        return cls(JSONFileStorage(path))

    def get_token(self) -> Optional[str]:
        with self._lock:
            return self._storage.get(TOKEN_KEY) or None

    def get_user_id(self) -> Optional[str]:
        with self._lock:
            return self._storage.get(USER_KEY) or None

    def get_session(self) -> Optional[Session]:
        with self._lock:
            token = self._storage.get(TOKEN_KEY)
            user_id = self._storage.get(USER_KEY)
        if not token or not user_id:
            return None
        return Session(token=token, user_id=user_id)

    def set_session(self, user_id: str, token: str) -> Session:
        user_text = str(user_id).strip()
        token_text = str(token).strip()
        if not user_text or not token_text:
            raise ValueError("Both a user id and a token are required to store a session")
        values = {TOKEN_KEY: token_text, USER_KEY: user_text}
        with self._lock:
            if isinstance(self._storage, JSONFileStorage):
                self._storage.update_many(values)
            else:
                self._storage.update(values)
        logger.info("Stored session for user %s", user_text)
        return Session(token=token_text, user_id=user_text)

    def clear_session(self) -> None:
        with self._lock:
            if isinstance(self._storage, JSONFileStorage):
                self._storage.discard_many(TOKEN_KEY, USER_KEY)
            else:
                self._storage.pop(TOKEN_KEY, None)
                self._storage.pop(USER_KEY, None)
        logger.info("Cleared stored session")


__all__ = ["JSONFileStorage", "SessionStore", "TOKEN_KEY", "USER_KEY", "resolve_session_path"]
