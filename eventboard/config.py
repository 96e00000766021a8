"""Configuration management for the event dashboard client."""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

from .sessions import resolve_session_path

DEFAULT_API_URL = "http://localhost:5000"
DEFAULT_PAGE_SIZE = 10
DEFAULT_TIMEOUT = 15.0


def normalise_api_url(value: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValueError("API base URL must not be empty")
    if not cleaned.startswith(("http://", "https://")):
        raise ValueError(f"API base URL must use http or https: {cleaned}")
    return cleaned.rstrip("/")


@dataclass(frozen=True)
class ClientConfig:
    """Settings for talking to the event service."""

    api_url: str = DEFAULT_API_URL
    page_size: int = DEFAULT_PAGE_SIZE
    timeout: float = DEFAULT_TIMEOUT
    search_debounce: Optional[float] = None
    session_path: Path = resolve_session_path(None)

    @staticmethod
    def from_dict(data: Mapping[str, object], base_path: Path | None = None) -> "ClientConfig":
        """Create a :class:`ClientConfig` from raw dictionary data."""
        unknown = set(data.keys()) - {"api_url", "page_size", "timeout", "search_debounce", "session_path"}
        if unknown:
            raise ValueError(f"Unknown configuration fields: {', '.join(sorted(unknown))}")

        page_size = int(data.get("page_size", DEFAULT_PAGE_SIZE))  # type: ignore[arg-type]
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        timeout = float(data.get("timeout", DEFAULT_TIMEOUT))  # type: ignore[arg-type]
        if timeout <= 0:
            raise ValueError("timeout must be positive")

        raw_debounce = data.get("search_debounce")
        debounce = float(raw_debounce) if raw_debounce not in (None, "") else None  # type: ignore[arg-type]
        if debounce is not None and debounce <= 0:
            debounce = None

        raw_session = data.get("session_path")
        if raw_session:
            session_path = Path(str(raw_session)).expanduser()
            if not session_path.is_absolute() and base_path is not None:
                session_path = base_path / session_path
            session_path = session_path.resolve(strict=False)
        else:
            session_path = resolve_session_path(None)

        return ClientConfig(
            api_url=normalise_api_url(str(data.get("api_url") or DEFAULT_API_URL)),
            page_size=page_size,
            timeout=timeout,
            search_debounce=debounce,
            session_path=session_path,
        )


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the configuration file."""
    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    return (Path.home() / ".config" / "eventboard" / "config.yaml").resolve(strict=False)


def load_client_config(
    config_path: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> ClientConfig:
    """Load settings from YAML, then apply environment overrides.

    A missing configuration file is not an error; the defaults apply.
    """
    env = os.environ if environ is None else environ
    if config_path is None:
        config_path = resolve_config_path(env.get("EVENTBOARD_CONFIG"))

    raw: Dict[str, object] = {}
    if config_path.exists():
        with config_path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Configuration file {config_path} must contain a mapping")
        raw = loaded

    config = ClientConfig.from_dict(raw, base_path=config_path.parent)

    api_url = env.get("EVENTBOARD_API_URL")
    if api_url:
        config = replace(config, api_url=normalise_api_url(api_url))
    session_path = env.get("EVENTBOARD_SESSION_PATH")
    if session_path:
        config = replace(config, session_path=resolve_session_path(session_path))
    return config


__all__ = [
    "ClientConfig",
    "DEFAULT_API_URL",
    "load_client_config",
    "normalise_api_url",
    "resolve_config_path",
]
