"""Settings for the live client and its WebSocket endpoint.

Settings are plain frozen dataclasses so tests can override any constant.
They can also be loaded from YAML:

    reconnect:
      max_reconnect_attempts: 5
      reconnect_base_delay: 1.0
    endpoint:
      host: generativelanguage.googleapis.com
      api_version: v1beta
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any
from urllib.parse import urlencode

import yaml

from .errors import SettingsLoadError
from .reconnect import (
    DEFAULT_MAX_RECONNECT_ATTEMPTS,
    DEFAULT_RECONNECT_BASE_DELAY,
    NORMAL_CLOSURE_CODE,
)

API_KEY_ENV = "GEMINI_API_KEY"
DEFAULT_HOST = "generativelanguage.googleapis.com"
DEFAULT_API_VERSION = "v1beta"


@dataclass(frozen=True)
class LiveClientSettings:
    """Connection lifecycle constants.

    Attributes:
        max_reconnect_attempts: Attempt ceiling before auto-reconnect turns off.
        reconnect_base_delay: First backoff delay (seconds).
        normal_closure_code: Close code that never triggers reconnection.
        goaway_lead_time: How long before a GoAway deadline to hand over (seconds).
        auto_reconnect: Initial auto-reconnect flag.
    """

    max_reconnect_attempts: int = DEFAULT_MAX_RECONNECT_ATTEMPTS
    reconnect_base_delay: float = DEFAULT_RECONNECT_BASE_DELAY
    normal_closure_code: int = NORMAL_CLOSURE_CODE
    goaway_lead_time: float = 1.0
    auto_reconnect: bool = True

    def __post_init__(self) -> None:
        if self.max_reconnect_attempts < 0:
            raise ValueError("max_reconnect_attempts must be >= 0")
        if self.reconnect_base_delay < 0:
            raise ValueError("reconnect_base_delay must be >= 0")
        if self.goaway_lead_time < 0:
            raise ValueError("goaway_lead_time must be >= 0")


@dataclass(frozen=True)
class EndpointSettings:
    """Where and how to open the WebSocket.

    Attributes:
        host: Service host.
        api_version: API version segment of the service path.
        api_key: API key; falls back to the GEMINI_API_KEY environment variable.
        open_timeout: Connection timeout (seconds).
        ping_interval: Keepalive ping interval (seconds), None to disable.
    """

    host: str = DEFAULT_HOST
    api_version: str = DEFAULT_API_VERSION
    api_key: str | None = None
    open_timeout: float = 15.0
    ping_interval: int | None = 20

    def resolved_api_key(self) -> str | None:
        return self.api_key or os.environ.get(API_KEY_ENV) or None

    def url(self) -> str:
        """Build the bidirectional GenerateContent endpoint URL."""
        path = (
            f"/ws/google.ai.generativelanguage.{self.api_version}"
            ".GenerativeService.BidiGenerateContent"
        )
        api_key = self.resolved_api_key()
        query = f"?{urlencode({'key': api_key})}" if api_key else ""
        return f"wss://{self.host}{path}{query}"


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load YAML file contents."""
    if not path.exists():
        raise SettingsLoadError(f"File not found: {path}")
    try:
        with path.open() as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as err:
        raise SettingsLoadError(f"Invalid YAML in {path}: {err}") from err
    if not isinstance(data, dict):
        raise SettingsLoadError(f"Expected a mapping at the top of {path}")
    return data


def _build(cls: type[Any], section: str, data: Any) -> Any:
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise SettingsLoadError(f"Section '{section}' must be a mapping")

    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise SettingsLoadError(
            f"Unknown keys in section '{section}': {', '.join(unknown)}"
        )

    try:
        return cls(**data)
    except (TypeError, ValueError) as err:
        raise SettingsLoadError(f"Invalid section '{section}': {err}") from err


def load_settings(path: Path | str) -> tuple[LiveClientSettings, EndpointSettings]:
    """Load client and endpoint settings from a YAML file.

    Both sections are optional; missing ones take the defaults.

    Raises:
        SettingsLoadError: If the file is missing or malformed.
    """
    data = _load_yaml(Path(path))
    unknown = sorted(set(data) - {"reconnect", "endpoint"})
    if unknown:
        raise SettingsLoadError(f"Unknown sections: {', '.join(unknown)}")

    settings = _build(LiveClientSettings, "reconnect", data.get("reconnect"))
    endpoint = _build(EndpointSettings, "endpoint", data.get("endpoint"))
    return settings, endpoint
