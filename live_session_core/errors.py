"""Client error types for live inference sessions."""

from __future__ import annotations


class LiveClientError(Exception):
    """Base error for live session client failures."""


class LiveTimeout(LiveClientError):
    """Timeout while opening the live session."""


class LiveConnectionError(LiveClientError):
    """Network connection to the service failed or is not established."""


class LiveHandshakeError(LiveClientError):
    """WebSocket handshake failed."""


class LiveProtocolError(LiveClientError):
    """A frame could not be encoded or decoded."""


class SettingsLoadError(LiveClientError):
    """Settings file is missing or malformed."""
