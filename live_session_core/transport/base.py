"""Transport contract consumed by the live client.

A connector opens one transport session per connect attempt. The session
reports lifecycle and inbound frames through the callbacks it was opened
with; callbacks are synchronous and must never raise.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any, Protocol

from ..protocol import MediaChunk


class SessionCallbacks(Protocol):
    """Lifecycle callbacks bound to one transport session."""

    def on_open(self) -> None: ...

    def on_message(self, raw: Any) -> None: ...

    def on_error(self, message: str) -> None: ...

    def on_close(self, code: int, reason: str) -> None: ...


class TransportSession(ABC):
    """An open bidirectional channel to the inference service."""

    @abstractmethod
    async def send_realtime_input(self, chunk: MediaChunk) -> None:
        """Send one realtime media chunk."""

    @abstractmethod
    async def send_tool_response(
        self, function_responses: Sequence[Mapping[str, Any]]
    ) -> None:
        """Send function call results."""

    @abstractmethod
    async def send_client_content(
        self, parts: Sequence[Mapping[str, Any]], turn_complete: bool
    ) -> None:
        """Send a conversational turn."""

    @abstractmethod
    async def close(self) -> None:
        """Close the channel with the normal closure code."""


class TransportConnector(ABC):
    """Factory for transport sessions."""

    @abstractmethod
    async def open(
        self,
        model: str,
        config: Mapping[str, Any],
        callbacks: SessionCallbacks,
    ) -> TransportSession:
        """Open a session.

        Raises:
            LiveClientError: If the session cannot be opened.
        """
