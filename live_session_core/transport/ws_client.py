"""WebSocket client wrapper for live sessions."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from websockets.asyncio.client import ClientConnection
from websockets.exceptions import ConnectionClosed

from ..errors import LiveConnectionError, LiveProtocolError
from .ws import connect_websocket

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

ABNORMAL_CLOSURE_CODE = 1006


class LiveWsMessageType(Enum):
    """Normalized WebSocket message types."""

    TEXT = "text"
    CLOSED = "closed"
    ERROR = "error"


@dataclass(frozen=True)
class LiveWsMessage:
    """Normalized WebSocket message payload.

    ``code`` and ``reason`` are only set on CLOSED messages.
    """

    type: LiveWsMessageType
    data: str | None = None
    code: int | None = None
    reason: str = ""


class LiveWsClient:
    """Wrapper around websockets library for live sessions."""

    def __init__(self) -> None:
        self._ws: ClientConnection | None = None

    async def connect(
        self,
        url: str,
        *,
        ping_interval: int | None = 20,
        timeout: float = 15.0,
    ) -> None:
        """Connect to the service websocket."""
        self._ws = await connect_websocket(
            url,
            ping_interval=ping_interval,
            timeout=timeout,
        )

    async def close(self) -> None:
        """Close the websocket connection."""
        if self._ws is not None:
            await self._ws.close()

    async def send_json(self, payload: dict[str, Any]) -> None:
        """Send a JSON payload to the websocket.

        Raises:
            LiveConnectionError: If not connected or the socket is closed
            LiveProtocolError: If the payload is not JSON-serializable
        """
        if self._ws is None:
            raise LiveConnectionError("WebSocket is not connected")
        try:
            text = json.dumps(payload)
        except (TypeError, ValueError) as err:
            raise LiveProtocolError(f"Payload is not JSON-serializable: {err}") from err
        try:
            await self._ws.send(text)
        except ConnectionClosed as err:
            raise LiveConnectionError("WebSocket is closed") from err

    def __aiter__(self) -> AsyncIterator[LiveWsMessage]:
        if self._ws is None:
            raise LiveConnectionError("WebSocket is not connected")
        return self._iter_messages()

    async def _iter_messages(self) -> AsyncIterator[LiveWsMessage]:
        if self._ws is None:
            raise LiveConnectionError("WebSocket is not connected")

        try:
            async for msg in self._ws:
                normalized = self._normalize_message(msg)
                if normalized is None:
                    continue
                yield normalized
        except ConnectionClosed as err:
            rcvd = err.rcvd
            yield LiveWsMessage(
                LiveWsMessageType.CLOSED,
                code=rcvd.code if rcvd is not None else ABNORMAL_CLOSURE_CODE,
                reason=rcvd.reason if rcvd is not None else "",
            )
        except Exception as err:
            yield LiveWsMessage(LiveWsMessageType.ERROR, data=str(err) or type(err).__name__)
        else:
            # Normal iteration completion means the peer closed gracefully.
            code = getattr(self._ws, "close_code", None)
            reason = getattr(self._ws, "close_reason", None)
            yield LiveWsMessage(
                LiveWsMessageType.CLOSED,
                code=code if isinstance(code, int) else ABNORMAL_CLOSURE_CODE,
                reason=reason if isinstance(reason, str) else "",
            )

    @staticmethod
    def _normalize_message(msg: Any) -> LiveWsMessage | None:
        """Normalize frames into LiveWsMessage.

        The service delivers JSON in binary frames as well as text frames.
        """
        if isinstance(msg, str):
            return LiveWsMessage(LiveWsMessageType.TEXT, msg)
        if isinstance(msg, (bytes, bytearray, memoryview)):
            try:
                return LiveWsMessage(LiveWsMessageType.TEXT, bytes(msg).decode("utf-8"))
            except UnicodeDecodeError:
                return None
        return None
