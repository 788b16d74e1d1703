"""Transport layer for live sessions.

This package contains all IO, wire framing, and network handling.

Components:
- base: Transport contract (connector, session, callbacks)
- ws: WebSocket connection management
- ws_client: WebSocket message iteration
- session: WebSocket-backed sessions and connector
"""

from .base import SessionCallbacks, TransportConnector, TransportSession
from .session import WebSocketConnector, WebSocketSession
from .ws import connect_websocket
from .ws_client import LiveWsClient, LiveWsMessage, LiveWsMessageType

__all__ = [
    "LiveWsClient",
    "LiveWsMessage",
    "LiveWsMessageType",
    "SessionCallbacks",
    "TransportConnector",
    "TransportSession",
    "WebSocketConnector",
    "WebSocketSession",
    "connect_websocket",
]
