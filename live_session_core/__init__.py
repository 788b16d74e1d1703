"""Streaming session client for realtime multimodal inference services."""

__version__ = "0.1.0"

from .client import ConnectionStatus, LiveClient
from .config import EndpointSettings, LiveClientSettings, load_settings
from .errors import (
    LiveClientError,
    LiveConnectionError,
    LiveHandshakeError,
    LiveProtocolError,
    LiveTimeout,
    SettingsLoadError,
)
from .events import EventEmitter, LiveEvent
from .logs import (
    BufferLogSink,
    CallbackLogSink,
    LoggerLogSink,
    LogSink,
    NullLogSink,
    StreamingLog,
)
from .messages import (
    GoAwayWarning,
    InboundMessage,
    ModelTurn,
    ResumptionUpdate,
    ServerContent,
    SetupComplete,
    ToolCall,
    ToolCallCancellation,
    Unrecognized,
    classify_message,
)
from .protocol import MediaChunk
from .reconnect import (
    NORMAL_CLOSURE_CODE,
    ReconnectionState,
    ReconnectionStatus,
    backoff_delay,
)
from .transport import WebSocketConnector

__all__ = [
    "NORMAL_CLOSURE_CODE",
    "BufferLogSink",
    "CallbackLogSink",
    "ConnectionStatus",
    "EndpointSettings",
    "EventEmitter",
    "GoAwayWarning",
    "InboundMessage",
    "LiveClient",
    "LiveClientError",
    "LiveClientSettings",
    "LiveConnectionError",
    "LiveEvent",
    "LiveHandshakeError",
    "LiveProtocolError",
    "LiveTimeout",
    "LogSink",
    "LoggerLogSink",
    "MediaChunk",
    "ModelTurn",
    "NullLogSink",
    "ReconnectionState",
    "ReconnectionStatus",
    "ResumptionUpdate",
    "ServerContent",
    "SettingsLoadError",
    "SetupComplete",
    "StreamingLog",
    "ToolCall",
    "ToolCallCancellation",
    "Unrecognized",
    "WebSocketConnector",
    "__version__",
    "backoff_delay",
    "classify_message",
    "load_settings",
]
