"""Inbound message classification.

Every server frame is mapped to exactly one variant of ``InboundMessage``.
Classification only looks at message shape; payloads are routed untouched
apart from decoding inline audio into raw bytes.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from .protocol import parse_duration

_LOGGER = logging.getLogger(__name__)

AUDIO_MIME_PREFIX = "audio/pcm"


@dataclass(frozen=True)
class SetupComplete:
    """Server acknowledged the setup frame."""


@dataclass(frozen=True)
class GoAwayWarning:
    """Server will terminate the connection after ``time_left``."""

    time_left: Any = None
    time_left_seconds: float | None = None


@dataclass(frozen=True)
class ResumptionUpdate:
    """New session resumption state."""

    new_handle: str | None = None
    resumable: bool = False


@dataclass(frozen=True)
class ToolCall:
    """Model requested one or more function calls."""

    function_calls: tuple[dict[str, Any], ...] = ()
    raw: dict[str, Any] = field(default_factory=lambda: {})


@dataclass(frozen=True)
class ToolCallCancellation:
    """Model withdrew previously issued function calls."""

    ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class ModelTurn:
    """Ordered non-audio parts of one model turn."""

    parts: tuple[dict[str, Any], ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {"modelTurn": {"parts": [dict(part) for part in self.parts]}}


@dataclass(frozen=True)
class ServerContent:
    """Generated content and turn markers.

    ``interrupted`` excludes everything else. ``turn_complete`` and the model
    turn fields may both be set by a single frame.
    """

    interrupted: bool = False
    turn_complete: bool = False
    audio: tuple[bytes, ...] = ()
    model_turn: ModelTurn | None = None


@dataclass(frozen=True)
class Unrecognized:
    """Frame that matched no known shape."""

    raw: Any = None
    reason: str = "no known marker"


InboundMessage = (
    SetupComplete
    | GoAwayWarning
    | ResumptionUpdate
    | ToolCall
    | ToolCallCancellation
    | ServerContent
    | Unrecognized
)


def _field(message: Mapping[str, Any], camel: str, snake: str) -> Any:
    if camel in message:
        return message[camel]
    return message.get(snake)


def _has(message: Mapping[str, Any], camel: str, snake: str) -> bool:
    return camel in message or snake in message


def _decode(raw: Any) -> Mapping[str, Any] | None:
    if isinstance(raw, Mapping):
        return raw
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            return None
    if isinstance(raw, str):
        try:
            decoded = json.loads(raw)
        except ValueError:
            return None
        return decoded if isinstance(decoded, Mapping) else None
    return None


def _is_audio_part(part: Any) -> bool:
    if not isinstance(part, Mapping):
        return False
    inline = _field(part, "inlineData", "inline_data")
    if not isinstance(inline, Mapping):
        return False
    mime_type = _field(inline, "mimeType", "mime_type")
    return isinstance(mime_type, str) and mime_type.startswith(AUDIO_MIME_PREFIX)


def _decode_audio(part: Mapping[str, Any]) -> bytes | None:
    data = _field(_field(part, "inlineData", "inline_data"), "data", "data")
    if isinstance(data, (bytes, bytearray)):
        return bytes(data) or None
    if not data or not isinstance(data, str):
        return None
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        _LOGGER.debug("Skipping audio part with invalid base64 payload")
        return None


def _sequence(value: Any) -> tuple[Any, ...] | None:
    """Items of a JSON array field; None when the field is not an array."""
    if value is None:
        return ()
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return tuple(value)
    return None


def _classify_server_content(
    content: Any, message: Mapping[str, Any]
) -> ServerContent | Unrecognized:
    if not isinstance(content, Mapping):
        return ServerContent()

    if "interrupted" in content:
        return ServerContent(interrupted=True)

    turn_complete = _has(content, "turnComplete", "turn_complete")

    if not _has(content, "modelTurn", "model_turn"):
        return ServerContent(turn_complete=turn_complete)

    model_turn = _field(content, "modelTurn", "model_turn") or {}
    parts = _sequence(model_turn.get("parts") if isinstance(model_turn, Mapping) else None)
    if parts is None:
        return Unrecognized(message, "malformed serverContent")

    audio: list[bytes] = []
    others: list[dict[str, Any]] = []
    for part in parts:
        if _is_audio_part(part):
            decoded = _decode_audio(part)
            if decoded is not None:
                audio.append(decoded)
        elif isinstance(part, Mapping):
            others.append(dict(part))

    return ServerContent(
        turn_complete=turn_complete,
        audio=tuple(audio),
        model_turn=ModelTurn(tuple(others)) if others else None,
    )


def classify_message(raw: Any) -> InboundMessage:
    """Classify one raw server frame.

    Args:
        raw: A decoded mapping, or the JSON text/bytes of a frame.

    Returns:
        Exactly one ``InboundMessage`` variant. Never raises.
    """
    message = _decode(raw)
    if message is None:
        return Unrecognized(raw, "payload is not a JSON object")

    if _has(message, "setupComplete", "setup_complete"):
        return SetupComplete()

    if _has(message, "goAway", "go_away"):
        go_away = _field(message, "goAway", "go_away")
        time_left = (
            _field(go_away, "timeLeft", "time_left")
            if isinstance(go_away, Mapping)
            else None
        )
        return GoAwayWarning(time_left, parse_duration(time_left))

    if _has(message, "sessionResumptionUpdate", "session_resumption_update"):
        update = _field(message, "sessionResumptionUpdate", "session_resumption_update")
        if not isinstance(update, Mapping):
            return ResumptionUpdate()
        handle = _field(update, "newHandle", "new_handle")
        return ResumptionUpdate(
            new_handle=handle if isinstance(handle, str) and handle else None,
            resumable=bool(update.get("resumable", False)),
        )

    if _has(message, "toolCall", "tool_call"):
        tool_call = _field(message, "toolCall", "tool_call")
        if not isinstance(tool_call, Mapping):
            tool_call = {}
        calls = _sequence(_field(tool_call, "functionCalls", "function_calls"))
        if calls is None:
            return Unrecognized(message, "malformed toolCall")
        return ToolCall(
            function_calls=tuple(dict(call) for call in calls if isinstance(call, Mapping)),
            raw=dict(tool_call),
        )

    if _has(message, "toolCallCancellation", "tool_call_cancellation"):
        cancellation = _field(message, "toolCallCancellation", "tool_call_cancellation")
        ids = _sequence(cancellation.get("ids") if isinstance(cancellation, Mapping) else None)
        if ids is None:
            return Unrecognized(message, "malformed toolCallCancellation")
        return ToolCallCancellation(tuple(str(call_id) for call_id in ids))

    if _has(message, "serverContent", "server_content"):
        return _classify_server_content(
            _field(message, "serverContent", "server_content"), message
        )

    return Unrecognized(message)
