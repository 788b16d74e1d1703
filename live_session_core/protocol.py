"""Protocol helpers for live session frames.

This module builds the client -> server JSON frames of the bidirectional
GenerateContent WebSocket protocol. Builders are pure and never mutate
caller-supplied values.
"""

from __future__ import annotations

import base64
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

# Keys of a connect config that the wire protocol nests under generationConfig.
GENERATION_CONFIG_KEYS: frozenset[str] = frozenset(
    {
        "responseModalities",
        "speechConfig",
        "temperature",
        "topP",
        "topK",
        "maxOutputTokens",
        "candidateCount",
        "seed",
        "presencePenalty",
        "frequencyPenalty",
        "mediaResolution",
        "enableAffectiveDialog",
    }
)

CONTEXT_WINDOW_COMPRESSION: dict[str, Any] = {"slidingWindow": {}}

_DURATION_RE = re.compile(r"^\s*(?P<value>\d+(?:\.\d+)?)\s*(?P<unit>ms|s)?\s*$")


@dataclass(frozen=True)
class MediaChunk:
    """One realtime media chunk (base64 payload tagged with its mime type)."""

    mime_type: str
    data: str

    @classmethod
    def from_bytes(cls, mime_type: str, raw: bytes) -> MediaChunk:
        """Encode raw media bytes into a chunk."""
        return cls(mime_type, base64.b64encode(raw).decode("ascii"))

    @classmethod
    def coerce(cls, value: MediaChunk | Mapping[str, Any]) -> MediaChunk:
        """Accept a chunk or a ``{"mimeType", "data"}`` mapping."""
        if isinstance(value, MediaChunk):
            return value
        mime_type = value.get("mimeType", value.get("mime_type"))
        data = value.get("data")
        if not isinstance(mime_type, str):
            raise ValueError("Media chunk requires a string mimeType")
        if isinstance(data, bytes):
            return cls.from_bytes(mime_type, data)
        if not isinstance(data, str):
            raise ValueError("Media chunk data must be base64 text or bytes")
        return cls(mime_type, data)

    @property
    def is_audio(self) -> bool:
        return "audio" in self.mime_type

    @property
    def is_video(self) -> bool:
        return "image" in self.mime_type

    def to_wire(self) -> dict[str, str]:
        return {"mimeType": self.mime_type, "data": self.data}


def _model_path(model: str) -> str:
    return model if model.startswith("models/") else f"models/{model}"


def build_session_options(
    config: Mapping[str, Any] | None, handle: str | None
) -> dict[str, Any]:
    """Augment a connect config with resumption and compression options.

    Args:
        config: Caller-supplied connect config (left untouched).
        handle: Resumption handle to resume from, if one is held.

    Returns:
        A new config dict. ``sessionResumption`` always requests handles from
        the server and carries ``handle`` when given.
    """
    options: dict[str, Any] = dict(config or {})
    options["sessionResumption"] = {"handle": handle} if handle else {}
    options["contextWindowCompression"] = dict(CONTEXT_WINDOW_COMPRESSION)
    return options


def build_setup(model: str, config: Mapping[str, Any] | None) -> dict[str, Any]:
    """Build the initial setup frame for a session.

    Generation parameters of the flat connect config are moved under
    ``generationConfig``; every other key is copied verbatim.
    """
    setup: dict[str, Any] = {"model": _model_path(model)}
    generation: dict[str, Any] = {}

    for key, value in (config or {}).items():
        if value is None:
            continue
        if key in GENERATION_CONFIG_KEYS:
            generation[key] = value
        elif key == "generationConfig" and isinstance(value, Mapping):
            generation.update(value)
        else:
            setup[key] = value

    if generation:
        setup["generationConfig"] = generation
    return {"setup": setup}


def build_realtime_input(chunk: MediaChunk) -> dict[str, Any]:
    """Build a realtimeInput frame carrying a single media chunk."""
    return {"realtimeInput": {"mediaChunks": [chunk.to_wire()]}}


def build_tool_response(
    function_responses: Sequence[Mapping[str, Any]],
) -> dict[str, Any]:
    """Build a toolResponse frame."""
    return {"toolResponse": {"functionResponses": list(function_responses)}}


def build_client_content(
    parts: Sequence[Mapping[str, Any]], turn_complete: bool
) -> dict[str, Any]:
    """Build a clientContent frame holding one user turn."""
    return {
        "clientContent": {
            "turns": [{"role": "user", "parts": list(parts)}],
            "turnComplete": turn_complete,
        }
    }


def as_part_list(
    parts: Mapping[str, Any] | Sequence[Mapping[str, Any]],
) -> list[Mapping[str, Any]]:
    """Normalize a single part or an ordered sequence of parts into a list."""
    if isinstance(parts, Mapping):
        return [parts]
    return list(parts)


def describe_media(chunks: Sequence[MediaChunk]) -> str:
    """Summarize a realtime batch for logging."""
    has_audio = any(chunk.is_audio for chunk in chunks)
    has_video = any(chunk.is_video for chunk in chunks)
    if has_audio and has_video:
        return "audio + video"
    if has_audio:
        return "audio"
    if has_video:
        return "video"
    return "unknown"


def parse_duration(value: Any) -> float | None:
    """Parse a time-remaining value into seconds.

    Accepts protobuf JSON durations (``"10s"``), millisecond strings
    (``"500ms"``) and bare numbers, which are read as milliseconds.
    Returns None for missing, malformed or negative values.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        return value / 1000.0 if value >= 0 else None

    if isinstance(value, Mapping):
        # Structured Duration: {"seconds": ..., "nanos": ...}
        try:
            seconds = float(value.get("seconds", 0)) + float(value.get("nanos", 0)) / 1e9
        except (TypeError, ValueError):
            return None
        return seconds if seconds >= 0 else None

    if not isinstance(value, str):
        return None

    match = _DURATION_RE.match(value)
    if match is None:
        return None

    number = float(match.group("value"))
    if match.group("unit") == "s":
        return number
    return number / 1000.0
