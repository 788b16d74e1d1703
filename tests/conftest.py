"""Pytest configuration and fixtures for live_session_core tests."""

from __future__ import annotations

import asyncio
import base64
from collections.abc import Callable, Mapping, Sequence
from typing import Any

import pytest

from live_session_core import (
    BufferLogSink,
    LiveClient,
    LiveClientSettings,
    LiveConnectionError,
)
from live_session_core.protocol import MediaChunk
from live_session_core.transport.base import (
    SessionCallbacks,
    TransportConnector,
    TransportSession,
)


class FakeSession(TransportSession):
    """In-memory transport session recording everything sent to it."""

    def __init__(self, callbacks: SessionCallbacks) -> None:
        self.callbacks = callbacks
        self.media: list[MediaChunk] = []
        self.tool_responses: list[list[Mapping[str, Any]]] = []
        self.contents: list[tuple[list[Mapping[str, Any]], bool]] = []
        self.closed = False
        self.fail_sends = False

    def _check(self) -> None:
        if self.fail_sends or self.closed:
            raise LiveConnectionError("WebSocket is closed")

    async def send_realtime_input(self, chunk: MediaChunk) -> None:
        self._check()
        self.media.append(chunk)

    async def send_tool_response(
        self, function_responses: Sequence[Mapping[str, Any]]
    ) -> None:
        self._check()
        self.tool_responses.append(list(function_responses))

    async def send_client_content(
        self, parts: Sequence[Mapping[str, Any]], turn_complete: bool
    ) -> None:
        self._check()
        self.contents.append((list(parts), turn_complete))

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.callbacks.on_close(1000, "")

    # Server-side helpers

    def deliver(self, message: Any) -> None:
        self.callbacks.on_message(message)

    def drop(self, code: int = 1006, reason: str = "") -> None:
        """Simulate the server dropping the connection."""
        self.closed = True
        self.callbacks.on_close(code, reason)


class FakeConnector(TransportConnector):
    """Connector with scripted outcomes.

    Each open consumes the next outcome: None succeeds, an exception is
    raised. When the script is exhausted, opens succeed.
    """

    def __init__(self, outcomes: Sequence[BaseException | None] = ()) -> None:
        self.outcomes: list[BaseException | None] = list(outcomes)
        self.opens: list[dict[str, Any]] = []
        self.sessions: list[FakeSession] = []
        self.open_times: list[float] = []
        self.gate: asyncio.Event | None = None

    async def open(
        self,
        model: str,
        config: Mapping[str, Any],
        callbacks: SessionCallbacks,
    ) -> FakeSession:
        self.opens.append({"model": model, "config": dict(config)})
        self.open_times.append(asyncio.get_running_loop().time())
        if self.gate is not None:
            await self.gate.wait()
        outcome = self.outcomes.pop(0) if self.outcomes else None
        if outcome is not None:
            raise outcome
        session = FakeSession(callbacks)
        self.sessions.append(session)
        callbacks.on_open()
        return session

    @property
    def last_session(self) -> FakeSession:
        return self.sessions[-1]


def audio_part(raw: bytes, mime_type: str = "audio/pcm;rate=24000") -> dict[str, Any]:
    return {
        "inlineData": {
            "mimeType": mime_type,
            "data": base64.b64encode(raw).decode("ascii"),
        }
    }


def text_part(text: str) -> dict[str, Any]:
    return {"text": text}


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll ``predicate`` until it holds or fail after ``timeout`` seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)


class Recorder:
    """Collects notifications in arrival order."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    def handler(self, name: str) -> Callable[..., None]:
        def _record(*args: Any) -> None:
            self.calls.append((name, args))

        return _record

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def of(self, name: str) -> list[tuple[Any, ...]]:
        return [args for call_name, args in self.calls if call_name == name]


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def log_sink() -> BufferLogSink:
    return BufferLogSink()


@pytest.fixture
def fast_settings() -> LiveClientSettings:
    """Settings with millisecond-scale delays so backoff chains run quickly."""
    return LiveClientSettings(reconnect_base_delay=0.001, goaway_lead_time=0.0)


@pytest.fixture
def client(
    connector: FakeConnector, log_sink: BufferLogSink, fast_settings: LiveClientSettings
) -> LiveClient:
    return LiveClient(connector, settings=fast_settings, log_sink=log_sink, name="test")
