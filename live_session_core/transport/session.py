"""WebSocket-backed transport sessions."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from typing import Any

from ..config import EndpointSettings
from ..errors import LiveClientError
from ..protocol import (
    MediaChunk,
    build_client_content,
    build_realtime_input,
    build_setup,
    build_tool_response,
)
from ..reconnect import NORMAL_CLOSURE_CODE
from .base import SessionCallbacks, TransportConnector, TransportSession
from .ws_client import ABNORMAL_CLOSURE_CODE, LiveWsClient, LiveWsMessageType

_LOGGER = logging.getLogger(__name__)

INTERNAL_ERROR_CODE = 1011


class WebSocketSession(TransportSession):
    """One open WebSocket plus its listener task.

    ``on_close`` is reported exactly once, whichever side closes first.
    """

    def __init__(self, ws: LiveWsClient, callbacks: SessionCallbacks) -> None:
        self._ws = ws
        self._callbacks = callbacks
        self._listen_task: asyncio.Task[None] | None = None
        self._closing = False
        self._close_reported = False

    async def start(self, setup: dict[str, Any]) -> None:
        """Send the setup frame, report open and start listening."""
        await self._ws.send_json(setup)
        self._callbacks.on_open()
        self._listen_task = asyncio.create_task(self._listen())

    @property
    def closed(self) -> bool:
        return self._close_reported

    async def send_realtime_input(self, chunk: MediaChunk) -> None:
        await self._ws.send_json(build_realtime_input(chunk))

    async def send_tool_response(
        self, function_responses: Sequence[Mapping[str, Any]]
    ) -> None:
        await self._ws.send_json(build_tool_response(function_responses))

    async def send_client_content(
        self, parts: Sequence[Mapping[str, Any]], turn_complete: bool
    ) -> None:
        await self._ws.send_json(build_client_content(parts, turn_complete))

    async def close(self) -> None:
        """Close the socket and wait for the listener to report the closure."""
        if self._closing:
            return
        self._closing = True

        try:
            await asyncio.wait_for(self._ws.close(), timeout=2.0)
        except TimeoutError:
            _LOGGER.warning("WebSocket close timed out")

        task = self._listen_task
        if task is not None and task is not asyncio.current_task():
            try:
                await asyncio.wait_for(task, timeout=2.0)
            except TimeoutError:
                _LOGGER.warning("Listener did not stop after close")
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise

        self._report_close(NORMAL_CLOSURE_CODE, "")

    async def _listen(self) -> None:
        message_count = 0
        try:
            async for msg in self._ws:
                if msg.type is LiveWsMessageType.TEXT:
                    message_count += 1
                    self._callbacks.on_message(msg.data)
                elif msg.type is LiveWsMessageType.CLOSED:
                    _LOGGER.debug(
                        "WebSocket closed (code=%s, %d messages)",
                        msg.code,
                        message_count,
                    )
                    self._report_close(msg.code or ABNORMAL_CLOSURE_CODE, msg.reason)
                    return
                elif msg.type is LiveWsMessageType.ERROR:
                    _LOGGER.warning("WebSocket error: %s", msg.data)
                    self._callbacks.on_error(msg.data or "WebSocket error")
                    self._report_close(INTERNAL_ERROR_CODE, msg.data or "")
                    return
        except asyncio.CancelledError:
            _LOGGER.debug("Listener cancelled (%d messages)", message_count)
            raise
        except LiveClientError as err:
            _LOGGER.warning("Client error: %s", err)
            self._callbacks.on_error(str(err))
            self._report_close(INTERNAL_ERROR_CODE, str(err))
        except Exception as err:
            _LOGGER.exception("Unexpected listener error: %s", err)
            self._callbacks.on_error(str(err))
            self._report_close(INTERNAL_ERROR_CODE, str(err))

    def _report_close(self, code: int, reason: str) -> None:
        if self._close_reported:
            return
        self._close_reported = True
        self._callbacks.on_close(code, reason)


class WebSocketConnector(TransportConnector):
    """Opens ``WebSocketSession`` instances against the configured endpoint."""

    def __init__(self, endpoint: EndpointSettings | None = None) -> None:
        self._endpoint = endpoint or EndpointSettings()

    @property
    def endpoint(self) -> EndpointSettings:
        return self._endpoint

    async def open(
        self,
        model: str,
        config: Mapping[str, Any],
        callbacks: SessionCallbacks,
    ) -> WebSocketSession:
        _LOGGER.debug("Opening session on %s for %s", self._endpoint.host, model)

        ws = LiveWsClient()
        opened = False
        try:
            await ws.connect(
                self._endpoint.url(),
                ping_interval=self._endpoint.ping_interval,
                timeout=self._endpoint.open_timeout,
            )
            session = WebSocketSession(ws, callbacks)
            await session.start(build_setup(model, config))
            opened = True
        finally:
            if not opened:
                await ws.close()
        return session
