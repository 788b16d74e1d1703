"""High-level client for live multimodal inference sessions.

This module provides the canonical API for application code to talk to the
live service. It handles:
- Connection state machine (connect, disconnect, transport callbacks)
- Session resumption and context window compression options
- Exponential-backoff reconnection and GoAway handover
- Demultiplexing server frames into typed notifications
- Outbound realtime media, tool responses and conversational turns

Applications subscribe to notifications with ``client.on(LiveEvent.X, ...)``
and never talk to the transport directly.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping, Sequence
from enum import Enum
from typing import Any

from .config import LiveClientSettings
from .errors import LiveClientError
from .events import EventEmitter, Handler, LiveEvent
from .logs import LoggerLogSink, LogSink, StreamingLog
from .messages import (
    GoAwayWarning,
    InboundMessage,
    ResumptionUpdate,
    ServerContent,
    SetupComplete,
    ToolCall,
    ToolCallCancellation,
    classify_message,
)
from .protocol import MediaChunk, as_part_list, build_session_options, describe_media
from .reconnect import ReconnectionState, ReconnectionStatus
from .transport.base import TransportConnector, TransportSession

_LOGGER = logging.getLogger(__name__)


class ConnectionStatus(str, Enum):
    """Connection lifecycle status."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


# Why a session binding stopped being current.
_RETIRED_DISCONNECT = "disconnect"
_RETIRED_HANDOVER = "handover"
_RETIRED_CLOSED = "closed"
_RETIRED_FAILED = "failed"


class _SessionBinding:
    """Callbacks handed to exactly one transport session.

    Once retired, the binding stops driving client state so late callbacks
    from a replaced or closed session cannot disturb the current one.
    """

    def __init__(self, client: LiveClient) -> None:
        self._client = client
        self.retired: str | None = None

    def on_open(self) -> None:
        try:
            self._client._handle_open(self)
        except Exception as err:
            _LOGGER.exception("[%s] open callback error: %s", self._client.name, err)

    def on_message(self, raw: Any) -> None:
        try:
            self._client._handle_message(self, raw)
        except Exception as err:
            _LOGGER.exception("[%s] message callback error: %s", self._client.name, err)

    def on_error(self, message: str) -> None:
        try:
            self._client._handle_error(self, message)
        except Exception as err:
            _LOGGER.exception("[%s] error callback error: %s", self._client.name, err)

    def on_close(self, code: int, reason: str) -> None:
        try:
            self._client._handle_close(self, code, reason)
        except Exception as err:
            _LOGGER.exception("[%s] close callback error: %s", self._client.name, err)


class LiveClient:
    """Long-lived streaming session client.

    Usage:
        client = LiveClient(WebSocketConnector(EndpointSettings(api_key="...")))
        client.on(LiveEvent.AUDIO, play_pcm)
        client.on(LiveEvent.CONTENT, render_turn)
        await client.connect("models/gemini-live-2.5-flash-preview", config)
        await client.send([{"text": "Hello"}])
        await client.disconnect()
    """

    def __init__(
        self,
        connector: TransportConnector,
        *,
        settings: LiveClientSettings | None = None,
        log_sink: LogSink | None = None,
        name: str = "live",
    ) -> None:
        """Initialize client.

        Args:
            connector: Opens transport sessions
            settings: Reconnection constants (defaults when omitted)
            log_sink: Destination of structured log entries
            name: Prefix used in log messages
        """
        self.name = name
        self.events = EventEmitter()

        self._connector = connector
        self._settings = settings or LiveClientSettings()
        self._log_sink = log_sink or LoggerLogSink()

        # Connection state
        self._status = ConnectionStatus.DISCONNECTED
        self._session: TransportSession | None = None
        self._binding: _SessionBinding | None = None
        self._model: str | None = None
        self._config: dict[str, Any] | None = None

        # Resumption / reconnection
        self._resumption_handle: str | None = None
        self._reconnect = ReconnectionState(
            enabled=self._settings.auto_reconnect,
            max_attempts=self._settings.max_reconnect_attempts,
            base_delay=self._settings.reconnect_base_delay,
        )
        self._manual_disconnect = False
        self._reconnect_task: asyncio.Task[None] | None = None
        self._goaway_task: asyncio.Task[None] | None = None

    # -------------------------------------------------------------------------
    # Public API: State
    # -------------------------------------------------------------------------

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def is_connected(self) -> bool:
        return self._status is ConnectionStatus.CONNECTED

    @property
    def session(self) -> TransportSession | None:
        return self._session

    @property
    def model(self) -> str | None:
        return self._model

    @property
    def config(self) -> dict[str, Any]:
        """Copy of the config given to the last connect."""
        return dict(self._config or {})

    @property
    def resumption_handle(self) -> str | None:
        return self._resumption_handle

    @property
    def settings(self) -> LiveClientSettings:
        return self._settings

    # -------------------------------------------------------------------------
    # Public API: Notifications
    # -------------------------------------------------------------------------

    def on(self, event: LiveEvent, handler: Handler) -> Any:
        """Subscribe to a notification; returns an unsubscribe callable."""
        return self.events.on(event, handler)

    def once(self, event: LiveEvent, handler: Handler) -> Any:
        return self.events.once(event, handler)

    def off(self, event: LiveEvent, handler: Handler) -> None:
        self.events.off(event, handler)

    # -------------------------------------------------------------------------
    # Public API: Connection Management
    # -------------------------------------------------------------------------

    async def connect(
        self,
        model: str,
        config: Mapping[str, Any] | None = None,
        *,
        resume: bool = True,
    ) -> bool:
        """Open a session for ``model``.

        Args:
            model: Model name
            config: Connect config, passed through to the service
            resume: Send the stored resumption handle, if any. Passing False
                starts a fresh session without forgetting the handle.

        Returns:
            True if connection successful, False otherwise
        """
        if self._status is not ConnectionStatus.DISCONNECTED:
            _LOGGER.debug(
                "[%s] Connect ignored while %s", self.name, self._status.value
            )
            return False

        self._set_status(ConnectionStatus.CONNECTING)
        self._model = model
        self._config = dict(config or {})
        self._manual_disconnect = False

        handle = self._resumption_handle if resume else None
        options = build_session_options(self._config, handle)
        binding = _SessionBinding(self)

        _LOGGER.info(
            "[%s] Connecting to %s (%s)",
            self.name,
            model,
            "resuming session" if handle else "new session",
        )

        try:
            session = await self._connector.open(model, options, binding)
        except asyncio.CancelledError:
            binding.retired = _RETIRED_FAILED
            self._set_status(ConnectionStatus.DISCONNECTED)
            raise
        except LiveClientError as err:
            _LOGGER.warning("[%s] Connection failed: %s", self.name, err)
            self._connect_failed(binding)
            return False
        except Exception as err:
            _LOGGER.exception("[%s] Unexpected connection error: %s", self.name, err)
            self._connect_failed(binding)
            return False

        if self._manual_disconnect:
            # disconnect() was requested while the transport was opening
            binding.retired = _RETIRED_DISCONNECT
            self._set_status(ConnectionStatus.DISCONNECTED)
            _LOGGER.info("[%s] Disconnect requested during connect; closing", self.name)
            await self._close_session(session)
            return False

        if binding.retired is not None:
            _LOGGER.warning("[%s] Session closed while opening", self.name)
            self._connect_failed(binding)
            return False

        self._session = session
        self._binding = binding
        self._set_status(ConnectionStatus.CONNECTED)
        self._reconnect.reset()
        self._reconnect_task = self._cancel_task(self._reconnect_task)

        _LOGGER.info("[%s] Connected", self.name)
        return True

    async def disconnect(self) -> bool:
        """Close the current session without triggering reconnection.

        Pending reconnection and GoAway timers are always cancelled.

        Returns:
            True if a session was closed, False if there was none
        """
        self._manual_disconnect = True
        self._cancel_timers()

        session, binding = self._session, self._binding
        if session is None or binding is None:
            return False

        binding.retired = _RETIRED_DISCONNECT
        self._session = None
        self._binding = None
        self._set_status(ConnectionStatus.DISCONNECTED)

        self._log("client.close", "Disconnected")
        await self._close_session(session)
        return True

    async def close(self) -> None:
        """Tear down the client: disconnect and wait for async handlers."""
        await self.disconnect()
        await self.events.drain()

    def set_auto_reconnect(self, enabled: bool) -> None:
        """Enable or disable auto-reconnection; resets the attempt budget."""
        self._reconnect.set_enabled(enabled)
        if not enabled:
            self._reconnect_task = self._cancel_task(self._reconnect_task)
        _LOGGER.info(
            "[%s] Auto-reconnection %s", self.name, "enabled" if enabled else "disabled"
        )

    def get_reconnection_status(self) -> ReconnectionStatus:
        return self._reconnect.snapshot(
            has_resumption_handle=self._resumption_handle is not None
        )

    # -------------------------------------------------------------------------
    # Public API: Outbound
    # -------------------------------------------------------------------------

    async def send_realtime_input(
        self, chunks: Iterable[MediaChunk | Mapping[str, Any]]
    ) -> bool:
        """Stream media chunks (e.g. "audio/pcm" and "image/jpeg") in order.

        Returns:
            True if every chunk was handed to the transport
        """
        session = self._session
        if session is None:
            return False

        try:
            batch = [MediaChunk.coerce(chunk) for chunk in chunks]
        except ValueError as err:
            _LOGGER.debug("[%s] Dropping realtime input: %s", self.name, err)
            return False

        try:
            for chunk in batch:
                await session.send_realtime_input(chunk)
        except LiveClientError as err:
            _LOGGER.warning("[%s] Failed to send realtime input: %s", self.name, err)
            return False

        self._log("client.realtimeInput", describe_media(batch))
        return True

    async def send_tool_response(self, response: Mapping[str, Any]) -> bool:
        """Answer function calls; ignored when there are no function responses.

        Returns:
            True if sent successfully, False otherwise
        """
        function_responses: Sequence[Mapping[str, Any]] | None = None
        if isinstance(response, Mapping):
            function_responses = response.get(
                "functionResponses", response.get("function_responses")
            )
        if not function_responses:
            return False

        session = self._session
        if session is None:
            return False

        try:
            await session.send_tool_response(list(function_responses))
        except LiveClientError as err:
            _LOGGER.warning("[%s] Failed to send tool response: %s", self.name, err)
            return False

        self._log("client.toolResponse", dict(response))
        return True

    async def send(
        self,
        parts: Mapping[str, Any] | Sequence[Mapping[str, Any]],
        turn_complete: bool = True,
    ) -> bool:
        """Send content parts such as ``{"text": ...}`` as one user turn.

        Returns:
            True if sent successfully, False otherwise
        """
        session = self._session
        if session is None:
            return False

        part_list = as_part_list(parts)
        try:
            await session.send_client_content(part_list, turn_complete)
        except LiveClientError as err:
            _LOGGER.warning("[%s] Failed to send content: %s", self.name, err)
            return False

        # Every outgoing turn is logged, control turns included.
        self._log("client.send", {"turns": part_list, "turnComplete": turn_complete})
        return True

    # -------------------------------------------------------------------------
    # Internal: Connection State Machine
    # -------------------------------------------------------------------------

    def _set_status(self, status: ConnectionStatus) -> None:
        if self._status is not status:
            _LOGGER.debug(
                "[%s] State: %s → %s", self.name, self._status.value, status.value
            )
            self._status = status

    def _connect_failed(self, binding: _SessionBinding) -> None:
        binding.retired = _RETIRED_FAILED
        self._set_status(ConnectionStatus.DISCONNECTED)
        if self._reconnect.enabled and not self._manual_disconnect:
            self._schedule_reconnect()

    async def _close_session(self, session: TransportSession) -> None:
        try:
            await session.close()
        except LiveClientError as err:
            _LOGGER.warning("[%s] Session close failed: %s", self.name, err)

    def _log(self, log_type: str, message: Any) -> None:
        entry = StreamingLog(type=log_type, message=message)
        self._log_sink.write(entry)
        self.events.emit(LiveEvent.LOG, entry)

    def _handle_open(self, binding: _SessionBinding) -> None:
        if binding.retired is not None:
            return
        self._log("client.open", "Connected")
        self.events.emit(LiveEvent.OPEN)

    def _handle_error(self, binding: _SessionBinding, message: str) -> None:
        if binding.retired is not None:
            _LOGGER.debug("[%s] Error from retired session: %s", self.name, message)
            return
        self._log("server.error", message)
        self.events.emit(LiveEvent.ERROR, message)

    def _handle_close(self, binding: _SessionBinding, code: int, reason: str) -> None:
        summary = f"disconnected with reason: {reason}" if reason else "disconnected"

        if binding.retired is not None:
            self._log("server.close", summary)
            if binding.retired == _RETIRED_DISCONNECT:
                self.events.emit(LiveEvent.CLOSE, code, reason)
            return

        self._log("server.close", summary)
        binding.retired = _RETIRED_CLOSED
        if binding is not self._binding:
            # Closed before connect() adopted the session; connect() reports it.
            return

        self._session = None
        self._binding = None
        self._set_status(ConnectionStatus.DISCONNECTED)
        self._goaway_task = self._cancel_task(self._goaway_task)

        if (
            self._reconnect.enabled
            and code != self._settings.normal_closure_code
            and not self._manual_disconnect
        ):
            _LOGGER.warning(
                "[%s] Connection lost (code=%d, %s); attempting auto-reconnection",
                self.name,
                code,
                reason or "unknown reason",
            )
            self._schedule_reconnect()

        self.events.emit(LiveEvent.CLOSE, code, reason)

    # -------------------------------------------------------------------------
    # Internal: Inbound Routing
    # -------------------------------------------------------------------------

    def _handle_message(self, binding: _SessionBinding, raw: Any) -> None:
        if binding.retired is not None:
            _LOGGER.debug("[%s] Dropping frame from retired session", self.name)
            return
        self._dispatch(classify_message(raw))

    def _dispatch(self, message: InboundMessage) -> None:
        if isinstance(message, SetupComplete):
            self._log("server.send", "setupComplete")
            self.events.emit(LiveEvent.SETUP_COMPLETE)

        elif isinstance(message, GoAwayWarning):
            self._handle_go_away(message)

        elif isinstance(message, ResumptionUpdate):
            if message.resumable and message.new_handle:
                self._resumption_handle = message.new_handle
                self._log(
                    "server.resumption", f"New resumption handle: {message.new_handle}"
                )
                _LOGGER.debug(
                    "[%s] Resumption handle updated: %s...",
                    self.name,
                    message.new_handle[:20],
                )

        elif isinstance(message, ToolCall):
            self._log("server.toolCall", {"toolCall": message.raw})
            self.events.emit(LiveEvent.TOOL_CALL, list(message.function_calls))

        elif isinstance(message, ToolCallCancellation):
            self._log("server.toolCallCancellation", {"ids": list(message.ids)})
            self.events.emit(LiveEvent.TOOL_CALL_CANCELLATION, list(message.ids))

        elif isinstance(message, ServerContent):
            self._handle_server_content(message)

        else:
            _LOGGER.debug("[%s] Unrecognized message: %s", self.name, message.reason)
            self._log("server.unrecognized", message.raw)

    def _handle_server_content(self, content: ServerContent) -> None:
        if content.interrupted:
            self._log("server.content", "interrupted")
            self.events.emit(LiveEvent.INTERRUPTED)
            return

        if content.turn_complete:
            self._log("server.content", "turnComplete")
            self.events.emit(LiveEvent.TURN_COMPLETE)

        for data in content.audio:
            self.events.emit(LiveEvent.AUDIO, data)
            self._log("server.audio", f"buffer ({len(data)})")

        if content.model_turn is not None:
            self.events.emit(LiveEvent.CONTENT, content.model_turn)
            self._log("server.content", content.model_turn.to_dict())

    def _handle_go_away(self, message: GoAwayWarning) -> None:
        self._log("server.goaway", f"Connection terminating in {message.time_left}")
        _LOGGER.warning(
            "[%s] Connection will terminate in %s", self.name, message.time_left
        )

        if not self._reconnect.enabled or message.time_left_seconds is None:
            return

        delay = max(0.0, message.time_left_seconds - self._settings.goaway_lead_time)
        self._goaway_task = self._cancel_task(self._goaway_task)
        self._goaway_task = asyncio.create_task(
            self._handover_after_delay(delay, self._binding)
        )

    # -------------------------------------------------------------------------
    # Internal: Reconnection
    # -------------------------------------------------------------------------

    def _schedule_reconnect(self) -> None:
        """Schedule reconnection attempt with exponential backoff."""
        pending = self._reconnect_task
        if (
            pending is not None
            and not pending.done()
            and pending is not asyncio.current_task()
        ):
            _LOGGER.debug("[%s] Reconnection already scheduled", self.name)
            return

        delay = self._reconnect.next_delay()
        if delay is None:
            _LOGGER.error(
                "[%s] Max reconnection attempts (%d) reached. Auto-reconnection disabled.",
                self.name,
                self._reconnect.max_attempts,
            )
            self._log(
                "client.reconnect",
                {"maxAttempts": self._reconnect.max_attempts, "exhausted": True},
            )
            return

        _LOGGER.info(
            "[%s] Scheduling reconnection attempt %d/%d in %.1fs",
            self.name,
            self._reconnect.attempts,
            self._reconnect.max_attempts,
            delay,
        )
        self._log(
            "client.reconnect",
            {
                "attempt": self._reconnect.attempts,
                "maxAttempts": self._reconnect.max_attempts,
                "delay": delay,
            },
        )
        self._reconnect_task = asyncio.create_task(self._reconnect_after_delay(delay))

    async def _reconnect_after_delay(self, delay: float) -> None:
        try:
            await asyncio.sleep(delay)
            if self._manual_disconnect or not self._reconnect.enabled:
                _LOGGER.debug("[%s] Reconnect skipped: disabled", self.name)
                return
            if self._status is not ConnectionStatus.DISCONNECTED:
                _LOGGER.debug(
                    "[%s] Reconnect skipped: already %s", self.name, self._status.value
                )
                return
            await self._attempt_reconnection()
        except asyncio.CancelledError:
            _LOGGER.debug("[%s] Reconnect cancelled", self.name)
        finally:
            if self._reconnect_task is asyncio.current_task():
                self._reconnect_task = None

    async def _attempt_reconnection(self) -> None:
        """Reconnect with the stored model and config."""
        if self._model is None or self._config is None:
            _LOGGER.error("[%s] Cannot reconnect: missing configuration or model", self.name)
            return

        _LOGGER.info("[%s] Attempting reconnection with session resumption", self.name)
        try:
            success = await self.connect(self._model, self._config)
        except Exception as err:
            _LOGGER.exception("[%s] Reconnection failed: %s", self.name, err)
            if self._reconnect.can_retry():
                self._schedule_reconnect()
            return

        if success:
            _LOGGER.info("[%s] Reconnected; session resumed", self.name)
            self.events.emit(LiveEvent.SETUP_COMPLETE)

    async def _handover_after_delay(
        self, delay: float, binding: _SessionBinding | None
    ) -> None:
        """Replace the session shortly before a GoAway deadline."""
        try:
            await asyncio.sleep(delay)
            if (
                self._manual_disconnect
                or not self._reconnect.enabled
                or self._status is not ConnectionStatus.CONNECTED
                or binding is None
                or binding is not self._binding
            ):
                _LOGGER.debug("[%s] GoAway handover skipped", self.name)
                return
            await self._handover(binding)
        except asyncio.CancelledError:
            _LOGGER.debug("[%s] GoAway handover cancelled", self.name)
        except Exception as err:
            _LOGGER.exception("[%s] GoAway handover error: %s", self.name, err)
        finally:
            if self._goaway_task is asyncio.current_task():
                self._goaway_task = None

    async def _handover(self, binding: _SessionBinding) -> None:
        session = self._session
        binding.retired = _RETIRED_HANDOVER
        self._session = None
        self._binding = None
        self._set_status(ConnectionStatus.DISCONNECTED)

        _LOGGER.info("[%s] Handing over to a resumed session", self.name)
        if session is not None:
            await self._close_session(session)
        await self._attempt_reconnection()

    # -------------------------------------------------------------------------
    # Internal: Timers
    # -------------------------------------------------------------------------

    @staticmethod
    def _cancel_task(task: asyncio.Task[None] | None) -> asyncio.Task[None] | None:
        """Cancel ``task`` unless it is the caller; returns what remains pending."""
        if task is None or task.done():
            return None
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        if task is current:
            return task
        task.cancel()
        return None

    def _cancel_timers(self) -> None:
        self._reconnect_task = self._cancel_task(self._reconnect_task)
        self._goaway_task = self._cancel_task(self._goaway_task)
