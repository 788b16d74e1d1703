"""Typed notification surface of the live client."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

_LOGGER = logging.getLogger(__name__)

Handler = Callable[..., Any]


class LiveEvent(str, Enum):
    """Notifications published to application collaborators.

    Payloads:
        OPEN: none
        CLOSE: code (int), reason (str)
        ERROR: message (str)
        SETUP_COMPLETE: none
        AUDIO: raw PCM bytes
        CONTENT: ModelTurn
        INTERRUPTED: none
        TURN_COMPLETE: none
        TOOL_CALL: list of function calls
        TOOL_CALL_CANCELLATION: list of call ids
        LOG: StreamingLog
    """

    OPEN = "open"
    CLOSE = "close"
    ERROR = "error"
    SETUP_COMPLETE = "setupcomplete"
    AUDIO = "audio"
    CONTENT = "content"
    INTERRUPTED = "interrupted"
    TURN_COMPLETE = "turncomplete"
    TOOL_CALL = "toolcall"
    TOOL_CALL_CANCELLATION = "toolcallcancellation"
    LOG = "log"


class EventEmitter:
    """Observer lists keyed by ``LiveEvent``.

    Handlers run synchronously in registration order. A handler returning an
    awaitable is scheduled as a task so slow consumers never hold up the
    transport read loop. Handler failures are logged and isolated.
    """

    def __init__(self) -> None:
        self._handlers: dict[LiveEvent, list[Handler]] = {}
        self._pending: set[asyncio.Future[Any]] = set()
        # once() registrations, keyed by the caller's handler
        self._once: dict[tuple[LiveEvent, Handler], Handler] = {}

    def on(self, event: LiveEvent, handler: Handler) -> Callable[[], None]:
        """Register a handler and return a callable that unregisters it."""
        handlers = self._handlers.setdefault(LiveEvent(event), [])
        if handler not in handlers:
            handlers.append(handler)
        return lambda: self.off(event, handler)

    def once(self, event: LiveEvent, handler: Handler) -> Callable[[], None]:
        """Register a handler that fires at most once.

        ``off(event, handler)`` also removes it before it fires.
        """
        event = LiveEvent(event)
        key = (event, handler)
        if key in self._once:
            return lambda: self.off(event, handler)

        def _wrapper(*args: Any) -> Any:
            self.off(event, handler)
            return handler(*args)

        self._once[key] = _wrapper
        self.on(event, _wrapper)
        return lambda: self.off(event, handler)

    def off(self, event: LiveEvent, handler: Handler) -> None:
        event = LiveEvent(event)
        handler = self._once.pop((event, handler), handler)
        handlers = self._handlers.get(event)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def listener_count(self, event: LiveEvent) -> int:
        return len(self._handlers.get(LiveEvent(event), ()))

    def emit(self, event: LiveEvent, *args: Any) -> None:
        """Deliver a notification to every current handler."""
        event = LiveEvent(event)
        for handler in list(self._handlers.get(event, ())):
            try:
                result = handler(*args)
            except Exception as err:
                _LOGGER.exception("Handler for %s failed: %s", event.value, err)
                continue

            if inspect.isawaitable(result):
                self._track(event, result)

    def _track(self, event: LiveEvent, awaitable: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No running loop; nothing can drive the coroutine.
            _LOGGER.warning("Dropping async handler for %s: no event loop", event.value)
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return

        future = asyncio.ensure_future(awaitable, loop=loop)
        self._pending.add(future)
        future.add_done_callback(lambda fut: self._on_done(event, fut))

    def _on_done(self, event: LiveEvent, future: asyncio.Future[Any]) -> None:
        self._pending.discard(future)
        if future.cancelled():
            return
        err = future.exception()
        if err is not None:
            _LOGGER.error("Async handler for %s failed: %s", event.value, err)

    async def drain(self) -> None:
        """Wait for scheduled async handlers to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
