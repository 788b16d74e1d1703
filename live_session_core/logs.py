"""Structured log sinks for session diagnostics.

Every notable client or server action produces a ``StreamingLog`` entry
(timestamp, category, payload). Entries go to the sink injected at client
construction and are also published as the ``log`` notification.

Critical invariants:
- Sinks never block the caller
- Sinks never raise into the client
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreamingLog:
    """One diagnostic entry.

    Attributes:
        type: Category, e.g. "client.send" or "server.content".
        message: Payload (string summary or the raw structure).
        date: When the entry was created.
    """

    type: str
    message: Any
    date: datetime = field(default_factory=lambda: datetime.now(tz=UTC))


class LogSink(ABC):
    """Abstract destination for ``StreamingLog`` entries.

    Implementations can write to:
    - In-memory buffer (tests, diagnostics panels)
    - Python logging
    - Callback (custom forwarding)
    - Null (disabled)
    """

    @abstractmethod
    def write(self, entry: StreamingLog) -> None:
        """Record an entry. Must be non-blocking."""


class NullLogSink(LogSink):
    """No-op sink."""

    def write(self, entry: StreamingLog) -> None:
        """Discard the entry."""


class BufferLogSink(LogSink):
    """Bounded in-memory buffer (FIFO eviction)."""

    def __init__(self, max_size: int = 1000) -> None:
        self._buffer: deque[StreamingLog] = deque(maxlen=max_size)

    def write(self, entry: StreamingLog) -> None:
        self._buffer.append(entry)

    @property
    def entries(self) -> list[StreamingLog]:
        """Get all buffered entries, oldest first."""
        return list(self._buffer)

    def by_type(self, category: str) -> list[StreamingLog]:
        """Get buffered entries of one category."""
        return [entry for entry in self._buffer if entry.type == category]

    def last(self, n: int = 1) -> list[StreamingLog]:
        """Get the last N entries."""
        return list(self._buffer)[-n:]

    def clear(self) -> None:
        self._buffer.clear()


class CallbackLogSink(LogSink):
    """Sink that hands each entry to a callback."""

    def __init__(self, callback: Callable[[StreamingLog], None]) -> None:
        self._callback = callback

    def write(self, entry: StreamingLog) -> None:
        try:
            self._callback(entry)
        except Exception as err:
            _LOGGER.exception("Log sink callback error: %s", err)


class LoggerLogSink(LogSink):
    """Sink that forwards entries to the ``logging`` module."""

    def __init__(
        self, logger: logging.Logger | None = None, level: int = logging.DEBUG
    ) -> None:
        self._logger = logger or _LOGGER
        self._level = level

    def write(self, entry: StreamingLog) -> None:
        if self._logger.isEnabledFor(self._level):
            self._logger.log(self._level, "%s: %s", entry.type, entry.message)
