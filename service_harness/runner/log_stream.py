"""Captured output buffers and the reader thread that fills them."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TextIO

__all__ = ["LogBuffer", "LogLine", "LogStreamReader"]

logger = logging.getLogger("service_harness.runner")


@dataclass(slots=True)
class LogLine:
    """A single captured output line."""

    index: int
    text: str
    timestamp: datetime


class LogBuffer:
    """Append-only record of output lines that wakes waiters on every change."""

    def __init__(self) -> None:
        self._lines: list[LogLine] = []
        self._listeners: list[Callable[[LogLine], None]] = []
        self._condition = threading.Condition()
        self._closed = False

    @property
    def condition(self) -> threading.Condition:
        return self._condition

    @property
    def closed(self) -> bool:
        with self._condition:
            return self._closed

    def __len__(self) -> int:
        with self._condition:
            return len(self._lines)

    def append(self, text: str) -> LogLine:
        with self._condition:
            if self._closed:
                raise ValueError("Cannot append to a closed log buffer")
            line = LogLine(
                index=len(self._lines),
                text=text.rstrip("\r\n"),
                timestamp=datetime.now(UTC),
            )
            self._lines.append(line)
            listeners = list(self._listeners)
            self._condition.notify_all()
        for listener in listeners:
            try:
                listener(line)
            except Exception:  # noqa: BLE001 - the reader must keep draining
                logger.exception("log listener %r failed on line %d", listener, line.index)
        return line

    def close(self) -> None:
        """Mark end-of-stream; no more lines will arrive."""

        with self._condition:
            self._closed = True
            self._condition.notify_all()

    def add_listener(self, callback: Callable[[LogLine], None]) -> Callable[[], None]:
        with self._condition:
            self._listeners.append(callback)

        def _remove() -> None:
            with self._condition:
                try:
                    self._listeners.remove(callback)
                except ValueError:  # pragma: no cover - already removed
                    pass

        return _remove

    def line_at(self, index: int) -> LogLine | None:
        """Return the line at ``index`` or ``None`` if it has not arrived yet.

        Callers must hold :attr:`condition`.
        """

        if index < len(self._lines):
            return self._lines[index]
        return None

    def snapshot(self) -> list[LogLine]:
        with self._condition:
            return list(self._lines)

    def tail(self, count: int = 20) -> list[str]:
        with self._condition:
            return [line.text for line in self._lines[-count:]]


class LogStreamReader:
    """Pump lines from a child's output pipe into a :class:`LogBuffer`."""

    def __init__(self, pipe: TextIO, buffer: LogBuffer, *, name: str = "reader") -> None:
        self.pipe = pipe
        self.buffer = buffer
        self._thread = threading.Thread(
            target=self._pump,
            name=f"log-reader-{name}",
            daemon=True,
        )

    def start(self) -> LogStreamReader:
        self._thread.start()
        return self

    def join(self, timeout: float | None = None) -> None:
        self._thread.join(timeout)

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def _pump(self) -> None:
        try:
            with self.pipe:
                for line in iter(self.pipe.readline, ""):
                    self.buffer.append(line)
        finally:
            self.buffer.close()
