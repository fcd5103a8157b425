# src/wpstack/observers/sinks.py
from __future__ import annotations

import queue
import threading
from typing import Callable, Optional, Protocol

from .dispatcher import EventBus
from .events import ProgressEvent


class SinkClosed(Exception):
    """The reader has gone away."""


class ProgressSink(Protocol):
    """
    Write-only channel from the installer to whoever is watching.

    ``writable`` turns False once the reader is gone; ``emit`` on such a
    sink raises SinkClosed.
    """

    @property
    def writable(self) -> bool: ...

    def emit(self, event: ProgressEvent) -> None: ...


class QueueSink:
    """
    Message channel between the installer thread and a consumer. The consumer
    calls ``close()`` when it stops reading.
    """

    def __init__(self, maxsize: int = 0):
        self._q: "queue.Queue[ProgressEvent]" = queue.Queue(maxsize=maxsize)
        self._closed = threading.Event()

    @property
    def writable(self) -> bool:
        return not self._closed.is_set()

    def emit(self, event: ProgressEvent) -> None:
        if self._closed.is_set():
            raise SinkClosed("progress reader is gone")
        self._q.put(event)

    def get(self, timeout: Optional[float] = None) -> ProgressEvent:
        """Blocks; raises queue.Empty when ``timeout`` elapses."""
        return self._q.get(timeout=timeout)

    def close(self) -> None:
        self._closed.set()


class BusSink:
    """Fans events out to observers. Never becomes unwritable."""

    def __init__(self, bus: EventBus):
        self.bus = bus

    @property
    def writable(self) -> bool:
        return True

    def emit(self, event: ProgressEvent) -> None:
        self.bus.emit(event)


class CallbackSink:
    def __init__(self, fn: Callable[[ProgressEvent], None]):
        self.fn = fn
        self._writable = True

    @property
    def writable(self) -> bool:
        return self._writable

    def emit(self, event: ProgressEvent) -> None:
        if not self._writable:
            raise SinkClosed("callback sink closed")
        self.fn(event)

    def close(self) -> None:
        self._writable = False
