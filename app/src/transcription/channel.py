"""
Ordered progress-event sinks.

The pipeline only talks to ``EventSink``. ``QueueEventChannel`` is the
thread-safe realization used by the HTTP layer: the pipeline runs in a
worker thread and emits, the SSE response drains with ``get``.
"""

import logging
import queue
import threading
from typing import Iterator, Optional

from src.transcription.models import ProgressEvent

logger = logging.getLogger(__name__)


class EventSink:
    """
    Base sink. Subclasses implement ``_deliver``.

    ``close`` is idempotent and nothing is delivered after it, or after a
    terminal event, or after the receiving side cancelled.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._closed = False
        self._terminated = False
        self._cancelled = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Called from the receiving side when the consumer goes away."""
        if not self._cancelled.is_set():
            logger.info("Event channel cancelled by consumer")
        self._cancelled.set()

    def emit(self, event: ProgressEvent) -> bool:
        """Deliver ``event``; return False if it was dropped."""
        with self._lock:
            if self._closed or self._terminated or self.cancelled:
                logger.debug("Dropping event %r on inactive channel", event.message)
                return False
            if event.is_terminal:
                self._terminated = True
            self._deliver(event)
            return True

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._on_close()

    def _deliver(self, event: ProgressEvent) -> None:
        raise NotImplementedError

    def _on_close(self) -> None:
        pass


class QueueEventChannel(EventSink):
    """Single-producer, single-consumer channel backed by ``queue.Queue``."""

    _SENTINEL = object()

    def __init__(self) -> None:
        super().__init__()
        self._queue: "queue.Queue" = queue.Queue()

    def _deliver(self, event: ProgressEvent) -> None:
        self._queue.put(event)

    def _on_close(self) -> None:
        self._queue.put(self._SENTINEL)

    def get(self, timeout: Optional[float] = None) -> Optional[ProgressEvent]:
        """
        Block for the next event. Returns None once the channel is closed
        and drained. Raises ``queue.Empty`` on timeout.
        """
        item = self._queue.get(timeout=timeout)
        if item is self._SENTINEL:
            # Keep the sentinel visible for any later reader
            self._queue.put(self._SENTINEL)
            return None
        return item

    def __iter__(self) -> Iterator[ProgressEvent]:
        while True:
            event = self.get()
            if event is None:
                return
            yield event
