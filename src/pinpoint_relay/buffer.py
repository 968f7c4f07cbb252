"""In-memory event buffer with size- and time-triggered flushing."""

import json
import logging
import time
from collections.abc import Callable
from threading import Lock, Timer

from pinpoint_relay.models import IncomingEvent

logger = logging.getLogger(__name__)

FlushCallback = Callable[[list[IncomingEvent]], object]


class BufferClosedError(RuntimeError):
    """Raised when an event is added after teardown."""


def estimate_size(event: IncomingEvent) -> int:
    """Approximate payload size of an event in bytes. Never raises."""
    try:
        return len(json.dumps(event.model_dump(), default=str))
    except (TypeError, ValueError):
        # Circular or otherwise unencodable properties
        return len(str(event))


class EventBuffer:
    """Accumulates events and hands them to ``on_flush`` in batches.

    A flush happens when the size estimate reaches ``limit_bytes``, when
    ``timeout_seconds`` have passed since the first event entered an empty
    buffer, or on ``teardown()``, whichever comes first.

    The deadline timer runs on its own thread. ``_lock`` guards pending state,
    so ``add`` and the drain never interleave. ``_flush_lock`` is held across
    drain and callback: flushes run one at a time and to completion, so when
    ``teardown()`` returns every drained batch has reached ``on_flush``. A slow
    callback only delays an ``add`` that itself triggers a size flush.
    """

    def __init__(
        self,
        on_flush: FlushCallback,
        limit_bytes: int = 1024 * 1024,
        timeout_seconds: float = 1.0,
    ):
        """Initialize the buffer.

        Args:
            on_flush: Called with the drained events, never with an empty list
            limit_bytes: Size estimate that triggers an immediate flush
            timeout_seconds: Maximum time an event waits before a flush
        """
        self.on_flush = on_flush
        self.limit_bytes = limit_bytes
        self.timeout_seconds = timeout_seconds

        self._events: list[IncomingEvent] = []
        self._size = 0
        self._deadline: float | None = None
        self._timer: Timer | None = None
        self._lock = Lock()
        self._flush_lock = Lock()
        self._closed = False

        self._total_flushes = 0
        self._total_events_flushed = 0

    def add(self, event: IncomingEvent) -> None:
        """Append an event, flushing right away if the size limit is hit."""
        size = estimate_size(event)

        with self._lock:
            if self._closed:
                raise BufferClosedError("Cannot add events after teardown")

            self._events.append(event)
            self._size += size
            if self._timer is None:
                self._arm_timer()
            total = self._size
            should_flush = total >= self.limit_bytes

        if should_flush:
            logger.debug(f"Buffer reached {total} bytes, flushing")
            self.flush()

    def flush(self) -> int:
        """Drain all pending events into ``on_flush``.

        Returns:
            Number of events handed to the callback (0 if nothing was pending)
        """
        with self._flush_lock:
            with self._lock:
                events = self._drain()
                if events:
                    self._total_flushes += 1
                    self._total_events_flushed += len(events)

            if not events:
                return 0

            logger.debug(f"Flushing {len(events)} buffered events")

            try:
                self.on_flush(events)
            except Exception as e:
                logger.error(f"Flush callback failed for {len(events)} events: {e}")

            return len(events)

    def teardown(self) -> int:
        """Flush one last time and refuse further events.

        Waits for a timer flush already in progress, so no batch is still on
        its way to ``on_flush`` when this returns.
        """
        with self._lock:
            self._closed = True

        flushed = self.flush()
        logger.info(f"Buffer closed, flushed {flushed} events on teardown")
        return flushed

    def _drain(self) -> list[IncomingEvent]:
        # Caller holds _lock
        events = self._events
        self._events = []
        self._size = 0
        self._deadline = None
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        return events

    def _arm_timer(self) -> None:
        # Caller holds _lock
        self._deadline = time.monotonic() + self.timeout_seconds
        self._timer = Timer(self.timeout_seconds, self._on_timeout)
        self._timer.daemon = True
        self._timer.start()

    def _on_timeout(self) -> None:
        flushed = self.flush()
        if flushed:
            logger.debug(f"Deadline flush sent {flushed} events")

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._events)

    @property
    def size(self) -> int:
        with self._lock:
            return self._size

    @property
    def deadline(self) -> float | None:
        """``time.monotonic()`` value of the next timed flush, if armed."""
        with self._lock:
            return self._deadline

    @property
    def is_closed(self) -> bool:
        return self._closed

    def get_stats(self) -> dict:
        with self._lock:
            return {
                "pending_events": len(self._events),
                "pending_bytes": self._size,
                "limit_bytes": self.limit_bytes,
                "timeout_seconds": self.timeout_seconds,
                "total_flushes": self._total_flushes,
                "total_events_flushed": self._total_events_flushed,
                "closed": self._closed,
            }
