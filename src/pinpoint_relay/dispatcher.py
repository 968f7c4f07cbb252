"""Submission of flushed events to Pinpoint."""

import json
import logging
from collections.abc import Sequence
from concurrent.futures import Future
from threading import Lock, Timer, current_thread
from typing import Any, Protocol

from pinpoint_relay.client import PinpointClient
from pinpoint_relay.grouper import group_events
from pinpoint_relay.models import IncomingEvent

logger = logging.getLogger(__name__)


class BatchSubmitter(Protocol):
    def submit(self, request: dict[str, Any]) -> Future: ...


class Dispatcher:
    """Groups events into one ``PutEvents`` request and submits it.

    Submission is fire-and-forget: the outcome is only logged. Failures are
    dropped unless ``max_retries`` is set, in which case the request is sent
    again after ``retry_base_delay * 2**attempt`` seconds, up to
    ``max_retries`` times.
    """

    def __init__(
        self,
        client: BatchSubmitter,
        application_id: str,
        max_retries: int = 0,
        retry_base_delay: float = 3.0,
    ):
        self.client = client
        self.application_id = application_id
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay

        self._retry_timers: set[Timer] = set()
        self._lock = Lock()
        self._closed = False

        self._total_requests = 0
        self._total_failures = 0
        self._total_events_sent = 0

    def dispatch(self, events: Sequence[IncomingEvent]) -> Future | None:
        """Send events as a single request. Never raises.

        Returns:
            The submission future, or None if nothing was submitted
        """
        if not events:
            return None

        try:
            batch = group_events(events)
            request = PinpointClient.build_request(self.application_id, batch)
        except Exception as e:
            logger.error(f"Failed to build Pinpoint request for {len(events)} events: {e}")
            return None

        logger.debug(f"Dispatching {len(events)} events in {len(batch)} batch items")
        return self._submit(request, len(events), attempt=0)

    def _submit(self, request: dict[str, Any], count: int, attempt: int) -> Future | None:
        with self._lock:
            self._total_requests += 1

        try:
            future = self.client.submit(request)
        except Exception as e:
            self._handle_failure(e, request, count, attempt)
            return None

        future.add_done_callback(lambda f: self._on_done(f, request, count, attempt))
        return future

    def _on_done(self, future: Future, request: dict[str, Any], count: int, attempt: int) -> None:
        error = future.exception()
        if error is not None:
            self._handle_failure(error, request, count, attempt)
            return

        with self._lock:
            self._total_events_sent += count
        plural = "" if count == 1 else "s"
        logger.info(f"Uploaded {count} event{plural} to application {self.application_id}")
        logger.info(f"Response: {json.dumps(future.result(), default=str)}")

    def _handle_failure(self, error: BaseException, request: dict[str, Any], count: int, attempt: int) -> None:
        with self._lock:
            self._total_failures += 1

        logger.error(f"Error sending events to Pinpoint: {error}: {json.dumps(request, default=str)}")

        if not self.max_retries:
            return

        if attempt >= self.max_retries:
            logger.error(f"Dropping {count} events after {attempt} retries")
            return

        delay = self.retry_base_delay * 2**attempt
        with self._lock:
            if self._closed:
                logger.warning(f"Dispatcher closed, not retrying {count} events")
                return
            timer = Timer(delay, self._retry, args=(request, count, attempt + 1))
            timer.daemon = True
            self._retry_timers.add(timer)
            timer.start()
        logger.info(f"Retrying {count} events in {delay:.1f}s (attempt {attempt + 1}/{self.max_retries})")

    def _retry(self, request: dict[str, Any], count: int, attempt: int) -> None:
        with self._lock:
            self._retry_timers.discard(current_thread())
            if self._closed:
                return
        self._submit(request, count, attempt)

    def close(self) -> None:
        """Cancel scheduled retries. In-flight submissions are left to the client."""
        with self._lock:
            self._closed = True
            timers = list(self._retry_timers)
            self._retry_timers.clear()

        for timer in timers:
            timer.cancel()
        if timers:
            logger.warning(f"Cancelled {len(timers)} pending retries")

    @property
    def pending_retries(self) -> int:
        with self._lock:
            return len(self._retry_timers)

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "application_id": self.application_id,
                "total_requests": self._total_requests,
                "total_failures": self._total_failures,
                "total_events_sent": self._total_events_sent,
                "pending_retries": len(self._retry_timers),
                "max_retries": self.max_retries,
            }
