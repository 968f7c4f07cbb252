import json
import threading
import time

import pytest

from pinpoint_relay.buffer import BufferClosedError, EventBuffer, estimate_size
from pinpoint_relay.models import IncomingEvent
from tests.test_helpers import FlushRecorder


def _event(i: int = 0) -> IncomingEvent:
    return IncomingEvent(event="pageview", uuid=f"e{i}", properties={"$device_id": "d1", "n": i})


class TestSizeTrigger:
    def test_below_limit_keeps_events(self):
        recorder = FlushRecorder()
        buffer = EventBuffer(recorder, limit_bytes=10_000, timeout_seconds=60)

        buffer.add(_event(1))
        buffer.add(_event(2))

        assert recorder.batches == []
        assert buffer.pending == 2
        assert buffer.size == estimate_size(_event(1)) + estimate_size(_event(2))
        buffer.teardown()

    def test_reaching_limit_flushes_immediately(self):
        recorder = FlushRecorder()
        limit = estimate_size(_event(0)) * 3
        buffer = EventBuffer(recorder, limit_bytes=limit, timeout_seconds=60)

        buffer.add(_event(0))
        buffer.add(_event(1))
        assert recorder.batches == []

        buffer.add(_event(2))

        assert len(recorder.batches) == 1
        assert [e.uuid for e in recorder.batches[0]] == ["e0", "e1", "e2"]
        assert buffer.pending == 0
        assert buffer.size == 0
        assert buffer.deadline is None
        buffer.teardown()

    def test_single_oversized_event_flushes_alone(self):
        recorder = FlushRecorder()
        buffer = EventBuffer(recorder, limit_bytes=1, timeout_seconds=60)

        buffer.add(_event(0))
        buffer.add(_event(1))

        assert [len(batch) for batch in recorder.batches] == [1, 1]
        buffer.teardown()


class TestTimeTrigger:
    def test_deadline_flushes_pending_events(self):
        flushed = threading.Event()
        recorder = FlushRecorder()

        def on_flush(events):
            recorder(events)
            flushed.set()

        buffer = EventBuffer(on_flush, limit_bytes=10_000_000, timeout_seconds=0.05)
        buffer.add(_event(0))
        assert buffer.deadline is not None

        assert flushed.wait(timeout=2.0)
        assert len(recorder.events) == 1
        assert buffer.pending == 0
        assert buffer.deadline is None
        buffer.teardown()

    def test_timer_rearms_after_flush(self):
        recorder = FlushRecorder()
        buffer = EventBuffer(recorder, limit_bytes=10_000_000, timeout_seconds=0.05)

        buffer.add(_event(0))
        time.sleep(0.3)
        buffer.add(_event(1))
        time.sleep(0.3)

        assert [[e.uuid for e in batch] for batch in recorder.batches] == [["e0"], ["e1"]]
        buffer.teardown()

    def test_no_timer_while_empty(self):
        recorder = FlushRecorder()
        buffer = EventBuffer(recorder, timeout_seconds=0.01)

        time.sleep(0.05)

        assert buffer.deadline is None
        assert recorder.batches == []


class TestFlush:
    def test_flush_empty_is_noop(self):
        recorder = FlushRecorder()
        buffer = EventBuffer(recorder)

        assert buffer.flush() == 0
        assert recorder.batches == []

    def test_flush_returns_count_and_resets(self):
        recorder = FlushRecorder()
        buffer = EventBuffer(recorder, timeout_seconds=60)
        for i in range(4):
            buffer.add(_event(i))

        assert buffer.flush() == 4
        assert buffer.flush() == 0
        assert len(recorder.batches) == 1
        assert buffer.get_stats()["total_events_flushed"] == 4

    def test_callback_error_does_not_propagate(self):
        def failing(events):
            raise RuntimeError("boom")

        buffer = EventBuffer(failing, timeout_seconds=60)
        buffer.add(_event(0))

        assert buffer.flush() == 1
        assert buffer.pending == 0

    def test_concurrent_adds_and_flushes_lose_nothing(self):
        recorder = FlushRecorder()
        lock = threading.Lock()

        def on_flush(events):
            with lock:
                recorder(events)

        buffer = EventBuffer(on_flush, limit_bytes=10_000_000, timeout_seconds=0.001)
        stop = threading.Event()

        def flusher():
            while not stop.is_set():
                buffer.flush()

        thread = threading.Thread(target=flusher)
        thread.start()
        for i in range(500):
            buffer.add(_event(i))
        stop.set()
        thread.join()
        buffer.teardown()

        uuids = [e.uuid for e in recorder.events]
        assert len(uuids) == 500
        assert set(uuids) == {f"e{i}" for i in range(500)}


class TestTeardown:
    def test_teardown_flushes_everything_once(self):
        recorder = FlushRecorder()
        buffer = EventBuffer(recorder, limit_bytes=10_000_000, timeout_seconds=60)
        for i in range(7):
            buffer.add(_event(i))

        assert buffer.teardown() == 7

        assert len(recorder.batches) == 1
        assert len(recorder.batches[0]) == 7
        assert buffer.pending == 0
        assert buffer.size == 0
        assert buffer.is_closed

    def test_add_after_teardown_raises(self):
        buffer = EventBuffer(FlushRecorder())
        buffer.teardown()

        with pytest.raises(BufferClosedError):
            buffer.add(_event(0))

    def test_teardown_with_nothing_pending(self):
        recorder = FlushRecorder()
        buffer = EventBuffer(recorder)

        assert buffer.teardown() == 0
        assert recorder.batches == []

    def test_teardown_waits_for_timer_flush_in_progress(self):
        recorder = FlushRecorder()
        started = threading.Event()

        def slow_flush(events):
            started.set()
            time.sleep(0.3)
            recorder(events)

        buffer = EventBuffer(slow_flush, limit_bytes=10_000_000, timeout_seconds=0.05)
        for i in range(5):
            buffer.add(_event(i))

        assert started.wait(timeout=2.0)
        assert buffer.teardown() == 0

        # The timer's batch is delivered before teardown returns
        assert [e.uuid for e in recorder.events] == [f"e{i}" for i in range(5)]
        assert buffer.get_stats()["total_flushes"] == 1


class TestEstimateSize:
    def test_plain_event(self):
        event = _event(0)

        assert estimate_size(event) == len(json.dumps(event.model_dump()))

    def test_binary_and_opaque_properties(self):
        event = IncomingEvent(event="upload", properties={"blob": b"\xff\xfe", "handle": object()})

        assert estimate_size(event) > 0

    def test_unencodable_properties_add_and_flush(self):
        recorder = FlushRecorder()
        buffer = EventBuffer(recorder, timeout_seconds=60)

        buffer.add(IncomingEvent(event="upload", properties={"blob": b"\xff\xfe"}))

        assert buffer.pending == 1
        assert buffer.teardown() == 1
        assert recorder.events[0].properties["blob"] == b"\xff\xfe"
