"""Tests for upload and delete session state."""

import threading
from concurrent.futures import Future

import pytest

from bulktransfer.core.exceptions import TransientPartFailure
from bulktransfer.core.retry import RetryBudget
from bulktransfer.core.session import (
    AtomicCounter,
    BatchDeleteSession,
    CountDownLatch,
    UploadSession,
)
from bulktransfer.core.slicing import Part


def _session(parts=4):
    return UploadSession("bucket", "key", RetryBudget(parts), parts, parallel_degree=2)


class TestPrimitives:
    def test_counter_is_thread_safe(self):
        counter = AtomicCounter()

        def bump():
            for _ in range(1000):
                counter.increment()

        threads = [threading.Thread(target=bump) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert counter.value == 8000

    def test_latch_releases_at_zero(self):
        latch = CountDownLatch(2)
        assert not latch.wait(timeout=0.01)
        latch.count_down()
        latch.count_down()
        latch.count_down()
        assert latch.count == 0
        assert latch.wait(timeout=0.01)

    def test_latch_wakes_waiter(self):
        latch = CountDownLatch(1)
        timer = threading.Timer(0.02, latch.count_down)
        timer.start()
        assert latch.wait(timeout=5)

    def test_latch_rejects_negative_count(self):
        with pytest.raises(ValueError):
            CountDownLatch(-1)


class TestUploadSession:
    def test_ordered_etags(self):
        session = _session()
        for index in (3, 1, 4, 2):
            session.record_success(Part(index, 0, 1), f'"e{index}"')
        assert list(session.ordered_etags()) == [1, 2, 3, 4]

    def test_failed_and_missing_parts(self):
        session = _session()
        error = TransientPartFailure("boom", 2)
        session.record_failure(Part(2, 0, 1), error)
        session.record_failure(Part(3, 0, 1), TransientPartFailure("boom", 3))
        session.record_success(Part(3, 0, 1), '"e3"')
        session.record_success(Part(1, 0, 1), '"e1"')

        assert session.failed_parts() == [2]
        assert session.missing_parts() == [2, 4]
        assert session.first_cause is error

    def test_exhausted_past_budget(self):
        session = _session()
        for _ in range(5):
            session.error_count.increment()
        assert not session.exhausted
        session.error_count.increment()
        assert session.exhausted

    def test_fatal_marks_exhausted(self):
        session = _session()
        session.fatal = True
        assert session.exhausted

    def test_cancel_outstanding(self):
        session = _session()
        pending, running = Future(), Future()
        running.set_running_or_notify_cancel()
        session.track(Part(1, 0, 1), pending)
        session.track(Part(2, 1, 1), running)

        assert session.cancel_outstanding() == 1
        assert pending.cancelled()
        assert not running.cancelled()

    def test_cancel_callback_can_untrack(self):
        session = _session()
        part = Part(1, 0, 1)
        future = Future()
        session.track(part, future)
        future.add_done_callback(lambda f: session.untrack(part))

        assert session.cancel_outstanding() == 1
        assert session.futures == {}

    def test_concurrent_results_are_all_recorded(self):
        session = _session(parts=400)

        def record(start):
            for index in range(start, 401, 4):
                part = Part(index, 0, 1)
                if index % 3:
                    session.record_success(part, f'"e{index}"')
                else:
                    session.record_failure(part, TransientPartFailure("boom", index))

        threads = [threading.Thread(target=record, args=(s,)) for s in range(1, 5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert list(session.ordered_etags()) == [i for i in range(1, 401) if i % 3]
        assert session.failed_parts() == [i for i in range(1, 401) if i % 3 == 0]


class TestBatchDeleteSession:
    def test_track_assigns_sequence(self):
        session = BatchDeleteSession("bucket")
        assert session.track(Future(), ["a"]) == 1
        assert session.track(Future(), ["b"]) == 2
        assert session.batches == 2
        assert len(session.outstanding) == 2

    def test_cancel_outstanding(self):
        session = BatchDeleteSession("bucket")
        future = Future()
        session.track(future, ["a"])
        session.cancel_outstanding()
        assert future.cancelled()
