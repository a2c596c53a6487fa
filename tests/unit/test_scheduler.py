"""
Unit tests for the fixed-interval scheduler
"""
import threading
import time

import pytest

from src.scheduler.scheduler import MIN_INTERVAL, Scheduler


class CallRecorder:
    """Job that counts calls and signals each one"""

    def __init__(self, duration=0.0):
        self.calls = 0
        self.duration = duration
        self.cancels = []
        self.called = threading.Event()
        self._lock = threading.Lock()

    def __call__(self, cancel):
        with self._lock:
            self.calls += 1
            self.cancels.append(cancel)
        self.called.set()
        if self.duration:
            time.sleep(self.duration)


def wait_for(predicate, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


@pytest.mark.unit
class TestScheduler:
    """Tests for Scheduler"""

    def test_runs_immediately(self):
        job = CallRecorder()
        scheduler = Scheduler(600, job)
        cancel = threading.Event()

        thread = scheduler.start(cancel)
        try:
            assert job.called.wait(2.0)
            assert job.calls == 1
            assert job.cancels[0] is cancel
        finally:
            scheduler.shutdown()
            thread.join(2.0)

        assert not thread.is_alive()

    def test_interval_clamped(self):
        assert Scheduler(0, CallRecorder()).interval == MIN_INTERVAL
        assert Scheduler(-10, CallRecorder()).interval == MIN_INTERVAL
        assert Scheduler(600, CallRecorder()).interval == 600

    def test_ticks_repeat(self):
        job = CallRecorder()
        scheduler = Scheduler(1, job)

        thread = scheduler.start()
        try:
            assert wait_for(lambda: job.calls >= 3, timeout=4.0)
        finally:
            scheduler.shutdown()
            thread.join(2.0)

    def test_shutdown_is_idempotent(self):
        scheduler = Scheduler(600, CallRecorder())
        scheduler.shutdown()
        scheduler.shutdown()
        assert scheduler.is_shutdown

    def test_shutdown_before_run_still_invokes_once(self):
        job = CallRecorder()
        scheduler = Scheduler(600, job)
        scheduler.shutdown()

        scheduler.run()

        assert job.calls == 1
        assert not scheduler.is_running

    def test_cancelled_before_run_hands_event_to_job(self):
        job = CallRecorder()
        scheduler = Scheduler(600, job)
        cancel = threading.Event()
        cancel.set()

        scheduler.run(cancel)

        assert job.calls == 1
        assert job.cancels[0].is_set()

    def test_external_cancel_stops_loop(self):
        job = CallRecorder()
        scheduler = Scheduler(600, job)
        cancel = threading.Event()

        thread = scheduler.start(cancel)
        assert job.called.wait(2.0)
        assert scheduler.is_running

        cancel.set()
        thread.join(2.0)

        assert not thread.is_alive()
        assert not scheduler.is_running
        assert job.calls == 1

    def test_shutdown_does_not_wait_for_job(self):
        job = CallRecorder(duration=0.5)
        scheduler = Scheduler(600, job)
        thread = scheduler.start()
        assert job.called.wait(2.0)

        started = time.monotonic()
        scheduler.shutdown()
        assert time.monotonic() - started < 0.1

        thread.join(2.0)
        assert job.calls == 1

    def test_job_exception_does_not_stop_scheduler(self):
        calls = []

        def flaky(cancel):
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("boom")

        scheduler = Scheduler(1, flaky)
        thread = scheduler.start()
        try:
            assert wait_for(lambda: len(calls) >= 2, timeout=4.0)
        finally:
            scheduler.shutdown()
            thread.join(2.0)

    def test_missed_ticks_coalesce(self):
        """Test that a job overrunning several ticks is followed by one run, not a burst"""
        clock_value = [0.0]
        calls = []
        scheduler = None

        def clock():
            return clock_value[0]

        def slow_job(cancel):
            started_at = clock_value[0]
            if not calls:
                # Overrun three ticks
                clock_value[0] += 35.0
            elif len(calls) == 1:
                # Run right after the overrun; next tick is aligned to start
                clock_value[0] += 1.0
            else:
                scheduler.shutdown()
            calls.append(started_at)

        scheduler = Scheduler(10, slow_job, clock=clock)
        waiter = threading.Thread(target=scheduler.run, daemon=True)
        waiter.start()

        # Let the loop wait for the aligned tick at t=40
        assert wait_for(lambda: len(calls) == 2)
        clock_value[0] = 40.0
        waiter.join(3.0)

        assert calls == [0.0, 35.0, 40.0]
