"""
Unit tests for the outbound token bucket
"""
import threading

import pytest

from src.feedback_api import RequestCancelled, TokenBucket


class FakeClock:
    """Manually advanced monotonic clock"""

    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.mark.unit
class TestTokenBucket:
    """Tests for TokenBucket"""

    def test_starts_full(self):
        clock = FakeClock()
        bucket = TokenBucket(rate=3, burst=6, clock=clock)

        assert all(bucket.try_acquire() for _ in range(6))
        assert bucket.try_acquire() is False

    def test_refills_at_rate(self):
        clock = FakeClock()
        bucket = TokenBucket(rate=3, burst=6, clock=clock)
        for _ in range(6):
            bucket.try_acquire()

        clock.advance(1.0)
        assert [bucket.try_acquire() for _ in range(4)] == [True, True, True, False]

    def test_refill_capped_at_burst(self):
        clock = FakeClock()
        bucket = TokenBucket(rate=3, burst=2, clock=clock)
        clock.advance(60)

        assert bucket.try_acquire()
        assert bucket.try_acquire()
        assert not bucket.try_acquire()

    def test_acquire_without_wait_returns_zero(self):
        bucket = TokenBucket(rate=3, burst=6, clock=FakeClock())
        assert bucket.acquire() == 0.0

    def test_free_tokens_report_no_wait(self):
        """Test that a token available at once is not reported as a wait"""
        bucket = TokenBucket(rate=3, burst=6)

        assert [bucket.acquire() for _ in range(3)] == [0.0, 0.0, 0.0]

    def test_acquire_waits_for_token(self):
        """Test that an empty bucket blocks for roughly 1/rate seconds"""
        bucket = TokenBucket(rate=50, burst=1)
        bucket.acquire()

        waited = bucket.acquire()
        assert waited > 0.0
        assert waited < 1.0

    def test_unlimited(self):
        bucket = TokenBucket(rate=0, burst=1, clock=FakeClock())
        assert bucket.unlimited
        assert all(bucket.try_acquire() for _ in range(1000))
        assert bucket.acquire() == 0.0

    def test_cancelled_before_acquire(self):
        bucket = TokenBucket(rate=3, burst=6)
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(RequestCancelled):
            bucket.acquire(cancel)

    def test_cancelled_while_waiting(self):
        """Test that setting cancel aborts a long wait promptly"""
        bucket = TokenBucket(rate=0.01, burst=1)
        bucket.acquire()
        cancel = threading.Event()
        timer = threading.Timer(0.05, cancel.set)
        timer.start()

        try:
            with pytest.raises(RequestCancelled):
                bucket.acquire(cancel)
        finally:
            timer.cancel()

    def test_burst_at_least_one(self):
        bucket = TokenBucket(rate=1, burst=0, clock=FakeClock())
        assert bucket.burst == 1
