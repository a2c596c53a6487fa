"""
Token bucket limiter for outbound vendor API requests.

One bucket belongs to one client (one tenant), so throttling of one tenant
never delays another.
"""

import threading
import time
from typing import Callable, Optional

from .errors import RequestCancelled


class TokenBucket:
    """
    Thread-safe token bucket.

    The bucket starts full (``burst`` tokens) and refills at ``rate`` tokens
    per second. A non-positive rate disables limiting entirely.

    Usage:
        bucket = TokenBucket(rate=3, burst=6)
        waited = bucket.acquire(cancel=stop_event)
    """

    def __init__(
        self,
        rate: float,
        burst: int,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize token bucket.

        Args:
            rate: Tokens added per second (<= 0 means unlimited)
            burst: Bucket capacity (at least 1 when limiting is enabled)
            clock: Monotonic clock, injectable for tests
        """
        self.rate = float(rate)
        self.burst = max(1, int(burst))
        self._clock = clock
        self._tokens = float(self.burst)
        self._updated = clock()
        self._lock = threading.Lock()

    @property
    def unlimited(self) -> bool:
        return self.rate <= 0

    def _refill(self, now: float) -> None:
        elapsed = max(0.0, now - self._updated)
        self._tokens = min(float(self.burst), self._tokens + elapsed * self.rate)
        self._updated = now

    def try_acquire(self) -> bool:
        """Take a token without waiting. Returns False if none is available."""
        if self.unlimited:
            return True
        with self._lock:
            self._refill(self._clock())
            if self._tokens >= 1.0:
                self._tokens -= 1.0
                return True
            return False

    def acquire(self, cancel: Optional[threading.Event] = None) -> float:
        """
        Block until a token is available.

        Args:
            cancel: Event that aborts the wait when set

        Returns:
            Seconds spent waiting for the token

        Raises:
            RequestCancelled: If cancel is set before or during the wait
        """
        if cancel is not None and cancel.is_set():
            raise RequestCancelled("cancelled before acquiring rate limit token")
        if self.unlimited:
            return 0.0

        started = None
        while True:
            with self._lock:
                now = self._clock()
                self._refill(now)
                if self._tokens >= 1.0:
                    self._tokens -= 1.0
                    return 0.0 if started is None else now - started
                delay = (1.0 - self._tokens) / self.rate

            if started is None:
                started = now
            if cancel is not None:
                if cancel.wait(delay):
                    raise RequestCancelled("cancelled while waiting for rate limit token")
            else:
                time.sleep(delay)
