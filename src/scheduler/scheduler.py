"""
Fixed-interval scheduler for one tenant's processing cycle.
"""

import logging
import threading
import time
from typing import Any, Callable, Optional

from src.observability.logger import get_logger

# Shortest allowed interval between ticks, in seconds
MIN_INTERVAL = 1.0

# Longest single wait slice; bounds how late an external cancel is noticed
_WAIT_SLICE = 0.5


class Scheduler:
    """
    Runs a job at a fixed interval until cancelled or shut down.

    The job runs once immediately, then on every tick. Ticks are aligned to
    the start time; ticks missed while the job was running collapse into a
    single immediate run, so a slow job never builds a backlog.

    The scheduler imposes no per-run timeout and never runs the job
    concurrently with itself.

    Usage:
        scheduler = Scheduler(600, cycle.run)
        thread = scheduler.start(stop_event)
        ...
        scheduler.shutdown()
    """

    def __init__(
        self,
        interval: float,
        fn: Callable[[Optional[threading.Event]], Any],
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], float] = time.monotonic,
        name: str = "scheduler",
    ):
        """
        Initialize the scheduler.

        Args:
            interval: Seconds between runs (clamped to at least MIN_INTERVAL)
            fn: Job; receives the cancellation event passed to run()
            logger: Logger instance
            clock: Monotonic clock, injectable for tests
            name: Thread name used by start()
        """
        self.interval = max(MIN_INTERVAL, float(interval))
        self.fn = fn
        self.log = logger or get_logger(__name__)
        self.name = name
        self._clock = clock
        self._stop = threading.Event()
        self._running = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._running.is_set()

    @property
    def is_shutdown(self) -> bool:
        return self._stop.is_set()

    def shutdown(self) -> None:
        """
        Stop future ticks. Idempotent; does not wait for a running job.
        """
        self._stop.set()

    def start(self, cancel: Optional[threading.Event] = None) -> threading.Thread:
        """
        Run the loop on a daemon thread.

        Returns:
            The thread running the loop
        """
        self._thread = threading.Thread(target=self.run, args=(cancel,), name=self.name, daemon=True)
        self._thread.start()
        return self._thread

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def run(self, cancel: Optional[threading.Event] = None) -> None:
        """
        Invoke the job once, then block until cancel is set or shutdown() is called.

        The first invocation happens even if the loop is already stopped;
        the job sees the cancel event and can return early.

        Args:
            cancel: External cancellation event, also handed to the job
        """
        self._running.set()
        try:
            self.log.info("scheduler started", extra={"interval_seconds": self.interval, "scheduler": self.name})

            next_tick = self._clock()
            while True:
                self._invoke(cancel)

                # Drop every tick that elapsed while the job ran except one
                now = self._clock()
                next_tick += self.interval
                if next_tick <= now:
                    missed = int((now - next_tick) // self.interval)
                    next_tick += missed * self.interval

                if self._wait_until(next_tick, cancel):
                    return
        finally:
            self._running.clear()

    def _should_stop(self, cancel: Optional[threading.Event]) -> bool:
        if cancel is not None and cancel.is_set():
            self.log.info("scheduler: parent cancellation received", extra={"scheduler": self.name})
            return True
        if self._stop.is_set():
            self.log.info("scheduler: shutdown signal received", extra={"scheduler": self.name})
            return True
        return False

    def _wait_until(self, deadline: float, cancel: Optional[threading.Event]) -> bool:
        """Sleep until deadline; True if the loop must exit instead."""
        while True:
            if self._should_stop(cancel):
                return True
            remaining = deadline - self._clock()
            if remaining <= 0:
                return False
            self._stop.wait(min(remaining, _WAIT_SLICE))

    def _invoke(self, cancel: Optional[threading.Event]) -> None:
        try:
            self.fn(cancel)
        except Exception:
            self.log.exception("scheduler: job raised", extra={"scheduler": self.name})
