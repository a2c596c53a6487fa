"""
Bounded worker pool for front-end interactions.

Each interaction (a command, a manual run) takes one slot. When every slot
is busy the interaction is dropped immediately; nothing is queued.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional

from src.observability.logger import get_logger

DEFAULT_MAX_INTERACTIONS = 100


class InteractionDispatcher:
    """
    Fixed-slot dispatcher over a thread pool.

    Example:
        dispatcher = InteractionDispatcher(max_workers=100)
        if not dispatcher.submit(handle_update, update):
            reply_busy(update)
    """

    def __init__(self, max_workers: int = DEFAULT_MAX_INTERACTIONS, logger: Optional[logging.Logger] = None):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")

        self.max_workers = max_workers
        self.log = logger or get_logger(__name__)
        self._slots = threading.BoundedSemaphore(max_workers)
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="interaction")
        self._closed = False

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> bool:
        """
        Run fn(*args, **kwargs) on a free slot.

        Returns:
            True if the task was started, False if it was dropped
        """
        if self._closed:
            self.log.warning("dispatcher closed, dropping interaction")
            return False

        if not self._slots.acquire(blocking=False):
            self.log.warning("too many concurrent interactions, dropping", extra={"max_workers": self.max_workers})
            return False

        try:
            self._executor.submit(self._run, fn, args, kwargs)
        except RuntimeError:
            # Executor shut down between the check above and submit
            self._slots.release()
            self.log.warning("dispatcher closed, dropping interaction")
            return False
        return True

    def _run(self, fn: Callable[..., Any], args: tuple, kwargs: dict) -> None:
        try:
            fn(*args, **kwargs)
        except Exception:
            self.log.exception("interaction failed", extra={"task": getattr(fn, "__name__", repr(fn))})
        finally:
            self._slots.release()

    def shutdown(self, wait: bool = True) -> None:
        self._closed = True
        self._executor.shutdown(wait=wait)
