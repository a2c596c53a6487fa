"""
Processing cycle: one fetch-dedupe-answer-record pass for one tenant.

Flow:
1. Fetch unanswered reviews (newest page only)
2. For each review not yet marked processed locally:
   - choose a reply template by rating
   - submit the answer
   - record the review id (idempotent)
3. Report counts via logs and metrics

The cycle never raises; every failure becomes a counter and a log entry.
"""

import logging
import threading
import time
from typing import Optional

from src.core.models import CycleResult
from src.core.templates import TemplateSelector
from src.feedback_api import MAX_TAKE, FeedbackAPIClient, FeedbackAPIError, RequestCancelled
from src.observability.logger import get_logger, tenant_logger
from src.observability.metrics import (
    STATUS_ANSWERED,
    STATUS_FAILED,
    STATUS_SKIPPED,
    FeedbackMetrics,
)
from src.storage.store import ProcessedStore


class ProcessingCycle:
    """
    Ties together the vendor client, the dedup store and the templates of
    one tenant.

    Holds no state between runs; the outcome of run() depends only on the
    vendor's current unanswered list and the dedup store.
    """

    def __init__(
        self,
        tenant_id: int,
        client: FeedbackAPIClient,
        store: ProcessedStore,
        selector: TemplateSelector,
        take: int = MAX_TAKE,
        logger: Optional[logging.Logger] = None,
        metrics: Optional[FeedbackMetrics] = None,
    ):
        """
        Initialize the cycle.

        Args:
            tenant_id: Tenant whose reviews are processed
            client: Configured vendor API client
            store: Dedup store
            selector: Reply template selector
            take: Page size; values outside 1..5000 become 5000
            logger: Logger instance
            metrics: Metrics handle
        """
        if take <= 0 or take > MAX_TAKE:
            take = MAX_TAKE

        self.tenant_id = tenant_id
        self.client = client
        self.store = store
        self.selector = selector
        self.take = take
        self.log = tenant_logger(logger or get_logger(__name__), tenant_id)
        self.metrics = metrics or FeedbackMetrics()

    def __call__(self, cancel: Optional[threading.Event] = None) -> CycleResult:
        return self.run(cancel)

    def run(self, cancel: Optional[threading.Event] = None) -> CycleResult:
        """
        Execute one pass. Scheduled ticks and manual runs both land here.

        Args:
            cancel: Event checked between reviews and passed to the client

        Returns:
            Counts of this pass
        """
        start = time.monotonic()
        result = CycleResult(tenant_id=self.tenant_id)
        self.log.debug("cycle: fetching reviews", extra={"take": self.take})

        try:
            reviews = self.client.fetch_unanswered(self.take, 0, cancel=cancel)
        except RequestCancelled:
            self.log.info("cycle: cancelled before fetch")
            result.cancelled = True
            return self._finish(result, start)
        except FeedbackAPIError as e:
            self.log.error("cycle: fetch failed", extra={"error": str(e)})
            self.metrics.record_api_error("fetch")
            result.fetch_failed = True
            return self._finish(result, start)

        result.total = len(reviews)

        for review in reviews:
            if cancel is not None and cancel.is_set():
                self.log.info(
                    "cycle: cancelled",
                    extra={
                        "answered": result.answered,
                        "skipped": result.skipped,
                        "failed": result.failed,
                    },
                )
                result.cancelled = True
                break

            review_ctx = {"review_id": review.id}

            try:
                exists = self.store.exists(self.tenant_id, review.id)
            except Exception as e:
                # Retried on the next tick
                self.log.warning("cycle: storage exists error", extra={**review_ctx, "error": str(e)})
                self.metrics.record_database_error("exists")
                result.store_errors += 1
                continue

            if exists:
                result.skipped += 1
                continue

            text = self.selector.select(review.rating)
            try:
                self.client.answer_feedback(review.id, text, cancel=cancel)
            except RequestCancelled:
                self.log.info("cycle: cancelled before answer", extra=review_ctx)
                result.cancelled = True
                break
            except FeedbackAPIError as e:
                self.log.warning("cycle: answer failed", extra={**review_ctx, "error": str(e)})
                self.metrics.record_api_error("answer")
                result.failed += 1
                continue

            result.answered += 1

            try:
                self.store.save(self.tenant_id, review.id)
            except Exception as e:
                # The vendor stops listing answered reviews, so the missing
                # mark does not cause a second answer once that propagates.
                self.log.warning(
                    "cycle: save failed after answer",
                    extra={**review_ctx, "error": str(e)},
                )
                self.metrics.record_database_error("save")

        return self._finish(result, start)

    def _finish(self, result: CycleResult, start: float) -> CycleResult:
        result.duration_seconds = time.monotonic() - start

        self.metrics.record_processed(self.tenant_id, STATUS_ANSWERED, result.answered)
        self.metrics.record_processed(self.tenant_id, STATUS_SKIPPED, result.skipped)
        self.metrics.record_processed(self.tenant_id, STATUS_FAILED, result.failed)
        self.metrics.observe_cycle_duration(self.tenant_id, result.duration_seconds)

        self.log.info(
            "cycle complete",
            extra={
                "duration_seconds": round(result.duration_seconds, 3),
                "answered": result.answered,
                "skipped": result.skipped,
                "failed": result.failed,
                "store_errors": result.store_errors,
                "total": result.total,
                "fetch_failed": result.fetch_failed,
                "cancelled": result.cancelled,
            },
        )
        return result
