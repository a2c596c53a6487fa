"""
CycleResult model representing the outcome of one processing cycle (ephemeral).
"""

from pydantic import BaseModel, Field


class CycleResult(BaseModel):
    """
    Counts produced by one fetch-dedupe-answer-record pass.

    Attributes:
        tenant_id: Tenant the cycle ran for
        total: Reviews returned by the fetch
        answered: Reviews answered in this cycle
        skipped: Reviews already marked as processed
        failed: Reviews whose answer submission failed
        store_errors: Reviews skipped because the dedup lookup failed
        fetch_failed: Whether the fetch aborted the cycle
        cancelled: Whether cancellation stopped the cycle early
        duration_seconds: Wall time of the cycle
    """

    tenant_id: int
    total: int = Field(0, ge=0)
    answered: int = Field(0, ge=0)
    skipped: int = Field(0, ge=0)
    failed: int = Field(0, ge=0)
    store_errors: int = Field(0, ge=0)
    fetch_failed: bool = False
    cancelled: bool = False
    duration_seconds: float = Field(0.0, ge=0.0)

    def summary(self) -> str:
        """Short, counts-only message for the end user."""
        if self.fetch_failed:
            return "Processing failed: could not fetch reviews. Will retry on the next run."
        lines = [
            "Processing finished" if not self.cancelled else "Processing stopped",
            f"Fetched: {self.total}",
            f"Answered: {self.answered}",
            f"Already answered: {self.skipped}",
            f"Failed: {self.failed}",
        ]
        return "\n".join(lines)
