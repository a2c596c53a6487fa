"""
ProcessedMark model: durable record that a tenant's review has been answered.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class ProcessedMark(BaseModel):
    """
    Composite key (tenant_id, review_id); created once, never updated.

    Attributes:
        tenant_id: Tenant that answered the review
        review_id: Vendor review identifier
        created_at: When the answer was recorded
    """

    tenant_id: int
    review_id: str = Field(..., min_length=1)
    created_at: datetime = Field(default_factory=datetime.utcnow)
