"""
Core data models for the review auto-responder.

All models use Pydantic for runtime validation and type safety.
"""

from .cycle_result import CycleResult
from .processed_mark import ProcessedMark
from .review import MAX_RATING, MIN_RATING, Review
from .tenant_config import PLACEHOLDER_TEMPLATE, UNSET_TOKEN, TenantConfig

__all__ = [
    "Review",
    "TenantConfig",
    "ProcessedMark",
    "CycleResult",
    "MIN_RATING",
    "MAX_RATING",
    "UNSET_TOKEN",
    "PLACEHOLDER_TEMPLATE",
]
