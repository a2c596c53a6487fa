"""
Review model representing one customer review fetched from the vendor API (ephemeral).
"""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

MIN_RATING = 1
MAX_RATING = 5


class Review(BaseModel):
    """
    A customer review fetched per cycle (never persisted; only its id is).

    Field names follow Python conventions; the vendor's JSON names are
    accepted through aliases.

    Attributes:
        id: Vendor-assigned review identifier (opaque, stable)
        text: Free-text review body
        pros: Free-text "pros" section
        cons: Free-text "cons" section
        rating: Star rating, clamped into 1..5
        created_date: When the customer posted the review
        was_viewed: Vendor "viewed" flag (carried, not acted upon)
        is_warned: Vendor "warned" flag (carried, not acted upon)
    """

    id: str = Field(..., min_length=1)
    text: str = ""
    pros: str = ""
    cons: str = ""
    rating: int = Field(MIN_RATING, alias="productValuation")
    created_date: datetime | None = Field(None, alias="createdDate")
    was_viewed: bool = Field(False, alias="wasViewed")
    is_warned: bool = Field(False, alias="isWarned")

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        """Numeric ids are kept as strings to avoid precision loss."""
        if isinstance(v, int):
            return str(v)
        return v

    @field_validator("text", "pros", "cons", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else v

    @field_validator("rating", mode="before")
    @classmethod
    def clamp_rating(cls, v):
        """Clamp out-of-range ratings into 1..5 instead of rejecting the review."""
        try:
            rating = int(float(v))
        except (TypeError, ValueError, OverflowError):
            return MIN_RATING
        return max(MIN_RATING, min(MAX_RATING, rating))

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "id": "YX52RZEBhH9mrcYdEJuD",
                "text": "Great fabric, fits well",
                "pros": "Quality",
                "cons": "",
                "productValuation": 5,
                "createdDate": "2025-08-01T10:15:00Z",
                "wasViewed": True,
                "isWarned": False
            }
        }
