"""
Reply template selection by star rating.
"""

# Lowest rating answered with the "good" template
GOOD_RATING_THRESHOLD = 4


class TemplateError(ValueError):
    """Raised when a reply template is missing or empty."""
    pass


class TemplateSelector:
    """
    Stores two pre-validated reply texts and picks one by star rating.

    - rating >= 4 -> good template
    - anything else (including out-of-range values) -> bad template
    """

    def __init__(self, good: str, bad: str):
        """
        Initialize the selector.

        Args:
            good: Reply for 4-5 star reviews
            bad: Reply for 1-3 star reviews

        Raises:
            TemplateError: If either text is empty after trimming
        """
        good = (good or "").strip()
        bad = (bad or "").strip()
        if not good or not bad:
            raise TemplateError("template texts must be non-empty")

        self.good = good
        self.bad = bad

    def select(self, rating: int) -> str:
        if rating >= GOOD_RATING_THRESHOLD:
            return self.good
        return self.bad
