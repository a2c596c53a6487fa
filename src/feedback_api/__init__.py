"""
Vendor review API client.

Wraps the unanswered-review listing and answer submission endpoints behind
bearer-token auth and an outbound token-bucket limiter.
"""

from .client import DEFAULT_BASE_URL, DEFAULT_TIMEOUT, MAX_TAKE, FeedbackAPIClient
from .errors import FeedbackAPIError, RequestCancelled, TransportError, VendorAPIError
from .rate_limiter import TokenBucket

__all__ = [
    "DEFAULT_BASE_URL",
    "DEFAULT_TIMEOUT",
    "MAX_TAKE",
    "FeedbackAPIClient",
    "FeedbackAPIError",
    "RequestCancelled",
    "TransportError",
    "VendorAPIError",
    "TokenBucket",
]
