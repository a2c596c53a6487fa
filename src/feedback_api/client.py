"""
Vendor Feedbacks API client - HTTP wrapper with auth and rate limiting.

Provides two logical operations:
- list unanswered reviews (newest first)
- submit an answer to a review

No retries happen here; callers decide what a failure means for them.
"""

import logging
import threading
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

import requests

from src.core.models import Review
from src.observability.logger import get_logger
from src.observability.metrics import FeedbackMetrics

from .errors import RequestCancelled, TransportError, VendorAPIError
from .rate_limiter import TokenBucket

DEFAULT_BASE_URL = "https://feedbacks-api.wildberries.ru"

# Seconds allowed for a single request (connect + read)
DEFAULT_TIMEOUT = 15.0

# Vendor maximum page size for the list endpoint
MAX_TAKE = 5000

LIST_PATH = "/api/v1/feedbacks"
ANSWER_PATH = "/api/v1/feedbacks/answer"

# Bytes of an error body kept in exception messages
ERROR_BODY_LIMIT = 1024


class FeedbackAPIClient:
    """
    Thin wrapper over the vendor Feedbacks API.

    Handles the auth header, base URL, outbound rate limiting and JSON
    envelope decoding. A single instance is safe for concurrent use; the
    limiter serializes token acquisition across threads.

    Usage:
        client = FeedbackAPIClient(token, rate_limit=3, burst=6)
        reviews = client.fetch_unanswered(take=5000, cancel=stop_event)
        client.answer_feedback(reviews[0].id, "Thank you!")
    """

    def __init__(
        self,
        token: str,
        *,
        base_url: Optional[str] = None,
        rate_limit: Optional[float] = None,
        burst: Optional[int] = None,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
        metrics: Optional[FeedbackMetrics] = None,
        tenant_id: Optional[int] = None,
    ):
        """
        Initialize the client.

        Args:
            token: Vendor bearer token
            base_url: API endpoint (empty or None keeps the production default)
            rate_limit: Requests per second (None or <= 0 disables throttling)
            burst: Token bucket capacity (defaults to max(1, rate_limit))
            timeout: Per-request timeout in seconds
            session: requests.Session to use (a private one is created if None)
            logger: Logger instance
            metrics: Metrics handle for rate limit hits
            tenant_id: Tenant label for metrics and logs

        Raises:
            ValueError: If no token is given
        """
        if not token or not token.strip():
            raise ValueError("vendor API token is required")

        self.token = token.strip()
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/") + "/"
        self.timeout = timeout
        self.tenant_id = tenant_id
        self.log = logger or get_logger(__name__)
        self.metrics = metrics

        self.limiter: Optional[TokenBucket] = None
        if rate_limit is not None and rate_limit > 0:
            self.limiter = TokenBucket(rate_limit, burst if burst else max(1, int(rate_limit)))

        self._owns_session = session is None
        self.session = session or requests.Session()

    def fetch_unanswered(
        self,
        take: int,
        skip: int = 0,
        cancel: Optional[threading.Event] = None,
    ) -> List[Review]:
        """
        Retrieve unanswered reviews ordered by date, newest first.

        Args:
            take: Page size (caller keeps it <= MAX_TAKE)
            skip: Offset into the unanswered list
            cancel: Event that aborts the call before the request is sent

        Returns:
            Reviews in vendor order

        Raises:
            TransportError: On network, HTTP or decoding errors
            VendorAPIError: When the envelope reports error=true
            RequestCancelled: When cancelled before the request was sent
        """
        params = {
            "isAnswered": "false",
            "take": str(take),
            "skip": str(skip),
            "order": "dateDesc",
        }
        envelope = self._request("GET", LIST_PATH, cancel, params=params)

        data = envelope.get("data")
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise TransportError(f"wb api: unexpected data field of type {type(data).__name__}")
        raw_reviews = data.get("feedbacks") or []
        if not isinstance(raw_reviews, list):
            raise TransportError(f"wb api: unexpected feedbacks field of type {type(raw_reviews).__name__}")
        self.log.debug(
            "fetched unanswered reviews",
            extra={
                "tenant_id": self.tenant_id,
                "count": len(raw_reviews),
                "count_unanswered": data.get("countUnanswered"),
            },
        )

        reviews = []
        for item in raw_reviews:
            try:
                reviews.append(Review.model_validate(item))
            except ValueError as e:
                self.log.warning(
                    "skipping malformed review",
                    extra={"tenant_id": self.tenant_id, "error": str(e).splitlines()[0]},
                )
        return reviews

    def answer_feedback(
        self,
        feedback_id: str,
        text: str,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        """
        Post a reply to a review.

        Args:
            feedback_id: Vendor review identifier
            text: Reply text
            cancel: Event that aborts the call before the request is sent

        Raises:
            TransportError: On network, HTTP or decoding errors
            VendorAPIError: When the envelope reports error=true
            RequestCancelled: When cancelled before the request was sent
        """
        self._request("POST", ANSWER_PATH, cancel, json={"id": feedback_id, "text": text})

    def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._owns_session:
            self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    # --- internal helpers ---

    def _resolve(self, path: str) -> str:
        return urljoin(self.base_url, path.lstrip("/"))

    def _wait(self, cancel: Optional[threading.Event]) -> None:
        if cancel is not None and cancel.is_set():
            raise RequestCancelled("cancelled before request")
        if self.limiter is None or self.limiter.try_acquire():
            return

        if self.metrics is not None:
            self.metrics.record_rate_limit_hit(self.tenant_id)
        self.limiter.acquire(cancel)

    def _request(
        self,
        method: str,
        path: str,
        cancel: Optional[threading.Event],
        **kwargs: Any,
    ) -> Dict[str, Any]:
        self._wait(cancel)
        if cancel is not None and cancel.is_set():
            raise RequestCancelled("cancelled before request")

        headers = {"Authorization": f"Bearer {self.token}"}
        try:
            response = self.session.request(
                method,
                self._resolve(path),
                headers=headers,
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as e:
            raise TransportError(f"wb api request failed: {e}") from e

        if response.status_code >= 400:
            body = response.content[:ERROR_BODY_LIMIT].decode("utf-8", errors="replace")
            raise TransportError(
                f"wb api http {response.status_code}: {body}",
                status_code=response.status_code,
            )

        if not response.content:
            return {}

        try:
            envelope = response.json()
        except ValueError as e:
            raise TransportError(
                f"wb api: invalid JSON response: {e}", status_code=response.status_code
            ) from e

        if not isinstance(envelope, dict):
            raise TransportError(
                "wb api: unexpected response shape", status_code=response.status_code
            )

        if envelope.get("error"):
            raise VendorAPIError(
                envelope.get("errorText") or "",
                envelope.get("additionalErrors"),
            )
        return envelope
