"""
Exceptions raised by the vendor review API client.
"""


class FeedbackAPIError(Exception):
    """Base exception for vendor API client errors."""
    pass


class TransportError(FeedbackAPIError):
    """
    Network failure, timeout, HTTP status >= 400, or an undecodable body.

    Attributes:
        status_code: HTTP status if a response was received
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class VendorAPIError(FeedbackAPIError):
    """
    The vendor envelope reported ``error: true`` (even with HTTP 200).

    Attributes:
        error_text: Vendor's errorText field
        additional_errors: Vendor's additionalErrors field, passed through as-is
    """

    def __init__(self, error_text: str, additional_errors=None):
        super().__init__(f"wb api error: {error_text}")
        self.error_text = error_text
        self.additional_errors = additional_errors


class RequestCancelled(FeedbackAPIError):
    """Cancellation fired before the request was sent; no HTTP call was made."""
    pass
