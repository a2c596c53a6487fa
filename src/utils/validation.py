"""
Input validation utilities for the review auto-responder.

Provides reusable validation functions for values entered by tenants or
operators (vendor tokens, reply templates, tenant ids, page sizes) so that
bad input is rejected before it reaches storage or the vendor API.
"""

import re

# Token length bounds (JWT tokens can be 500-1000 chars)
MIN_TOKEN_LENGTH = 20
MAX_TOKEN_LENGTH = 2000

# Reply template size limit in characters
MAX_TEMPLATE_LENGTH = 10000

_TOKEN_RE = re.compile(r'^[a-zA-Z0-9_\-\.]+$')


class ValidationError(ValueError):
    """Raised when input validation fails."""
    pass


def validate_token(token: str, field_name: str = "token") -> str:
    """
    Validate a vendor API token.

    Tokens must be MIN_TOKEN_LENGTH..MAX_TOKEN_LENGTH characters of letters,
    digits, dots, hyphens and underscores.

    Args:
        token: The token to validate
        field_name: Name of the field (for error messages)

    Returns:
        The validated token (stripped of whitespace)

    Raises:
        ValidationError: If validation fails

    Examples:
        >>> validate_token("  eyJhbGciOiJFUzI1NiIsImtpZCI6IjIwMjQ  ")
        'eyJhbGciOiJFUzI1NiIsImtpZCI6IjIwMjQ'
        >>> validate_token("short")  # doctest: +SKIP
        ValidationError: token is too short (minimum 20 characters)
    """
    if not token or not isinstance(token, str):
        raise ValidationError(f"{field_name} must be a non-empty string")

    token = token.strip()

    if not token:
        raise ValidationError(f"{field_name} cannot be empty or whitespace-only")

    if len(token) < MIN_TOKEN_LENGTH:
        raise ValidationError(f"{field_name} is too short (minimum {MIN_TOKEN_LENGTH} characters)")

    if len(token) > MAX_TOKEN_LENGTH:
        raise ValidationError(f"{field_name} is too long (maximum {MAX_TOKEN_LENGTH} characters)")

    if not _TOKEN_RE.match(token):
        raise ValidationError(
            f"{field_name} contains invalid characters. "
            "Only letters, digits, hyphens, underscores, and dots are allowed."
        )

    return token


def validate_template(text: str, field_name: str = "template") -> str:
    """
    Validate a reply template.

    Args:
        text: The template text
        field_name: Name of the field (for error messages)

    Returns:
        The validated template (stripped of whitespace)

    Raises:
        ValidationError: If the template is empty or too long
    """
    if not isinstance(text, str):
        raise ValidationError(f"{field_name} must be a string")

    text = text.strip()

    if not text:
        raise ValidationError(f"{field_name} cannot be empty or whitespace-only")

    if len(text) > MAX_TEMPLATE_LENGTH:
        raise ValidationError(f"{field_name} exceeds maximum length of {MAX_TEMPLATE_LENGTH} characters")

    if "\x00" in text:
        raise ValidationError(f"{field_name} contains null bytes")

    return text


def validate_tenant_id(tenant_id: int, field_name: str = "tenant_id") -> int:
    """
    Validate a tenant (chat) identifier.

    Chat identifiers are non-zero integers; group chats are negative.

    Raises:
        ValidationError: If validation fails
    """
    if isinstance(tenant_id, bool) or not isinstance(tenant_id, int):
        raise ValidationError(f"{field_name} must be an integer, got {type(tenant_id).__name__}")

    if tenant_id == 0:
        raise ValidationError(f"{field_name} must be non-zero")

    return tenant_id


def validate_take(take: int, field_name: str = "take", max_take: int = 5000) -> int:
    """
    Validate a page size for the unanswered-review listing.

    Examples:
        >>> validate_take(100)
        100
        >>> validate_take(0)  # doctest: +SKIP
        ValidationError: take must be a positive integer
    """
    if isinstance(take, bool) or not isinstance(take, int):
        raise ValidationError(f"{field_name} must be an integer, got {type(take).__name__}")

    if take <= 0:
        raise ValidationError(f"{field_name} must be a positive integer, got {take}")

    if take > max_take:
        raise ValidationError(f"{field_name} exceeds maximum of {max_take}")

    return take


def mask_dsn(dsn: str) -> str:
    """
    Mask the password of a libpq DSN for logging.

    Handles both key=value DSNs and postgresql:// URLs.

    Examples:
        >>> mask_dsn("host=db user=bot password=secret dbname=feedbacks")
        'host=db user=bot password=*** dbname=feedbacks'
        >>> mask_dsn("postgresql://bot:secret@db:5432/feedbacks")
        'postgresql://bot:***@db:5432/feedbacks'
    """
    if not dsn:
        return dsn

    masked = re.sub(r'(password=)\S+', r'\1***', dsn)
    masked = re.sub(r'^(\w+://[^:/@]+:)[^@]*(@)', r'\1***\2', masked)
    return masked
