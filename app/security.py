"""
Security module for the FraudGate service.

Provides input validation, admin authentication and origin extraction.
"""

import hmac
import re
from decimal import Decimal, InvalidOperation
from typing import Optional

from fraudgate import Decision


# ============================================================
# Input Validation
# ============================================================

# Regex patterns for validation
CLAIM_ID_PATTERN = re.compile(r'^[a-f0-9]{32}$')
EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')

# Values the storefront sends when no amount applies
NO_AMOUNT_VALUES = {"", "none", "null", "undefined"}
MAX_CONTACT_LENGTH = 500
MAX_REASON_LENGTH = 500

# Operator decision vocabulary
DECISION_VALUES = {
    "REAL": Decision.LEGITIMATE,
    "LEGITIMATE": Decision.LEGITIMATE,
    "FAKE": Decision.FRAUD,
    "FRAUD": Decision.FRAUD,
}


class ValidationError(Exception):
    """Raised when input validation fails."""
    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


def validate_claim_id(value: str) -> str:
    """Validate a claim ID (32 hex characters)."""
    if not isinstance(value, str):
        raise ValidationError("orderId", "must be a string")
    value = value.strip().lower()
    if not CLAIM_ID_PATTERN.match(value):
        raise ValidationError("orderId", "must be 32 hexadecimal characters")
    return value


def validate_expected_amount(value: Optional[str]) -> Optional[Decimal]:
    """
    Parse the optional expected payment amount.

    Returns:
        Decimal amount, or None when absent

    Raises:
        ValidationError: If the amount is not a finite non-negative number
    """
    if value is None or value.strip().lower() in NO_AMOUNT_VALUES:
        return None
    try:
        amount = Decimal(value.strip())
    except InvalidOperation:
        raise ValidationError("expectedAmount", "must be a number")
    if not amount.is_finite() or amount < 0:
        raise ValidationError("expectedAmount", "must be a non-negative number")
    return amount


def validate_email(value: Optional[str]) -> Optional[str]:
    """Validate an optional email; normalization happens in the core."""
    if value is None or not value.strip():
        return None
    value = value.strip()
    if len(value) > 254 or not EMAIL_PATTERN.match(value):
        raise ValidationError("userEmail", "must be a valid email address")
    return value


def validate_contact(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if len(value) > MAX_CONTACT_LENGTH:
        raise ValidationError("contactInfo", f"must not exceed {MAX_CONTACT_LENGTH} characters")
    return value or None


def validate_image_upload(mime_type: Optional[str], size: int, max_bytes: int) -> str:
    """
    Validate an uploaded screenshot.

    Raises:
        ValidationError: If the file is not an image or is empty
    """
    if not mime_type or not mime_type.lower().startswith("image/"):
        raise ValidationError("screenshot", "only image files are allowed")
    if size <= 0:
        raise ValidationError("screenshot", "file is empty")
    if size > max_bytes:
        raise ValidationError("screenshot", f"file exceeds {max_bytes} bytes")
    return mime_type.lower()


def validate_decision(value: str) -> Decision:
    if not isinstance(value, str) or value.strip().upper() not in DECISION_VALUES:
        raise ValidationError("decision", "must be REAL or FAKE")
    return DECISION_VALUES[value.strip().upper()]


def validate_reason(value: Optional[str], default: str) -> str:
    if value is None or not value.strip():
        return default
    value = value.strip()
    if len(value) > MAX_REASON_LENGTH:
        raise ValidationError("reason", f"must not exceed {MAX_REASON_LENGTH} characters")
    return value


# ============================================================
# Authentication
# ============================================================

def constant_time_compare(a: str, b: str) -> bool:
    """
    Compare two strings in constant time to prevent timing attacks.
    """
    return hmac.compare_digest(a.encode('utf-8'), b.encode('utf-8'))


def is_admin(provided_secret: Optional[str], configured_secret: str) -> bool:
    """An unset configured secret disables admin access entirely."""
    if not configured_secret or not provided_secret:
        return False
    return constant_time_compare(provided_secret, configured_secret)


# ============================================================
# Request Origin
# ============================================================

def client_origin(peer_host: Optional[str], forwarded_for: Optional[str], trust_proxy: bool) -> Optional[str]:
    """
    Determine the request origin.

    Behind a trusted proxy the first X-Forwarded-For hop is the client;
    otherwise the header is attacker-controlled and ignored.
    """
    if trust_proxy and forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    return peer_host
