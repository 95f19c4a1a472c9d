"""
Origin hashing.

Claim records keep only a one-way hash of the submitting origin. The raw
origin is the live key for bans and the access cache and is never written
into a claim record.
"""

import hashlib
import hmac
from typing import Optional, Union

from .subjects import normalize_origin


def sha256_hash(data: Union[bytes, str]) -> str:
    """
    Compute a SHA-256 hash.

    Returns:
        Hash string in format "sha256:abcdef..."
    """
    if isinstance(data, str):
        data = data.encode('utf-8')
    return f"sha256:{hashlib.sha256(data).hexdigest()}"


def origin_hash(origin: Optional[str], salt: str = "") -> str:
    """
    Hash an origin for audit storage.

    The origin is normalized first so equivalent spellings of one address
    hash identically. Absent or unparseable origins hash as "unknown".
    With a salt, HMAC-SHA256 is used so the small IPv4 space cannot be
    brute-forced back from stored hashes.
    """
    value = normalize_origin(origin) or "unknown"
    if not salt:
        return sha256_hash(value)
    digest = hmac.new(salt.encode('utf-8'), value.encode('utf-8'), hashlib.sha256).hexdigest()
    return f"sha256:{digest}"


def content_hash(data: bytes) -> str:
    """Content-addressed reference for stored artifacts."""
    return f"content:sha256:{hashlib.sha256(data).hexdigest()}"
