"""
Ban subjects and normalization.

Every value that is compared against, or written to, the ban store passes
through one of the normalizers below first. A ban recorded for
" Alice@Example.com " and a lookup for "alice@example.com" must be the
same key, otherwise a ban is bypassed by case or whitespace variation.
"""

import ipaddress
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class SubjectKind(str, Enum):
    """What a ban applies to."""
    ORIGIN = "ORIGIN"       # Network-level source address
    IDENTITY = "IDENTITY"   # Account identifier (email)


def normalize_identity(raw: Optional[str]) -> Optional[str]:
    """
    Normalize an account identifier.

    Returns:
        The trimmed, case-folded identity, or None when empty
    """
    if raw is None:
        return None
    value = str(raw).strip().casefold()
    return value or None


def normalize_origin(raw: Optional[str]) -> Optional[str]:
    """
    Normalize a network origin.

    Unparseable values return None so they never match a ban.
    IPv4-mapped IPv6 addresses collapse to their IPv4 form.
    """
    if raw is None:
        return None
    value = str(raw).strip()
    if not value:
        return None
    try:
        addr = ipaddress.ip_address(value)
    except ValueError:
        return None
    if isinstance(addr, ipaddress.IPv6Address) and addr.ipv4_mapped is not None:
        addr = addr.ipv4_mapped
    return addr.compressed


def normalize_subject(kind: SubjectKind, raw: Optional[str]) -> Optional[str]:
    if kind == SubjectKind.ORIGIN:
        return normalize_origin(raw)
    return normalize_identity(raw)


@dataclass(frozen=True)
class BanEntry:
    """Permanent record barring an origin or identity. Never mutated."""
    kind: SubjectKind
    value: str
    reason: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def create(cls, kind: SubjectKind, raw_value: str, reason: str) -> "BanEntry":
        """Build an entry from an unnormalized value."""
        value = normalize_subject(kind, raw_value)
        if value is None:
            raise ValueError(f"Cannot ban empty or invalid {kind.value.lower()}: {raw_value!r}")
        return cls(kind=kind, value=value, reason=reason)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "value": self.value,
            "reason": self.reason,
            "created_at": self.created_at.isoformat().replace("+00:00", "Z"),
        }
