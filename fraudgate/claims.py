"""
Purchase claims.

A claim is one submitted payment proof. It is created by the verification
pipeline and only ever changes status through a terminal decision
(automated fraud, or a later human review). Claims are never deleted.
"""

import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from .classifier import ClassifierVerdict


class ClaimStatus(str, Enum):
    PENDING_REVIEW = "PENDING_REVIEW"
    APPROVED = "APPROVED"
    FRAUD = "FRAUD"


class Decision(str, Enum):
    """Verdict handed to ban escalation."""
    FRAUD = "FRAUD"
    LEGITIMATE = "LEGITIMATE"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(ts: Optional[datetime]) -> Optional[str]:
    if ts is None:
        return None
    return ts.isoformat(timespec="microseconds").replace("+00:00", "Z")


def _parse_iso(s: Optional[str]) -> Optional[datetime]:
    if not s:
        return None
    return datetime.fromisoformat(s.replace("Z", "+00:00"))


def generate_claim_id() -> str:
    return secrets.token_hex(16)


@dataclass
class Claim:
    """
    A purchase-verification submission.

    `origin` is the raw network origin and only lives in memory: it lets an
    automated decision ban the submitter immediately. `to_record()` drops it
    and keeps `origin_hash` instead.
    """
    origin_hash: str
    verdict: ClassifierVerdict
    identity: Optional[str] = None
    expected_amount: Optional[Decimal] = None
    evidence_ref: Optional[str] = None
    contact_info: str = "Not Provided"
    status: ClaimStatus = ClaimStatus.PENDING_REVIEW
    id: str = field(default_factory=generate_claim_id)
    created_at: datetime = field(default_factory=_utcnow)
    decided_at: Optional[datetime] = None
    decision_reason: Optional[str] = None
    origin: Optional[str] = field(default=None, repr=False, compare=False)

    @property
    def is_decided(self) -> bool:
        return self.status != ClaimStatus.PENDING_REVIEW

    def to_record(self) -> Dict[str, Any]:
        """Durable representation. Never contains the raw origin."""
        return {
            "id": self.id,
            "origin_hash": self.origin_hash,
            "identity": self.identity,
            "expected_amount": str(self.expected_amount) if self.expected_amount is not None else None,
            "evidence_ref": self.evidence_ref,
            "contact_info": self.contact_info,
            "verdict": self.verdict.to_dict(),
            "status": self.status.value,
            "created_at": _iso(self.created_at),
            "decided_at": _iso(self.decided_at),
            "decision_reason": self.decision_reason,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Claim":
        amount = record.get("expected_amount")
        return cls(
            id=record["id"],
            origin_hash=record["origin_hash"],
            identity=record.get("identity"),
            expected_amount=Decimal(amount) if amount is not None else None,
            evidence_ref=record.get("evidence_ref"),
            contact_info=record.get("contact_info") or "Not Provided",
            verdict=ClassifierVerdict.from_dict(record["verdict"]),
            status=ClaimStatus(record["status"]),
            created_at=_parse_iso(record["created_at"]),
            decided_at=_parse_iso(record.get("decided_at")),
            decision_reason=record.get("decision_reason"),
        )
