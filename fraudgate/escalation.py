"""
Ban escalation.

The only path that creates ban entries. Turns a fraud or legitimate verdict
on a claim into permanent bans and the claim's terminal status.

The origin ban and the identity ban are two independent, idempotent writes,
each retried on its own. A partial failure is logged and reported, never
rolled back: over-banning is the safe direction. Bans are written before the
claim status, so re-running an escalation after any failure converges.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from tenacity import Retrying, stop_after_attempt, wait_exponential

from .cache import AccessCache
from .claims import Claim, ClaimStatus, Decision
from .errors import FraudGateError
from .stores import BanStore, ClaimStore
from .subjects import BanEntry, SubjectKind, normalize_identity, normalize_origin

logger = logging.getLogger(__name__)


class ClaimNotFound(FraudGateError):
    def __init__(self, claim_id: str):
        self.claim_id = claim_id
        super().__init__(f"Claim not found: {claim_id}")


class DecisionConflict(FraudGateError):
    """Raised when a decision would reverse a fraud determination."""

    def __init__(self, claim_id: str, status: ClaimStatus, decision: Decision):
        self.claim_id = claim_id
        self.status = status
        self.decision = decision
        super().__init__(f"Claim {claim_id} is {status.value}; cannot apply {decision.value}")


@dataclass
class EscalationReport:
    """What an escalation actually did."""
    claim_id: str
    decision: Decision
    status: ClaimStatus
    origin_banned: bool = False
    identity_banned: bool = False
    failures: List[str] = field(default_factory=list)

    def complete(self) -> bool:
        return not self.failures

    def to_dict(self) -> Dict[str, Any]:
        return {
            "claim_id": self.claim_id,
            "decision": self.decision.value,
            "status": self.status.value,
            "origin_banned": self.origin_banned,
            "identity_banned": self.identity_banned,
            "failures": list(self.failures),
        }


class BanEscalation:
    """
    Applies terminal decisions to claims.

    Usage:
        escalation = BanEscalation(ban_store, claim_store, AccessCache())
        report = escalation.decide(claim_id, Decision.FRAUD, "Manual Admin Ban")
    """

    def __init__(
        self,
        ban_store: BanStore,
        claim_store: ClaimStore,
        cache: Optional[AccessCache] = None,
        max_attempts: int = 3,
        backoff_seconds: float = 0.2
    ):
        self.ban_store = ban_store
        self.claim_store = claim_store
        self.cache = cache
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = backoff_seconds

    def escalate(self, claim: Claim, decision: Decision, reason: str) -> EscalationReport:
        """
        Apply a decision to a claim and persist its terminal status.

        Ban write failures are reported in the result. A claim store failure
        is raised (ClaimStoreError) after all bans have been attempted.

        Raises:
            DecisionConflict: If a FRAUD claim would be marked legitimate
        """
        decision = Decision(decision)
        if decision == Decision.LEGITIMATE and claim.status == ClaimStatus.FRAUD:
            raise DecisionConflict(claim.id, claim.status, decision)

        report = EscalationReport(claim_id=claim.id, decision=decision, status=claim.status)

        if decision == Decision.FRAUD:
            origin = normalize_origin(claim.origin)
            if origin is not None:
                report.origin_banned = self._write_ban(SubjectKind.ORIGIN, origin, reason, claim.id, report)
                if report.origin_banned and self.cache is not None:
                    self.cache.mark_banned(origin)
            identity = normalize_identity(claim.identity)
            if identity is not None:
                report.identity_banned = self._write_ban(SubjectKind.IDENTITY, identity, reason, claim.id, report)
            new_status = ClaimStatus.FRAUD
        else:
            new_status = ClaimStatus.APPROVED

        if claim.status != new_status or claim.decided_at is None:
            claim.status = new_status
            claim.decided_at = datetime.now(timezone.utc)
            claim.decision_reason = reason
        self.claim_store.save(claim)
        report.status = claim.status

        logger.info(
            "Claim %s decided %s", claim.id, decision.value,
            extra={"extra_fields": {"claim_id": claim.id, **report.to_dict()}}
        )
        return report

    def decide(self, claim_id: str, decision: Decision, reason: str) -> EscalationReport:
        """
        Apply a human review decision to a stored claim.

        Stored claims carry only the origin hash, so this bans the identity;
        the origin is banned only when the claim's raw origin is known.

        Raises:
            ClaimNotFound: If no claim has this id
        """
        claim = self.claim_store.get(claim_id)
        if claim is None:
            raise ClaimNotFound(claim_id)
        return self.escalate(claim, decision, reason)

    def _write_ban(
        self,
        kind: SubjectKind,
        value: str,
        reason: str,
        claim_id: str,
        report: EscalationReport
    ) -> bool:
        """Write one ban with retries. Returns True on success."""
        entry = BanEntry(kind=kind, value=value, reason=reason)
        try:
            for attempt in Retrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_exponential(multiplier=self.backoff_seconds, max=2),
                reraise=True,
            ):
                with attempt:
                    self.ban_store.add_ban(entry)
        except Exception as e:
            logger.error(
                "Failed to record %s ban for claim %s after %d attempts: %s",
                kind.value.lower(), claim_id, self.max_attempts, e,
                extra={"extra_fields": {"claim_id": claim_id, "subject_kind": kind.value}}
            )
            report.failures.append(f"{kind.value}: {e}")
            return False
        return True
