"""
Verification pipeline.

Turns one submitted payment proof into a durable claim awaiting review.
Stages run strictly in order, and each owns its failure policy:

    1. Identity pre-check     banned -> REJECTED        error -> continue (fail open)
    2. Classification         verdict                   error/timeout -> neutral verdict
    3. Automated decision     confident fake -> ban + REJECTED
    4. Artifact persistence   reference                 error -> RetrySubmission
    5. Claim record           PENDING_REVIEW            error -> RetrySubmission
    6. Notification           sent                      error -> logged only

The submitter only ever learns "received, pending review" or "denied". The
classifier's verdict, confidence and reasoning go to operators only.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from html import escape
from typing import Optional

from .claims import Claim, ClaimStatus, Decision
from .classifier import ClassifierVerdict, EvidenceClassifier, neutral_verdict
from .escalation import BanEscalation
from .gate import ACCOUNT_BANNED_MESSAGE
from .hashing import origin_hash
from .errors import FraudGateError
from .stores import ArtifactStore, BanStore, ClaimStore, Notifier
from .subjects import SubjectKind, normalize_identity

logger = logging.getLogger(__name__)

DEFAULT_FRAUD_THRESHOLD = 0.8
DEFAULT_CLASSIFIER_TIMEOUT = 15.0
AUTOMATED_BAN_REASON = "AI detected fake or non-matching payment proof"
ACCEPTED_MESSAGE = "Order received"
FRAUD_REJECTION_MESSAGE = (
    "Our automated system detected a fake or non-matching screenshot. "
    "You have been blacklisted."
)


class RetrySubmission(FraudGateError):
    """A submission could not be durably recorded. Safe to retry."""

    def __init__(self, stage: str, message: str):
        self.stage = stage
        self.message = message
        super().__init__(f"{stage}: {message}")


class SubmissionKind(str, Enum):
    ACCEPTED = "ACCEPTED"   # Claim recorded as PENDING_REVIEW
    REJECTED = "REJECTED"   # Banned identity or automated fraud


@dataclass(frozen=True)
class ClaimSubmission:
    """One inbound payment proof."""
    origin: Optional[str]
    artifact: bytes
    mime_type: str
    identity: Optional[str] = None
    expected_amount: Optional[Decimal] = None
    contact_info: Optional[str] = None


@dataclass(frozen=True)
class SubmissionResult:
    """Caller-visible outcome. Never carries the classifier verdict."""
    kind: SubmissionKind
    message: str
    claim_id: Optional[str] = None
    redirect: Optional[str] = None

    def accepted(self) -> bool:
        return self.kind == SubmissionKind.ACCEPTED


class VerificationPipeline:
    """
    Orchestrates claim verification.

    Usage:
        pipeline = VerificationPipeline(
            ban_store, claim_store, artifact_store, notifier, classifier,
            escalation=BanEscalation(ban_store, claim_store),
            redirect_url="https://shop/blacklisted",
        )
        result = pipeline.submit(ClaimSubmission(origin="203.0.113.5", ...))
    """

    def __init__(
        self,
        ban_store: BanStore,
        claim_store: ClaimStore,
        artifact_store: ArtifactStore,
        notifier: Notifier,
        classifier: EvidenceClassifier,
        escalation: Optional[BanEscalation] = None,
        redirect_url: Optional[str] = None,
        fraud_threshold: float = DEFAULT_FRAUD_THRESHOLD,
        classifier_timeout: float = DEFAULT_CLASSIFIER_TIMEOUT,
        classifier_workers: int = 8,
        origin_hash_salt: str = ""
    ):
        self.ban_store = ban_store
        self.claim_store = claim_store
        self.artifact_store = artifact_store
        self.notifier = notifier
        self.classifier = classifier
        self.escalation = escalation or BanEscalation(ban_store, claim_store)
        self.redirect_url = redirect_url
        self.fraud_threshold = fraud_threshold
        self.classifier_timeout = classifier_timeout
        self.origin_hash_salt = origin_hash_salt
        self._classifier_workers = classifier_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()

    def submit(self, submission: ClaimSubmission) -> SubmissionResult:
        """
        Run a submission through every stage.

        Raises:
            RetrySubmission: If the artifact or claim record could not be persisted
        """
        identity = normalize_identity(submission.identity)
        hashed_origin = origin_hash(submission.origin, self.origin_hash_salt)
        log_fields = {"origin_hash": hashed_origin, "has_identity": identity is not None}

        # 1. Identity pre-check
        if identity is not None and self._identity_banned(identity, log_fields):
            logger.info("Submission rejected: identity banned", extra={"extra_fields": log_fields})
            return SubmissionResult(
                kind=SubmissionKind.REJECTED,
                message=ACCOUNT_BANNED_MESSAGE,
                redirect=self.redirect_url,
            )

        # 2. Classification
        verdict = self._classify(submission, log_fields)

        claim = Claim(
            origin_hash=hashed_origin,
            verdict=verdict,
            identity=identity,
            expected_amount=submission.expected_amount,
            contact_info=(submission.contact_info or "").strip() or "Not Provided",
            origin=submission.origin,
        )
        log_fields["claim_id"] = claim.id

        # 3. Automated decision
        if self.is_automated_fraud(verdict):
            return self._reject_as_fraud(claim, log_fields)

        # 4. Artifact persistence
        try:
            claim.evidence_ref = self.artifact_store.store(submission.artifact, submission.mime_type)
        except Exception as e:
            logger.error("Artifact upload failed: %s", e, extra={"extra_fields": log_fields})
            raise RetrySubmission("artifact", "Failed to upload screenshot. Please try again.") from e

        # 5. Claim record
        claim.status = ClaimStatus.PENDING_REVIEW
        try:
            self.claim_store.save(claim)
        except Exception as e:
            logger.error(
                "Claim record write failed; artifact %s is unreferenced: %s", claim.evidence_ref, e,
                extra={"extra_fields": log_fields}
            )
            raise RetrySubmission("record", "Failed to save order. Please try again.") from e

        # 6. Notification
        try:
            self.notifier.send(render_notification(claim))
        except Exception as e:
            logger.warning("Operator notification failed: %s", e, extra={"extra_fields": log_fields})

        logger.info(
            "Claim recorded for review",
            extra={"extra_fields": {**log_fields, "neutral_verdict": verdict.is_neutral}}
        )
        return SubmissionResult(kind=SubmissionKind.ACCEPTED, message=ACCEPTED_MESSAGE, claim_id=claim.id)

    def is_automated_fraud(self, verdict: ClassifierVerdict) -> bool:
        """
        Confident fake verdicts are banned without review.

        The neutral verdict is authentic by construction and always goes to
        manual review.
        """
        return (not verdict.is_authentic) and verdict.confidence > self.fraud_threshold

    def shutdown(self) -> None:
        """Release classifier worker threads."""
        with self._executor_lock:
            if self._executor is not None:
                self._executor.shutdown(wait=False)
                self._executor = None

    def _identity_banned(self, identity: str, log_fields: dict) -> bool:
        try:
            return self.ban_store.is_banned(SubjectKind.IDENTITY, identity)
        except Exception as e:
            logger.warning("Identity pre-check skipped: %s", e, extra={"extra_fields": log_fields})
            return False

    def _classify(self, submission: ClaimSubmission, log_fields: dict) -> ClassifierVerdict:
        """Classify with a hard timeout; any failure yields the neutral verdict."""
        future = self._get_executor().submit(
            self.classifier.classify,
            submission.artifact,
            submission.mime_type,
            submission.expected_amount,
        )
        try:
            verdict = future.result(timeout=self.classifier_timeout)
        except FutureTimeout:
            future.cancel()
            logger.warning(
                "Classifier timed out after %.1fs; pending manual review", self.classifier_timeout,
                extra={"extra_fields": log_fields}
            )
            return neutral_verdict()
        except Exception as e:
            logger.warning("Classifier unavailable: %s", e, extra={"extra_fields": log_fields})
            return neutral_verdict()
        if not isinstance(verdict, ClassifierVerdict):
            logger.warning(
                "Classifier returned %s instead of a verdict", type(verdict).__name__,
                extra={"extra_fields": log_fields}
            )
            return neutral_verdict()
        return verdict

    def _reject_as_fraud(self, claim: Claim, log_fields: dict) -> SubmissionResult:
        logger.warning(
            "Automated fraud: confidence %.2f above %.2f", claim.verdict.confidence, self.fraud_threshold,
            extra={"extra_fields": {**log_fields, "reason": claim.verdict.reason}}
        )
        try:
            report = self.escalation.escalate(claim, Decision.FRAUD, AUTOMATED_BAN_REASON)
        except Exception as e:
            # Bans were attempted before the audit record; the deny stands.
            logger.error("Audit record for automated fraud not written: %s", e, extra={"extra_fields": log_fields})
        else:
            if not report.complete():
                logger.error(
                    "Automated fraud escalation incomplete: %s", "; ".join(report.failures),
                    extra={"extra_fields": log_fields}
                )
        return SubmissionResult(
            kind=SubmissionKind.REJECTED,
            message=FRAUD_REJECTION_MESSAGE,
            claim_id=None,
            redirect=self.redirect_url,
        )

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._classifier_workers,
                    thread_name_prefix="classifier",
                )
            return self._executor


def status_label(verdict: ClassifierVerdict) -> str:
    """Operator-facing label for a verdict."""
    if not verdict.is_authentic:
        return "AI Suspicious"
    if verdict.is_neutral:
        return "AI Skipped (Manual Review Needed)"
    return "AI Approved (Real)"


def render_notification(claim: Claim) -> str:
    """Operator message for a new claim (Telegram HTML subset)."""
    verdict = claim.verdict
    icon = "✅" if verdict.is_authentic else "⚠️"
    amount = f"${claim.expected_amount:.2f}" if claim.expected_amount is not None else "N/A"
    lines = [
        f"<b>New Purchase Received</b> {icon}",
        "",
        f"<b>Ticket ID:</b> <code>{escape(claim.id)}</code>",
        f"<b>Status:</b> {status_label(verdict)}",
        f"<b>Confidence:</b> {verdict.confidence * 100:.1f}%",
        f"<b>Expected amount:</b> {amount}",
        f"<b>Contact:</b> {escape(claim.contact_info)}",
        "",
        "<b>AI Analysis:</b>",
        f"<i>{escape(verdict.reason or 'No analysis details provided.')}</i>",
    ]
    if claim.evidence_ref:
        lines += ["", f'<a href="{escape(claim.evidence_ref)}">View Screenshot</a>']
    return "\n".join(lines)
