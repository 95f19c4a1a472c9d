"""
FraudGate Core

Version: 1.0.0

Fraud containment for payment-proof storefronts.

FraudGate decides three things:
    - whether an inbound request is admitted (access gate)
    - whether a submitted payment proof is accepted for review (verification pipeline)
    - whether an origin or identity is permanently banned (ban escalation)

Access checks fail open: an infrastructure error never blocks a request.
Persistence fails closed: a claim that cannot be recorded is rejected with a
retryable error rather than silently dropped. Bans are permanent.

Usage:
    from fraudgate import (
        AccessCache,
        AccessGate,
        BanEscalation,
        ClaimSubmission,
        VerificationPipeline,
    )

    gate = AccessGate(ban_store, AccessCache(max_entries=5000, ttl_seconds=3600),
                      redirect_url="https://shop.example/blacklisted")
    outcome = gate.check(origin, identity, is_exempt_route=False)

    pipeline = VerificationPipeline(ban_store, claim_store, artifact_store,
                                    notifier, classifier,
                                    redirect_url="https://shop.example/blacklisted")
    result = pipeline.submit(ClaimSubmission(origin=origin, artifact=data,
                                             mime_type="image/png"))
"""

__version__ = "1.0.0"

from .errors import FraudGateError, StoreError

from .subjects import (
    BanEntry,
    SubjectKind,
    normalize_identity,
    normalize_origin,
    normalize_subject,
)

from .hashing import sha256_hash, origin_hash, content_hash

from .cache import AccessCache

from .gate import (
    AccessGate,
    AccessOutcome,
    DenyReason,
    OutcomeKind,
)

from .classifier import (
    ClassifierError,
    ClassifierVerdict,
    EvidenceClassifier,
    StaticClassifier,
    neutral_verdict,
    NEUTRAL_CONFIDENCE,
)

from .claims import Claim, ClaimStatus, Decision

from .stores import (
    BanStoreError,
    ClaimStoreError,
    ArtifactStoreError,
    NotificationError,
    BanStore,
    ClaimStore,
    ArtifactStore,
    Notifier,
    InMemoryBanStore,
    InMemoryClaimStore,
    InMemoryArtifactStore,
    InMemoryNotifier,
)

from .escalation import (
    BanEscalation,
    EscalationReport,
    ClaimNotFound,
    DecisionConflict,
)

from .pipeline import (
    VerificationPipeline,
    ClaimSubmission,
    SubmissionResult,
    SubmissionKind,
    RetrySubmission,
    render_notification,
    status_label,
)


__all__ = [
    "__version__",

    # Errors
    "FraudGateError",
    "StoreError",

    # Subjects
    "BanEntry",
    "SubjectKind",
    "normalize_identity",
    "normalize_origin",
    "normalize_subject",

    # Hashing
    "sha256_hash",
    "origin_hash",
    "content_hash",

    # Access
    "AccessCache",
    "AccessGate",
    "AccessOutcome",
    "DenyReason",
    "OutcomeKind",

    # Classifier
    "ClassifierError",
    "ClassifierVerdict",
    "EvidenceClassifier",
    "StaticClassifier",
    "neutral_verdict",
    "NEUTRAL_CONFIDENCE",

    # Claims
    "Claim",
    "ClaimStatus",
    "Decision",

    # Stores
    "BanStoreError",
    "ClaimStoreError",
    "ArtifactStoreError",
    "NotificationError",
    "BanStore",
    "ClaimStore",
    "ArtifactStore",
    "Notifier",
    "InMemoryBanStore",
    "InMemoryClaimStore",
    "InMemoryArtifactStore",
    "InMemoryNotifier",

    # Escalation
    "BanEscalation",
    "EscalationReport",
    "ClaimNotFound",
    "DecisionConflict",

    # Pipeline
    "VerificationPipeline",
    "ClaimSubmission",
    "SubmissionResult",
    "SubmissionKind",
    "RetrySubmission",
    "render_notification",
    "status_label",
]
