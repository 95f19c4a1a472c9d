"""
Evidence classifier contract.

A classifier looks at a submitted payment screenshot and judges whether it
is authentic, with a confidence in [0, 1] and free-text reasoning. The
pipeline treats any classifier as untrusted and slow: every call is bounded
by a timeout, and any error or timeout is replaced by the neutral verdict.
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

from .errors import FraudGateError

NEUTRAL_CONFIDENCE = 0.5
UNAVAILABLE_REASON = "classification unavailable"


class ClassifierError(FraudGateError):
    """Raised when a classifier cannot produce a usable verdict."""


@dataclass(frozen=True)
class ClassifierVerdict:
    """Authenticity judgment for one artifact. Immutable once attached to a claim."""
    is_authentic: bool
    confidence: float
    reason: str

    def __post_init__(self):
        if not isinstance(self.is_authentic, bool):
            raise ClassifierError(f"is_authentic must be a bool, got {self.is_authentic!r}")
        try:
            confidence = float(self.confidence)
        except (TypeError, ValueError):
            raise ClassifierError(f"confidence must be numeric, got {self.confidence!r}")
        if math.isnan(confidence) or not 0.0 <= confidence <= 1.0:
            raise ClassifierError(f"confidence must be within [0, 1], got {self.confidence!r}")
        object.__setattr__(self, "confidence", confidence)
        object.__setattr__(self, "reason", str(self.reason or ""))

    @property
    def is_neutral(self) -> bool:
        """True for the synthesized verdict used when classification is unavailable."""
        return self.is_authentic and self.confidence == NEUTRAL_CONFIDENCE and self.reason == UNAVAILABLE_REASON

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_authentic": self.is_authentic,
            "confidence": self.confidence,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClassifierVerdict":
        return cls(
            is_authentic=data["is_authentic"],
            confidence=data["confidence"],
            reason=data.get("reason", ""),
        )


def neutral_verdict() -> ClassifierVerdict:
    """Verdict substituted when the classifier errors or times out."""
    return ClassifierVerdict(is_authentic=True, confidence=NEUTRAL_CONFIDENCE, reason=UNAVAILABLE_REASON)


class EvidenceClassifier(ABC):
    """
    Abstract interface for evidence classification.

    Implementations may block; the pipeline imposes the timeout.
    """

    @abstractmethod
    def classify(
        self,
        artifact: bytes,
        mime_type: str,
        expected_amount: Optional[Decimal] = None
    ) -> ClassifierVerdict:
        """
        Judge an artifact.

        Args:
            artifact: Raw image bytes
            mime_type: Image MIME type
            expected_amount: Amount the image must show, if known

        Raises:
            ClassifierError: If no verdict can be produced
        """
        pass


class StaticClassifier(EvidenceClassifier):
    """
    Deterministic classifier for development and testing.

    Always returns the configured verdict and records every call.
    """

    def __init__(self, verdict: Optional[ClassifierVerdict] = None):
        self.verdict = verdict or ClassifierVerdict(is_authentic=True, confidence=0.99, reason="static")
        self.calls = []

    def classify(self, artifact, mime_type, expected_amount=None) -> ClassifierVerdict:
        self.calls.append((artifact, mime_type, expected_amount))
        return self.verdict
