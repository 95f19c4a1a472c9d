"""
Ban Escalation Test Suite

Critical invariants tested:
    BANS ARE NEVER REMOVED
    A PARTIAL BAN FAILURE NEVER ROLLS BACK THE OTHER BAN
"""

import unittest
from decimal import Decimal

from fraudgate import (
    AccessCache,
    BanEscalation,
    Claim,
    ClaimNotFound,
    ClaimStatus,
    ClaimStoreError,
    ClassifierVerdict,
    Decision,
    DecisionConflict,
    InMemoryBanStore,
    InMemoryClaimStore,
    SubjectKind,
)

from fakes import FailingClaimStore, FlakyBanStore, SelectiveFailingBanStore


def make_claim(origin="203.0.113.5", identity="buyer@example.com"):
    return Claim(
        origin_hash="sha256:test",
        verdict=ClassifierVerdict(is_authentic=True, confidence=0.7, reason="looks fine"),
        identity=identity,
        expected_amount=Decimal("50.00"),
        evidence_ref="content:sha256:abc",
        origin=origin,
    )


class TestBanEscalation(unittest.TestCase):

    def setUp(self):
        self.bans = InMemoryBanStore()
        self.claims = InMemoryClaimStore()
        self.cache = AccessCache()
        self.escalation = BanEscalation(self.bans, self.claims, self.cache, backoff_seconds=0)

    def banned(self):
        return {(e.kind, e.value) for e in self.bans.entries()}

    def test_fraud_bans_origin_and_identity(self):
        claim = make_claim()
        report = self.escalation.escalate(claim, Decision.FRAUD, "fake screenshot")

        self.assertTrue(report.complete())
        self.assertTrue(report.origin_banned)
        self.assertTrue(report.identity_banned)
        self.assertEqual(report.status, ClaimStatus.FRAUD)
        self.assertEqual(self.banned(), {
            (SubjectKind.ORIGIN, "203.0.113.5"),
            (SubjectKind.IDENTITY, "buyer@example.com"),
        })
        self.assertEqual(self.claims.get(claim.id).status, ClaimStatus.FRAUD)
        self.assertEqual(self.claims.get(claim.id).decision_reason, "fake screenshot")

    def test_fraud_marks_origin_in_cache(self):
        self.escalation.escalate(make_claim(), Decision.FRAUD, "fake")
        self.assertTrue(self.cache.is_known_banned("203.0.113.5"))

    def test_fraud_is_idempotent(self):
        claim = make_claim()
        self.escalation.escalate(claim, Decision.FRAUD, "first")
        first_decided = self.claims.get(claim.id).decided_at

        report = self.escalation.escalate(claim, Decision.FRAUD, "second")

        self.assertTrue(report.complete())
        self.assertEqual(len(self.bans.entries()), 2)
        stored = self.claims.get(claim.id)
        self.assertEqual(stored.status, ClaimStatus.FRAUD)
        self.assertEqual(stored.decided_at, first_decided)
        self.assertEqual(stored.decision_reason, "first")

    def test_legitimate_approves_without_bans(self):
        claim = make_claim()
        report = self.escalation.escalate(claim, Decision.LEGITIMATE, "paid")

        self.assertEqual(report.status, ClaimStatus.APPROVED)
        self.assertEqual(self.bans.entries(), [])
        self.assertEqual(self.claims.get(claim.id).status, ClaimStatus.APPROVED)

    def test_fraud_cannot_be_reversed(self):
        claim = make_claim()
        self.escalation.escalate(claim, Decision.FRAUD, "fake")

        with self.assertRaises(DecisionConflict):
            self.escalation.escalate(claim, Decision.LEGITIMATE, "oops")

        self.assertEqual(len(self.bans.entries()), 2)
        self.assertEqual(self.claims.get(claim.id).status, ClaimStatus.FRAUD)

    def test_approved_claim_can_still_be_marked_fraud(self):
        claim = make_claim()
        self.escalation.escalate(claim, Decision.LEGITIMATE, "paid")
        report = self.escalation.escalate(claim, Decision.FRAUD, "chargeback")
        self.assertEqual(report.status, ClaimStatus.FRAUD)

    def test_missing_identity_bans_origin_only(self):
        report = self.escalation.escalate(make_claim(identity=None), Decision.FRAUD, "fake")
        self.assertTrue(report.origin_banned)
        self.assertFalse(report.identity_banned)
        self.assertEqual(self.banned(), {(SubjectKind.ORIGIN, "203.0.113.5")})

    def test_unparseable_origin_is_not_banned(self):
        report = self.escalation.escalate(make_claim(origin="unknown"), Decision.FRAUD, "fake")
        self.assertFalse(report.origin_banned)
        self.assertTrue(report.identity_banned)
        self.assertTrue(report.complete())


class TestHumanReview(unittest.TestCase):

    def setUp(self):
        self.bans = InMemoryBanStore()
        self.claims = InMemoryClaimStore()
        self.escalation = BanEscalation(self.bans, self.claims, backoff_seconds=0)

    def test_decide_loads_stored_claim(self):
        claim = make_claim()
        self.claims.save(claim)

        report = self.escalation.decide(claim.id, Decision.FRAUD, "Manual Admin Ban")

        # Stored claims hold only the origin hash
        self.assertFalse(report.origin_banned)
        self.assertTrue(report.identity_banned)
        self.assertEqual(
            [(e.kind, e.value) for e in self.bans.entries()],
            [(SubjectKind.IDENTITY, "buyer@example.com")],
        )
        self.assertEqual(self.claims.get(claim.id).status, ClaimStatus.FRAUD)

    def test_decide_unknown_claim(self):
        with self.assertRaises(ClaimNotFound):
            self.escalation.decide("0" * 32, Decision.FRAUD, "x")


class TestPartialFailure(unittest.TestCase):

    def test_transient_failures_are_retried(self):
        bans = FlakyBanStore(failures=2)
        escalation = BanEscalation(bans, InMemoryClaimStore(), max_attempts=3, backoff_seconds=0)

        report = escalation.escalate(make_claim(identity=None), Decision.FRAUD, "fake")

        self.assertTrue(report.complete())
        self.assertEqual(bans.write_attempts, 3)
        self.assertEqual(len(bans.entries()), 1)

    def test_origin_failure_keeps_identity_ban(self):
        bans = SelectiveFailingBanStore(SubjectKind.ORIGIN)
        claims = InMemoryClaimStore()
        escalation = BanEscalation(bans, claims, max_attempts=2, backoff_seconds=0)
        claim = make_claim()

        report = escalation.escalate(claim, Decision.FRAUD, "fake")

        self.assertFalse(report.complete())
        self.assertFalse(report.origin_banned)
        self.assertTrue(report.identity_banned)
        self.assertEqual(len(report.failures), 1)
        self.assertEqual(claims.get(claim.id).status, ClaimStatus.FRAUD)

    def test_identity_failure_keeps_origin_ban(self):
        bans = SelectiveFailingBanStore(SubjectKind.IDENTITY)
        cache = AccessCache()
        escalation = BanEscalation(bans, InMemoryClaimStore(), cache, max_attempts=2, backoff_seconds=0)

        report = escalation.escalate(make_claim(), Decision.FRAUD, "fake")

        self.assertTrue(report.origin_banned)
        self.assertFalse(report.identity_banned)
        self.assertTrue(cache.is_known_banned("203.0.113.5"))

    def test_status_write_failure_raises_after_bans(self):
        bans = InMemoryBanStore()
        escalation = BanEscalation(bans, FailingClaimStore(), backoff_seconds=0)

        with self.assertRaises(ClaimStoreError):
            escalation.escalate(make_claim(), Decision.FRAUD, "fake")

        self.assertEqual(len(bans.entries()), 2)

    def test_report_to_dict(self):
        report = BanEscalation(InMemoryBanStore(), InMemoryClaimStore()).escalate(
            make_claim(identity=None), Decision.FRAUD, "fake"
        )
        data = report.to_dict()
        self.assertEqual(data["decision"], "FRAUD")
        self.assertEqual(data["status"], "FRAUD")
        self.assertTrue(data["origin_banned"])
        self.assertEqual(data["failures"], [])


if __name__ == "__main__":
    unittest.main()
