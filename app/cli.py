#!/usr/bin/env python3
"""
FraudGate operator CLI

Usage:
    fraudgate claims [--limit N]
    fraudgate decide <claim_id> real|fake [--reason TEXT]
    fraudgate check [--origin IP] [--email EMAIL]
    fraudgate hash-origin <ip>
"""

import argparse
import json
import sys


def open_database():
    """Open the configured sqlite database."""
    from . import config
    from .db import SqliteDatabase

    db = SqliteDatabase(config.DB_PATH)
    db.init_db()
    return db


def cmd_claims(args):
    """List recent claims, newest first."""
    from .backends import SqliteClaimStore

    db = open_database()
    try:
        claims, next_cursor = SqliteClaimStore(db).list_recent(limit=args.limit)
    finally:
        db.close()

    if not claims:
        print("No claims recorded")
        return 0

    for claim in claims:
        verdict = claim.verdict
        amount = f"${claim.expected_amount:.2f}" if claim.expected_amount is not None else "-"
        print(
            f"{claim.id}  {claim.status.value:<14}  {amount:>10}  "
            f"{'real' if verdict.is_authentic else 'fake'} {verdict.confidence:.2f}  "
            f"{claim.identity or '-'}"
        )
    if next_cursor:
        print(f"\n(more claims before {next_cursor[0]})", file=sys.stderr)
    return 0


def cmd_decide(args):
    """Apply an operator decision to a claim."""
    from fraudgate import BanEscalation, ClaimNotFound, Decision, DecisionConflict, StoreError
    from .backends import SqliteBanStore, SqliteClaimStore
    from .security import ValidationError, validate_claim_id, validate_decision

    try:
        claim_id = validate_claim_id(args.claim_id)
        decision = validate_decision(args.decision)
    except ValidationError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 2

    db = open_database()
    try:
        escalation = BanEscalation(SqliteBanStore(db), SqliteClaimStore(db))
        reason = args.reason or ("Manual Admin Ban" if decision == Decision.FRAUD else "Manual Admin Approval")
        report = escalation.decide(claim_id, decision, reason)
    except ClaimNotFound:
        print(f"✗ Claim not found: {claim_id}", file=sys.stderr)
        return 1
    except DecisionConflict as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1
    except StoreError as e:
        print(f"✗ Failed to record decision: {e}", file=sys.stderr)
        return 1
    finally:
        db.close()

    print(json.dumps(report.to_dict(), indent=2))
    if not report.complete():
        print("\n✗ Some bans were not recorded; re-run to retry", file=sys.stderr)
        return 1
    print(f"\n✓ Claim {claim_id} is {report.status.value}", file=sys.stderr)
    return 0


def cmd_check(args):
    """Run the access gate for an origin and/or email."""
    from fraudgate import AccessGate
    from .backends import SqliteBanStore

    db = open_database()
    try:
        outcome = AccessGate(SqliteBanStore(db)).check(args.origin, args.email)
    finally:
        db.close()

    if outcome.allowed():
        print(f"✓ {outcome.kind.value}")
        for warning in outcome.warnings:
            print(f"  - {warning}")
        return 0
    print(f"✗ DENY: {outcome.reason.value}")
    return 1


def cmd_hash_origin(args):
    """Print the stored hash for an origin."""
    from fraudgate import origin_hash
    from . import config

    print(origin_hash(args.origin, config.ORIGIN_HASH_SALT))
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="fraudgate",
        description="FraudGate operator CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  fraudgate claims --limit 50
  fraudgate decide 3f2a...c9 fake --reason "Edited screenshot"
  fraudgate check --origin 203.0.113.5 --email buyer@example.com
  fraudgate hash-origin 203.0.113.5
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # claims
    claims_parser = subparsers.add_parser("claims", help="List recent claims")
    claims_parser.add_argument("-n", "--limit", type=int, default=20, help="Number of claims")

    # decide
    decide_parser = subparsers.add_parser("decide", help="Mark a claim real or fake")
    decide_parser.add_argument("claim_id", help="Claim ID")
    decide_parser.add_argument("decision", choices=["real", "fake"], type=str.lower, help="Decision")
    decide_parser.add_argument("-r", "--reason", help="Recorded reason")

    # check
    check_parser = subparsers.add_parser("check", help="Check an origin/email against the ban list")
    check_parser.add_argument("-o", "--origin", help="Network origin (IP address)")
    check_parser.add_argument("-e", "--email", help="Account email")

    # hash-origin
    hash_parser = subparsers.add_parser("hash-origin", help="Hash an origin the way claims store it")
    hash_parser.add_argument("origin", help="IP address")

    args = parser.parse_args(argv)

    if args.command == "claims":
        return cmd_claims(args)
    elif args.command == "decide":
        return cmd_decide(args)
    elif args.command == "check":
        return cmd_check(args)
    elif args.command == "hash-origin":
        return cmd_hash_origin(args)
    parser.print_help()
    return 2


if __name__ == "__main__":
    sys.exit(main())
