"""
Access gate.

Runs before any route handler and decides whether a request may proceed.

Check order:
1. Origin in access cache -> DENY, no I/O
2. Origin in ban store -> cache it, DENY
3. Identity in ban store (non-exempt routes only) -> DENY

Every ban store lookup is independently fail-open: an infrastructure error
never blocks a request. Such requests are allowed as DEGRADED_ALLOW so they
can be told apart from a clean ALLOW in logs. A failure in one check never
skips the other.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .cache import AccessCache
from .stores import BanStore
from .subjects import SubjectKind, normalize_identity, normalize_origin

logger = logging.getLogger(__name__)

ACCESS_DENIED = "Access denied"
ACCOUNT_BANNED_MESSAGE = "This account has been permanently banned from making purchases."


class OutcomeKind(str, Enum):
    ALLOW = "ALLOW"
    DENY = "DENY"
    DEGRADED_ALLOW = "DEGRADED_ALLOW"   # Allowed because a check could not run


class DenyReason(str, Enum):
    ORIGIN_BANNED = "ORIGIN_BANNED"
    IDENTITY_BANNED = "IDENTITY_BANNED"


@dataclass
class AccessOutcome:
    """Decision from the access gate."""
    kind: OutcomeKind
    reason: Optional[DenyReason] = None
    message: Optional[str] = None
    redirect: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    def allowed(self) -> bool:
        return self.kind != OutcomeKind.DENY

    def to_response(self) -> Dict[str, Any]:
        """Deny response body: {error, reason?, redirect}."""
        body: Dict[str, Any] = {"error": ACCESS_DENIED}
        if self.message:
            body["reason"] = self.message
        if self.redirect:
            body["redirect"] = self.redirect
        return body

    @classmethod
    def deny(cls, reason: DenyReason, redirect: Optional[str], message: Optional[str] = None) -> "AccessOutcome":
        return cls(kind=OutcomeKind.DENY, reason=reason, message=message, redirect=redirect)


class AccessGate:
    """
    Per-request ban check.

    Usage:
        gate = AccessGate(ban_store, AccessCache(), redirect_url="https://shop/blacklisted")
        outcome = gate.check("203.0.113.5", "buyer@example.com", is_exempt_route=False)
        if not outcome.allowed():
            return 403, outcome.to_response()
    """

    def __init__(
        self,
        ban_store: BanStore,
        cache: Optional[AccessCache] = None,
        redirect_url: Optional[str] = None
    ):
        self.ban_store = ban_store
        self.cache = cache if cache is not None else AccessCache()
        self.redirect_url = redirect_url

    def check(
        self,
        origin: Optional[str],
        identity: Optional[str] = None,
        is_exempt_route: bool = False
    ) -> AccessOutcome:
        """
        Decide whether a request may proceed.

        Args:
            origin: Raw network origin (unparseable values never match)
            identity: Raw account identifier, if the request carries one
            is_exempt_route: True for administrative routes (no identity check)
        """
        warnings: List[str] = []

        origin_key = normalize_origin(origin)
        if origin_key is not None:
            if self.cache.is_known_banned(origin_key):
                return AccessOutcome.deny(DenyReason.ORIGIN_BANNED, self.redirect_url)
            try:
                banned = self.ban_store.is_banned(SubjectKind.ORIGIN, origin_key)
            except Exception as e:
                logger.warning(
                    "Origin ban check skipped: %s", e,
                    extra={"extra_fields": {"check": "origin", "error_type": type(e).__name__}}
                )
                warnings.append(f"origin check unavailable: {type(e).__name__}")
            else:
                if banned:
                    self.cache.mark_banned(origin_key)
                    return AccessOutcome.deny(DenyReason.ORIGIN_BANNED, self.redirect_url)

        identity_key = normalize_identity(identity)
        if identity_key is not None and not is_exempt_route:
            try:
                banned = self.ban_store.is_banned(SubjectKind.IDENTITY, identity_key)
            except Exception as e:
                logger.warning(
                    "Identity ban check skipped: %s", e,
                    extra={"extra_fields": {"check": "identity", "error_type": type(e).__name__}}
                )
                warnings.append(f"identity check unavailable: {type(e).__name__}")
            else:
                if banned:
                    return AccessOutcome.deny(
                        DenyReason.IDENTITY_BANNED, self.redirect_url, ACCOUNT_BANNED_MESSAGE
                    )

        if warnings:
            return AccessOutcome(kind=OutcomeKind.DEGRADED_ALLOW, warnings=warnings)
        return AccessOutcome(kind=OutcomeKind.ALLOW)
