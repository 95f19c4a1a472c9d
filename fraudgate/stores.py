"""
External collaborator interfaces.

The core never talks to a database, blob store or chat service directly.
It depends on the abstract stores below; the service wires in concrete
adapters, tests wire in the in-memory ones.

Every adapter reports failure by raising the matching StoreError subclass.
Whether that failure is fatal is decided by the caller, per stage.
"""

import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from .claims import Claim, ClaimStatus
from .errors import StoreError
from .hashing import content_hash
from .subjects import BanEntry, SubjectKind

# (created_at ISO string, claim id) of the last claim on a page
Cursor = Tuple[str, str]


class BanStoreError(StoreError):
    pass


class ClaimStoreError(StoreError):
    pass


class ArtifactStoreError(StoreError):
    pass


class NotificationError(StoreError):
    pass


class BanStore(ABC):
    """
    Durable record of banned origins and identities.

    Append-only, exact-match. Callers pass normalized values.
    """

    @abstractmethod
    def is_banned(self, kind: SubjectKind, value: str) -> bool:
        """Check whether a normalized subject is banned."""
        pass

    @abstractmethod
    def add_ban(self, entry: BanEntry) -> None:
        """Record a ban. Adding an existing ban is a no-op."""
        pass


class ClaimStore(ABC):
    """Durable record of submitted claims."""

    @abstractmethod
    def save(self, claim: Claim) -> None:
        """Insert or replace a claim by id."""
        pass

    @abstractmethod
    def get(self, claim_id: str) -> Optional[Claim]:
        pass

    @abstractmethod
    def list_recent(
        self,
        limit: int = 20,
        cursor: Optional[Cursor] = None
    ) -> Tuple[List[Claim], Optional[Cursor]]:
        """
        Page through claims newest first.

        Returns:
            Tuple of (claims, next_cursor); next_cursor is None on the last page
        """
        pass


class ArtifactStore(ABC):
    """Durable blob storage for evidence artifacts."""

    @abstractmethod
    def store(self, data: bytes, mime_type: str) -> str:
        """Persist bytes and return a durable reference (URL or ID)."""
        pass


class Notifier(ABC):
    """Operator notification channel. Best-effort."""

    @abstractmethod
    def send(self, text: str) -> None:
        pass


# =============================================================================
# IN-MEMORY IMPLEMENTATIONS
# =============================================================================

class InMemoryBanStore(BanStore):
    """
    In-memory ban store for development/testing.

    WARNING: Not suitable for production. Bans are lost on restart.

    The most recent lookups are kept in `queries`, oldest first, capped at
    `max_recorded_queries`.
    """

    def __init__(self, max_recorded_queries: int = 1000):
        self._bans: Dict[Tuple[SubjectKind, str], BanEntry] = {}
        self._lock = threading.Lock()
        self.max_recorded_queries = max_recorded_queries
        self.queries: List[Tuple[SubjectKind, str]] = []

    def is_banned(self, kind: SubjectKind, value: str) -> bool:
        with self._lock:
            self.queries.append((kind, value))
            if len(self.queries) > self.max_recorded_queries:
                del self.queries[:-self.max_recorded_queries]
            return (kind, value) in self._bans

    def add_ban(self, entry: BanEntry) -> None:
        with self._lock:
            self._bans.setdefault((entry.kind, entry.value), entry)

    def entries(self, kind: Optional[SubjectKind] = None) -> List[BanEntry]:
        with self._lock:
            return [e for e in self._bans.values() if kind is None or e.kind == kind]


class InMemoryClaimStore(ClaimStore):
    """In-memory claim store for development/testing."""

    def __init__(self):
        self._claims: Dict[str, dict] = {}
        self._lock = threading.Lock()

    def save(self, claim: Claim) -> None:
        with self._lock:
            self._claims[claim.id] = claim.to_record()

    def get(self, claim_id: str) -> Optional[Claim]:
        with self._lock:
            record = self._claims.get(claim_id)
        return Claim.from_record(record) if record else None

    def list_recent(self, limit=20, cursor=None):
        with self._lock:
            records = sorted(self._claims.values(), key=lambda r: (r["created_at"], r["id"]), reverse=True)
        if cursor:
            records = [r for r in records if (r["created_at"], r["id"]) < tuple(cursor)]
        page = records[:limit]
        next_cursor = None
        if len(page) == limit and len(records) > limit:
            next_cursor = (page[-1]["created_at"], page[-1]["id"])
        return [Claim.from_record(r) for r in page], next_cursor

    def by_status(self, status: ClaimStatus) -> List[Claim]:
        with self._lock:
            records = [r for r in self._claims.values() if r["status"] == status.value]
        return [Claim.from_record(r) for r in records]


class InMemoryArtifactStore(ArtifactStore):
    """Content-addressed in-memory artifact store."""

    def __init__(self):
        self._blobs: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def store(self, data: bytes, mime_type: str) -> str:
        ref = content_hash(data)
        with self._lock:
            self._blobs[ref] = data
        return ref

    def get(self, ref: str) -> Optional[bytes]:
        with self._lock:
            return self._blobs.get(ref)

    def __len__(self) -> int:
        with self._lock:
            return len(self._blobs)


class InMemoryNotifier(Notifier):
    """Collects messages instead of sending them."""

    def __init__(self):
        self.messages: List[str] = []

    def send(self, text: str) -> None:
        self.messages.append(text)
