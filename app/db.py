"""
Database module for the FraudGate service.

Provides SQLite-based storage for bans and claims.
Uses thread-local connections and proper indexing for performance.
"""

import json
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

# Seconds to wait on a locked database before raising
BUSY_TIMEOUT_SECONDS = 5.0


class SqliteDatabase:
    """
    Thread-local SQLite connections to one database file.

    Connections are reused within the same thread for performance.
    Bans are insert-or-ignore and never deleted.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self._local = threading.local()
        self._all_connections: List[sqlite3.Connection] = []
        self._conn_lock = threading.Lock()

    def _get_connection(self) -> sqlite3.Connection:
        """
        Get a thread-local database connection.
        Connections are reused within the same thread for performance.
        """
        conn = getattr(self._local, 'conn', None)
        if conn is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.path), timeout=BUSY_TIMEOUT_SECONDS, check_same_thread=False)
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            conn.execute("PRAGMA temp_store=MEMORY;")
            conn.row_factory = sqlite3.Row
            self._local.conn = conn
            with self._conn_lock:
                self._all_connections.append(conn)
        return conn

    @contextmanager
    def _transaction(self):
        """
        Context manager for database transactions.
        Automatically commits on success, rolls back on failure.
        """
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def init_db(self) -> None:
        """
        Initialize database schema with proper indexes.
        Safe to call multiple times (uses IF NOT EXISTS).
        """
        with self._transaction() as conn:
            conn.execute("""
            CREATE TABLE IF NOT EXISTS bans (
                kind TEXT NOT NULL,
                value TEXT NOT NULL,
                reason TEXT NOT NULL,
                created_at TEXT NOT NULL,
                PRIMARY KEY (kind, value)
            );""")

            conn.execute("""
            CREATE TABLE IF NOT EXISTS claims (
                id TEXT PRIMARY KEY,
                origin_hash TEXT NOT NULL,
                identity TEXT,
                expected_amount TEXT,
                evidence_ref TEXT,
                contact_info TEXT NOT NULL,
                verdict_json TEXT NOT NULL,
                status TEXT NOT NULL,
                created_at TEXT NOT NULL,
                decided_at TEXT,
                decision_reason TEXT
            );""")
            conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_claims_created
            ON claims(created_at DESC, id DESC);""")
            conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_claims_status
            ON claims(status);""")

    # ============================================================
    # Bans
    # ============================================================

    def ban_exists(self, kind: str, value: str) -> bool:
        conn = self._get_connection()
        cur = conn.execute("SELECT 1 FROM bans WHERE kind=? AND value=? LIMIT 1", (kind, value))
        return cur.fetchone() is not None

    def insert_ban(self, kind: str, value: str, reason: str, created_at: str) -> bool:
        """
        Record a ban. Returns True if new, False if it already existed.
        Uses INSERT OR IGNORE so concurrent writers converge.
        """
        with self._transaction() as conn:
            cur = conn.execute(
                "INSERT OR IGNORE INTO bans(kind, value, reason, created_at) VALUES(?,?,?,?)",
                (kind, value, reason, created_at)
            )
            return cur.rowcount == 1

    # ============================================================
    # Claims
    # ============================================================

    def upsert_claim(self, record: Dict[str, Any]) -> None:
        """Insert or replace a claim record (see Claim.to_record)."""
        with self._transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO claims(id, origin_hash, identity, expected_amount, evidence_ref, "
                "contact_info, verdict_json, status, created_at, decided_at, decision_reason) "
                "VALUES(?,?,?,?,?,?,?,?,?,?,?)",
                (
                    record["id"], record["origin_hash"], record["identity"], record["expected_amount"],
                    record["evidence_ref"], record["contact_info"], json.dumps(record["verdict"], sort_keys=True),
                    record["status"], record["created_at"], record["decided_at"], record["decision_reason"],
                )
            )

    def get_claim(self, claim_id: str) -> Optional[Dict[str, Any]]:
        conn = self._get_connection()
        cur = conn.execute("SELECT * FROM claims WHERE id=?", (claim_id,))
        row = cur.fetchone()
        return _claim_row(row) if row else None

    def list_claims(
        self,
        limit: int,
        cursor: Optional[Tuple[str, str]] = None
    ) -> List[Dict[str, Any]]:
        """Claims newest first, strictly after the (created_at, id) cursor."""
        conn = self._get_connection()
        if cursor:
            cur = conn.execute(
                "SELECT * FROM claims WHERE (created_at, id) < (?, ?) "
                "ORDER BY created_at DESC, id DESC LIMIT ?",
                (cursor[0], cursor[1], limit)
            )
        else:
            cur = conn.execute("SELECT * FROM claims ORDER BY created_at DESC, id DESC LIMIT ?", (limit,))
        return [_claim_row(row) for row in cur.fetchall()]

    # ============================================================
    # Metrics and Health
    # ============================================================

    def ping(self) -> bool:
        conn = self._get_connection()
        return conn.execute("SELECT 1").fetchone() is not None

    def get_db_stats(self) -> Dict[str, int]:
        """Get database statistics for monitoring."""
        conn = self._get_connection()
        stats = {}
        for table in ['bans', 'claims']:
            cur = conn.execute(f"SELECT COUNT(*) as cnt FROM {table}")
            stats[f"{table}_count"] = cur.fetchone()['cnt']
        return stats

    def close(self) -> None:
        """Close every connection opened by this database."""
        with self._conn_lock:
            for conn in self._all_connections:
                conn.close()
            self._all_connections.clear()
        self._local = threading.local()


def _claim_row(row: sqlite3.Row) -> Dict[str, Any]:
    record = dict(row)
    record["verdict"] = json.loads(record.pop("verdict_json"))
    return record
