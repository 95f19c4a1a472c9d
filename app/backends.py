"""
Concrete store adapters.

Wraps the sqlite database and the blob backends behind the core store
interfaces, translating library errors into fraudgate store errors.
"""

import mimetypes
import os
import sqlite3
import tempfile
from pathlib import Path
from typing import List, Optional, Tuple

from fraudgate import (
    ArtifactStore,
    ArtifactStoreError,
    BanEntry,
    BanStore,
    BanStoreError,
    Claim,
    ClaimStore,
    ClaimStoreError,
    SubjectKind,
    content_hash,
)

from .db import SqliteDatabase


class SqliteBanStore(BanStore):
    def __init__(self, db: SqliteDatabase):
        self.db = db

    def is_banned(self, kind: SubjectKind, value: str) -> bool:
        try:
            return self.db.ban_exists(kind.value, value)
        except sqlite3.Error as e:
            raise BanStoreError(f"ban lookup failed: {e}") from e

    def add_ban(self, entry: BanEntry) -> None:
        try:
            self.db.insert_ban(entry.kind.value, entry.value, entry.reason, entry.to_dict()["created_at"])
        except sqlite3.Error as e:
            raise BanStoreError(f"ban write failed: {e}") from e


class SqliteClaimStore(ClaimStore):
    def __init__(self, db: SqliteDatabase):
        self.db = db

    def save(self, claim: Claim) -> None:
        try:
            self.db.upsert_claim(claim.to_record())
        except sqlite3.Error as e:
            raise ClaimStoreError(f"claim write failed: {e}") from e

    def get(self, claim_id: str) -> Optional[Claim]:
        try:
            record = self.db.get_claim(claim_id)
        except sqlite3.Error as e:
            raise ClaimStoreError(f"claim lookup failed: {e}") from e
        return Claim.from_record(record) if record else None

    def list_recent(self, limit=20, cursor=None) -> Tuple[List[Claim], Optional[Tuple[str, str]]]:
        try:
            records = self.db.list_claims(limit + 1, cursor)
        except sqlite3.Error as e:
            raise ClaimStoreError(f"claim listing failed: {e}") from e
        page = records[:limit]
        next_cursor = None
        if len(records) > limit:
            next_cursor = (page[-1]["created_at"], page[-1]["id"])
        return [Claim.from_record(r) for r in page], next_cursor


def _extension_for(mime_type: str) -> str:
    ext = mimetypes.guess_extension(mime_type or "") or ".bin"
    return ".jpg" if ext == ".jpe" else ext


class LocalArtifactStore(ArtifactStore):
    """
    Content-addressed files under a local directory.
    Identical uploads share one file.
    """

    def __init__(self, directory: str):
        self.directory = Path(directory)

    def store(self, data: bytes, mime_type: str) -> str:
        digest = content_hash(data).rsplit(":", 1)[-1]
        path = self.directory / f"{digest}{_extension_for(mime_type)}"
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            if not path.exists():
                self._write_atomic(path, data)
        except OSError as e:
            raise ArtifactStoreError(f"artifact write failed: {e}") from e
        return path.resolve().as_uri()

    def _write_atomic(self, path: Path, data: bytes) -> None:
        # One temp file per writer; concurrent writers of the same digest all rename onto one path
        fd, tmp = tempfile.mkstemp(dir=self.directory, prefix=path.name + ".", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp, path)
        except OSError:
            if os.path.exists(tmp):
                os.unlink(tmp)
            if not path.exists():
                raise


class S3ArtifactStore(ArtifactStore):
    """
    Writes each artifact as a content-addressed object in an S3 bucket.
    Returns an s3:// reference; reviewers resolve it with their own credentials.
    """

    def __init__(self, bucket: str, prefix: str, region: Optional[str] = None, client=None):
        self.bucket = bucket
        self.prefix = prefix.rstrip("/") + "/"
        self.region = region
        self._client = client

    def _s3(self):
        if self._client is None:
            import boto3
            from botocore.config import Config

            self._client = boto3.client(
                "s3",
                region_name=self.region or None,
                config=Config(connect_timeout=5, read_timeout=10, retries={"max_attempts": 2}),
            )
        return self._client

    def store(self, data: bytes, mime_type: str) -> str:
        from botocore.exceptions import BotoCoreError, ClientError

        digest = content_hash(data).rsplit(":", 1)[-1]
        key = f"{self.prefix}{digest}{_extension_for(mime_type)}"
        try:
            self._s3().put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=mime_type or "application/octet-stream",
            )
        except (BotoCoreError, ClientError) as e:
            raise ArtifactStoreError(f"S3 upload failed: {e}") from e
        return f"s3://{self.bucket}/{key}"


def get_artifact_store() -> ArtifactStore:
    from . import config

    if config.ARTIFACT_STORE_BACKEND == "s3":
        if not config.S3_BUCKET:
            raise RuntimeError("S3_BUCKET is required when ARTIFACT_STORE_BACKEND=s3")
        return S3ArtifactStore(bucket=config.S3_BUCKET, prefix=config.S3_PREFIX, region=config.AWS_REGION)
    return LocalArtifactStore(config.ARTIFACT_DIR)
