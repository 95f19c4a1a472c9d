import threading
from pathlib import Path

import pytest
from botocore.exceptions import ClientError

from fraudgate import ArtifactStoreError, content_hash

from app import config
from app.backends import LocalArtifactStore, S3ArtifactStore, get_artifact_store

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class FakeS3Client:
    def __init__(self, error=None):
        self.error = error
        self.puts = []

    def put_object(self, **kwargs):
        if self.error:
            raise self.error
        self.puts.append(kwargs)
        return {"ETag": '"abc"'}


# ============================================================
# LocalArtifactStore
# ============================================================

def test_local_store_is_content_addressed(tmp_path):
    store = LocalArtifactStore(str(tmp_path / "artifacts"))
    ref = store.store(PNG, "image/png")

    digest = content_hash(PNG).rsplit(":", 1)[-1]
    assert ref.startswith("file://")
    assert ref.endswith(f"{digest}.png")
    path = tmp_path / "artifacts" / f"{digest}.png"
    assert path.read_bytes() == PNG


def test_local_store_dedupes_identical_uploads(tmp_path):
    store = LocalArtifactStore(str(tmp_path))
    first = store.store(PNG, "image/png")
    second = store.store(PNG, "image/png")
    other = store.store(PNG + b"\x01", "image/png")

    assert first == second
    assert other != first
    assert len(list(tmp_path.iterdir())) == 2


def test_local_store_concurrent_identical_uploads(tmp_path):
    store = LocalArtifactStore(str(tmp_path))
    data = b"same-screenshot" * 20000
    workers = 8
    errors = []
    refs = []

    for _ in range(20):
        barrier = threading.Barrier(workers)

        def upload():
            barrier.wait()
            try:
                refs.append(store.store(data, "image/png"))
            except ArtifactStoreError as e:
                errors.append(e)

        threads = [threading.Thread(target=upload) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        for f in tmp_path.iterdir():
            f.unlink()

    assert errors == []
    assert len(set(refs)) == 1


def test_local_store_leaves_no_temp_files(tmp_path):
    store = LocalArtifactStore(str(tmp_path))
    store.store(PNG, "image/png")
    assert [p.suffix for p in tmp_path.iterdir()] == [".png"]


def test_local_store_write_failure(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x")
    store = LocalArtifactStore(str(blocker / "artifacts"))
    with pytest.raises(ArtifactStoreError):
        store.store(PNG, "image/png")


# ============================================================
# S3ArtifactStore
# ============================================================

def test_s3_store_puts_content_addressed_object():
    client = FakeS3Client()
    store = S3ArtifactStore(bucket="evidence", prefix="fraudgate/evidence", client=client)

    ref = store.store(PNG, "image/png")

    digest = content_hash(PNG).rsplit(":", 1)[-1]
    assert ref == f"s3://evidence/fraudgate/evidence/{digest}.png"
    assert client.puts == [{
        "Bucket": "evidence",
        "Key": f"fraudgate/evidence/{digest}.png",
        "Body": PNG,
        "ContentType": "image/png",
    }]


def test_s3_client_error_becomes_artifact_store_error():
    error = ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject")
    store = S3ArtifactStore(bucket="evidence", prefix="p/", client=FakeS3Client(error))

    with pytest.raises(ArtifactStoreError) as exc:
        store.store(PNG, "image/png")
    assert "AccessDenied" in str(exc.value)


# ============================================================
# Backend selection
# ============================================================

def test_default_backend_is_local(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "ARTIFACT_STORE_BACKEND", "local")
    monkeypatch.setattr(config, "ARTIFACT_DIR", str(tmp_path))
    store = get_artifact_store()
    assert isinstance(store, LocalArtifactStore)
    assert store.directory == Path(str(tmp_path))


def test_s3_backend_selected(monkeypatch):
    monkeypatch.setattr(config, "ARTIFACT_STORE_BACKEND", "s3")
    monkeypatch.setattr(config, "S3_BUCKET", "evidence")
    monkeypatch.setattr(config, "S3_PREFIX", "fraudgate/evidence/")
    monkeypatch.setattr(config, "AWS_REGION", "eu-west-1")
    store = get_artifact_store()
    assert isinstance(store, S3ArtifactStore)
    assert store.bucket == "evidence"
    assert store.region == "eu-west-1"


def test_s3_backend_requires_bucket(monkeypatch):
    monkeypatch.setattr(config, "ARTIFACT_STORE_BACKEND", "s3")
    monkeypatch.setattr(config, "S3_BUCKET", "")
    with pytest.raises(RuntimeError, match="S3_BUCKET"):
        get_artifact_store()
