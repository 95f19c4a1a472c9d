import pytest
from fastapi.testclient import TestClient

from fraudgate import InMemoryArtifactStore, InMemoryNotifier, StaticClassifier
from app.db import SqliteDatabase
from app.main import create_app
from app.services import assemble

ADMIN_SECRET = "test-admin-secret"


@pytest.fixture
def services(tmp_path):
    svc = assemble(
        db=SqliteDatabase(str(tmp_path / "fraudgate.db")),
        artifact_store=InMemoryArtifactStore(),
        notifier=InMemoryNotifier(),
        classifier=StaticClassifier(),
        admin_secret=ADMIN_SECRET,
        trust_proxy=True,
        classifier_timeout=0.2,
    )
    svc.escalation.backoff_seconds = 0
    yield svc
    svc.close()


@pytest.fixture
def client(services):
    return TestClient(create_app(services))


@pytest.fixture
def admin_headers():
    return {"X-Admin-Secret": ADMIN_SECRET}
