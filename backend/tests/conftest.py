from __future__ import annotations

import os
import sys
import tempfile
import uuid
from pathlib import Path

import pytest
from fastapi.testclient import TestClient


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Settings are read at import time, so the test database must be chosen first.
_TMP_DIR = Path(tempfile.mkdtemp(prefix="healthlog-tests-"))
os.environ["ENVIRONMENT"] = "test"
os.environ["DATA_DIR"] = str(_TMP_DIR)
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_DIR / 'test.db'}"
os.environ["SEED_DEFAULTS_ON_STARTUP"] = "false"

from auth.notifier import get_reset_notifier  # noqa: E402
from db.database import Base, SessionLocal, engine  # noqa: E402
from db.seed import seed_system_defaults  # noqa: E402
from main import app  # noqa: E402


DEFAULT_PASSWORD = "Sup3rSecret!"


class CapturingNotifier:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str, object]] = []

    def send_reset_token(self, email, raw_token, expires_at) -> None:
        self.sent.append((email, raw_token, expires_at))

    @property
    def last_token(self) -> str:
        return self.sent[-1][1]


@pytest.fixture(autouse=True)
def fresh_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_system_defaults(db)
    finally:
        db.close()
    yield


@pytest.fixture
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def notifier():
    return CapturingNotifier()


@pytest.fixture
def client(notifier):
    app.dependency_overrides[get_reset_notifier] = lambda: notifier
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_user(client):
    """Register a fresh account and return its payload plus ready-made auth headers."""

    def _make(email: str | None = None, password: str = DEFAULT_PASSWORD, display_name: str | None = None) -> dict:
        body = {"email": email or f"user_{uuid.uuid4().hex[:8]}@example.com", "password": password}
        if display_name:
            body["displayName"] = display_name
        resp = client.post("/api/auth/register", json=body)
        assert resp.status_code == 201, resp.text
        payload = resp.json()
        payload["headers"] = {"Authorization": f"Bearer {payload['accessToken']}"}
        payload["password"] = password
        return payload

    return _make


def default_symptom_id(client: TestClient, headers: dict, name: str = "Headache") -> str:
    symptoms = client.get("/api/symptoms", headers=headers).json()["symptoms"]
    return next(s["id"] for s in symptoms if s["name"] == name and s["userId"] is None)


def default_habit_id(client: TestClient, headers: dict, name: str) -> str:
    habits = client.get("/api/habits", headers=headers).json()["habits"]
    return next(h["id"] for h in habits if h["name"] == name and h["userId"] is None)
