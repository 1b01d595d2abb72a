"""Pytest fixtures."""

import os
import uuid

# App settings are read at import time
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["ESCALATION_SWEEP_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from safetrail.core.fanout import fanout
from safetrail.db.base import Base
from safetrail.models import Alert, AlertAction, AlertTimelineEntry, Device, DigitalIdCard, Tourist, TouristLocation, User  # noqa: F401 - register for create_all
from safetrail.main import app
from safetrail.db.session import get_db
from safetrail.services.auth_service import create_user

TEST_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session")
def setup_db():
    """Create tables once for test session."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(setup_db):
    """Test client with overridden DB."""
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def db_session(setup_db):
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def published(monkeypatch):
    """Capture fan-out events as (room, event, data) tuples."""
    events = []
    monkeypatch.setattr(fanout, "publish", lambda room, event, data: events.append((room, event, data)))
    return events


@pytest.fixture
def make_user(client):
    """Fresh user logged in; returns (auth headers, user json).

    Tourists sign up through the API, staff accounts are seeded directly.
    """

    def _make(prefix="user", role="tourist", full_name="Test User"):
        email = f"{prefix}_{uuid.uuid4().hex[:8]}@test.com"
        if role == "tourist":
            r = client.post(
                "/auth/register",
                json={"email": email, "password": "pass", "full_name": full_name},
            )
            assert r.status_code == 200, r.text
        else:
            db = TestingSessionLocal()
            try:
                create_user(db, email=email, password="pass", full_name=full_name, role=role)
            finally:
                db.close()
        token = client.post("/auth/login", json={"email": email, "password": "pass"}).json()["access_token"]
        headers = {"Authorization": f"Bearer {token}"}
        return headers, client.get("/auth/me", headers=headers).json()

    return _make


@pytest.fixture
def make_tourist(client, make_user):
    """Tourist user with a set-up profile; returns (auth headers, profile json)."""

    def _make(prefix="tourist", nationality="India"):
        headers, _ = make_user(prefix, role="tourist", full_name="Asha Rao")
        r = client.post(
            "/tourists/me",
            headers=headers,
            json={
                "first_name": "Asha",
                "last_name": "Rao",
                "nationality": nationality,
                "passport_number": f"P{uuid.uuid4().hex[:10].upper()}",
                "phone_number": "+919876543210",
            },
        )
        assert r.status_code == 201, r.text
        return headers, r.json()

    return _make


@pytest.fixture
def staff(make_user):
    """Admin user; returns (auth headers, user json)."""
    return make_user("admin", role="admin", full_name="Control Room")


@pytest.fixture
def session_factory(setup_db):
    """Session factory bound to the test database, for thread-level tests."""
    return TestingSessionLocal
