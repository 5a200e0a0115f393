"""Shared test fixtures for the FileVault test suite.

Tests run against an in-memory SQLite database (one shared connection) and a
LocalObjectStore rooted in a per-test temporary directory. Every test starts
from freshly created tables.
"""

import os
import tempfile

# Use the in-memory database and keep new accounts bare before any app imports.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["STORAGE_DIR"] = tempfile.mkdtemp(prefix="filevault-test-")
os.environ["LOG_FORMAT"] = "text"
os.environ["CREATE_DEFAULT_FOLDERS"] = "false"

import pytest
from fastapi.testclient import TestClient

from filevault.database import Base, get_db, engine, SessionLocal
from filevault.main import app
from filevault.core.config import settings
from filevault.core.object_store import LocalObjectStore, get_object_store
from filevault.middleware.request_context import _rate_buckets
from filevault.services import auth_service

TEST_PASSWORD = "correct-horse"


@pytest.fixture(autouse=True)
def _fresh_schema():
    """Recreate every table before each test for isolation."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture()
def db():
    """Per-test database session."""
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture()
def store(tmp_path) -> LocalObjectStore:
    """Object store writing into this test's temporary directory."""
    return LocalObjectStore(
        root=str(tmp_path / "objects"),
        secret=settings.jwt_secret_key,
        url_ttl_seconds=settings.object_url_ttl_seconds,
    )


@pytest.fixture()
def client(db, store):
    """FastAPI TestClient sharing the test session and object store."""

    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_object_store] = lambda: store
    _rate_buckets.clear()  # Reset rate limiter so tests don't hit 429
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def make_user(db, email: str = "alice@example.com", display_name: str = "Alice"):
    """Create a user directly through the service layer."""
    return auth_service.register_user(
        db, email, TEST_PASSWORD, display_name, create_default_folders=False
    )


def register(client, email: str, display_name: str = "User") -> dict:
    """Register through the API and return ``{"id", "email", "headers"}``."""
    resp = client.post(
        "/api/auth/register",
        json={"email": email, "password": TEST_PASSWORD, "display_name": display_name},
    )
    assert resp.status_code == 201, resp.text
    body = resp.json()
    return {
        "id": body["user"]["id"],
        "email": body["user"]["email"],
        "headers": {"Authorization": f"Bearer {body['token']}"},
    }


@pytest.fixture()
def alice(client) -> dict:
    return register(client, "alice@example.com", "Alice")


@pytest.fixture()
def bob(client) -> dict:
    return register(client, "bob@example.com", "Bob")


def upload(client, user: dict, name: str = "notes.txt", content: bytes = b"hello world",
           content_type: str = "text/plain", folder_id=None) -> dict:
    """Upload a file through the API and return the response body."""
    data = {"folder_id": folder_id} if folder_id else {}
    resp = client.post(
        "/api/files/upload",
        files={"file": (name, content, content_type)},
        data=data,
        headers=user["headers"],
    )
    assert resp.status_code == 201, resp.text
    return resp.json()
