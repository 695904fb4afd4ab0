"""Shared fixtures: a temp-file SQLite app, a lifespan-aware client and signup helpers."""
import os

os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET", "test-secret")

from uuid import uuid4  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from hive.main import create_app  # noqa: E402


@pytest.fixture
def app(tmp_path):
    return create_app(database_url=f"sqlite:///{tmp_path / 'hive-test.db'}")


@pytest.fixture
def client(app):
    """One client per test; WebSocket sessions opened from it share its event loop."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def signup(client):
    """Create a user and return ``(user, token)``."""

    def _signup(name: str = "Alice", email: str | None = None, password: str = "secret123"):
        email = email or f"{name.lower()}-{uuid4().hex[:8]}@example.com"
        response = client.post("/api/auth/signup", json={"email": email, "password": password, "name": name})
        assert response.status_code == 201, response.text
        body = response.json()
        return body["user"], body["token"]

    return _signup


@pytest.fixture
def alice(signup):
    return signup("Alice")


@pytest.fixture
def bob(signup):
    return signup("Bob")


@pytest.fixture
def carol(signup):
    return signup("Carol")
