"""Tests for the health probe and the account endpoints.

Tests cover:
- Signup validation and duplicate detection
- Login with good and bad credentials
- Bearer token resolution on protected routes
- Error body shape
"""
from datetime import timedelta

from fastapi.testclient import TestClient
from sqlalchemy.exc import DBAPIError

from hive.api.utils import create_access_token, verify_token
from hive.database.daos import UserDao
from tests.helpers import auth_headers


class TestHealth:
    def test_health_needs_no_auth(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "OK", "message": "Hive Backend is running!"}


class TestSignup:
    """Tests for POST /api/auth/signup."""

    def test_signup_success(self, client):
        """Signup returns 201 with the user, a token and never a password."""
        response = client.post(
            "/api/auth/signup",
            json={"email": "  Alice@Example.com ", "password": "secret123", "name": "Alice"},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "User created successfully"
        assert body["token"]
        user = body["user"]
        assert user["email"] == "alice@example.com"
        assert user["displayName"] == "Alice"
        assert "password" not in user
        assert "createdAt" in user

    def test_signup_token_identifies_user(self, client):
        response = client.post(
            "/api/auth/signup",
            json={"email": "dan@example.com", "password": "secret123", "name": "Dan", "displayName": "Danny"},
        )

        body = response.json()
        assert verify_token(body["token"]) == body["user"]["id"]
        assert body["user"]["displayName"] == "Danny"

    def test_missing_fields(self, client):
        response = client.post("/api/auth/signup", json={"email": "x@example.com"})

        assert response.status_code == 400
        assert response.json() == {"error": "Email, password, and name are required"}

    def test_invalid_email(self, client):
        response = client.post("/api/auth/signup", json={"email": "nope", "password": "secret123", "name": "Al"})

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid email format"

    def test_short_password(self, client):
        response = client.post(
            "/api/auth/signup", json={"email": "a@example.com", "password": "12345", "name": "Al"}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Password must be at least 6 characters long"

    def test_short_name(self, client):
        response = client.post(
            "/api/auth/signup", json={"email": "a@example.com", "password": "123456", "name": " A "}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Name must be at least 2 characters long"

    def test_short_display_name(self, client):
        response = client.post(
            "/api/auth/signup",
            json={"email": "a@example.com", "password": "123456", "name": "Al", "displayName": "x"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Display name must be at least 2 characters long"

    def test_duplicate_email(self, client, signup):
        signup("Alice", email="alice@example.com")

        response = client.post(
            "/api/auth/signup", json={"email": "ALICE@example.com", "password": "secret123", "name": "Other"}
        )

        assert response.status_code == 409
        assert response.json()["error"] == "User with this email already exists"


class TestLogin:
    """Tests for POST /api/auth/login."""

    def test_login_success(self, client, signup):
        signup("Alice", email="alice@example.com", password="secret123")

        response = client.post("/api/auth/login", json={"email": "Alice@example.com", "password": "secret123"})

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Login successful"
        assert body["user"]["email"] == "alice@example.com"
        assert "password" not in body["user"]

    def test_wrong_password(self, client, signup):
        signup("Alice", email="alice@example.com", password="secret123")

        response = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "wrong-one"})

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid email or password"

    def test_unknown_email(self, client):
        response = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "secret123"})

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid email or password"

    def test_missing_fields(self, client):
        response = client.post("/api/auth/login", json={"email": "ghost@example.com"})

        assert response.status_code == 400
        assert response.json()["error"] == "Email and password are required"


class TestCurrentUser:
    """Tests for bearer token resolution via GET /api/auth/me."""

    def test_me_returns_profile(self, client, alice):
        user, token = alice

        response = client.get("/api/auth/me", headers=auth_headers(token))

        assert response.status_code == 200
        assert response.json()["user"]["id"] == user["id"]

    def test_missing_token(self, client):
        response = client.get("/api/auth/me")

        assert response.status_code == 401
        assert response.json() == {"error": "Access token required"}

    def test_garbage_token(self, client):
        response = client.get("/api/auth/me", headers=auth_headers("not-a-jwt"))

        assert response.status_code == 403
        assert response.json() == {"error": "Invalid token"}

    def test_expired_token(self, client, alice):
        user, _ = alice
        token = create_access_token({"sub": user["id"]}, expires_delta=timedelta(seconds=-5))

        response = client.get("/api/auth/me", headers=auth_headers(token))

        assert response.status_code == 403
        assert response.json() == {"error": "Token expired"}

    def test_token_for_unknown_user(self, client):
        token = create_access_token({"sub": "no-such-user"})

        response = client.get("/api/auth/me", headers=auth_headers(token))

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid token"}

    def test_logout(self, client, alice):
        _, token = alice

        response = client.post("/api/auth/logout", headers=auth_headers(token))

        assert response.status_code == 200
        assert response.json() == {"message": "Logout successful"}


def flaky_lookup(monkeypatch, invalidated: bool) -> list:
    """Make the first ``UserDao.get_by_id`` call fail; return the call log."""
    calls = []
    real_get_by_id = UserDao.get_by_id

    def get_by_id(self, user_id):
        calls.append(user_id)
        if len(calls) == 1:
            raise DBAPIError(
                "SELECT users", None, Exception("server closed the connection"), connection_invalidated=invalidated
            )
        return real_get_by_id(self, user_id)

    monkeypatch.setattr(UserDao, "get_by_id", get_by_id)
    return calls


class TestLookupFailures:
    def test_lookup_retried_once_on_lost_connection(self, client, alice, monkeypatch):
        user, token = alice
        calls = flaky_lookup(monkeypatch, invalidated=True)

        response = client.get("/api/auth/me", headers=auth_headers(token))

        assert response.status_code == 200
        assert response.json()["user"]["id"] == user["id"]
        assert calls == [user["id"], user["id"]]

    def test_other_database_error_is_internal_error(self, app, alice, monkeypatch):
        user, token = alice
        calls = flaky_lookup(monkeypatch, invalidated=False)

        with TestClient(app, raise_server_exceptions=False) as client:
            response = client.get("/api/auth/me", headers=auth_headers(token))

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}
        assert calls == [user["id"]]
