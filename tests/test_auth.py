"""
Authentication endpoint tests: register, login, lockout, tokens.
"""

from datetime import datetime, timedelta

from event_chat.server import auth

from conftest import STRONG_PASSWORD


def _register(client, username="alice", password=STRONG_PASSWORD, user_type="organizer", email=None):
    return client.post(
        "/api/auth/register",
        json={
            "username": username,
            "email": email or f"{username}@example.com",
            "password": password,
            "userType": user_type,
        },
    )


class TestRegister:
    def test_register_returns_created_user(self, client):
        resp = _register(client, user_type="provider")
        assert resp.status_code == 201
        data = resp.json()
        assert data["username"] == "alice"
        assert data["userType"] == "provider"
        assert "password" not in data and "passwordHash" not in data

    def test_duplicate_username_rejected(self, client):
        _register(client)
        resp = _register(client, email="other@example.com")
        assert resp.status_code == 400

    def test_duplicate_email_rejected(self, client):
        _register(client)
        resp = _register(client, username="alice2", email="alice@example.com")
        assert resp.status_code == 400

    def test_weak_password_rejected(self, client):
        resp = _register(client, password="123456789")
        assert resp.status_code == 400

    def test_unknown_user_type_rejected(self, client):
        resp = _register(client, user_type="admin")
        assert resp.status_code == 422


class TestLogin:
    def test_login_returns_token_and_user(self, client):
        _register(client)
        resp = client.post("/api/auth/login", json={"username": "alice", "password": STRONG_PASSWORD})
        assert resp.status_code == 200
        body = resp.json()
        assert body["token"]
        assert body["user"]["username"] == "alice"

    def test_bad_password(self, client):
        _register(client)
        resp = client.post("/api/auth/login", json={"username": "alice", "password": "wrong-password"})
        assert resp.status_code == 401

    def test_unknown_user(self, client):
        resp = client.post("/api/auth/login", json={"username": "ghost", "password": STRONG_PASSWORD})
        assert resp.status_code == 401

    def test_account_locks_after_repeated_failures(self, client):
        _register(client)
        for _ in range(5):
            client.post("/api/auth/login", json={"username": "alice", "password": "wrong-password"})
        resp = client.post("/api/auth/login", json={"username": "alice", "password": STRONG_PASSWORD})
        assert resp.status_code == 403


class TestTokens:
    def test_me_requires_token(self, client):
        resp = client.get("/api/auth/me")
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Missing token"

    def test_me_with_token(self, client, make_user):
        headers, user, _ = make_user("bob")
        resp = client.get("/api/auth/me", headers=headers)
        assert resp.status_code == 200
        assert resp.json()["id"] == user["id"]

    def test_logout_revokes_token(self, client, make_user):
        headers, _, _ = make_user("bob")
        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        resp = client.get("/api/auth/me", headers=headers)
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Invalid token"

    def test_expired_token(self, client, make_user):
        headers, _, token = make_user("bob")
        auth.TOKEN_STORE[token]["expires"] = datetime.utcnow() - timedelta(minutes=1)
        resp = client.get("/api/auth/me", headers=headers)
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Token expired"
        assert token not in auth.TOKEN_STORE
