"""
Shared pytest fixtures.

The server reads its database URL and log file at import time, so the
environment is pointed at a temp directory before anything is imported.
"""

import os
import shutil
import tempfile
from pathlib import Path

import pytest

_TMP_DIR = Path(tempfile.mkdtemp(prefix="event_chat_tests_"))
os.environ["EVENT_CHAT_DATABASE_URL"] = f"sqlite:///{_TMP_DIR / 'test.db'}"
os.environ["EVENT_CHAT_LOG_FILE"] = str(_TMP_DIR / "server.log")
os.environ["EVENT_CHAT_CLIENT_STATE"] = str(_TMP_DIR / "client_state.json")

from fastapi.testclient import TestClient  # noqa: E402

from event_chat.server import auth, realtime  # noqa: E402
from event_chat.server.database import SessionLocal  # noqa: E402
from event_chat.server.main import app  # noqa: E402
from event_chat.server.models import ChatMessage, User  # noqa: E402

STRONG_PASSWORD = "correct-horse-battery"


def pytest_sessionfinish(session, exitstatus):
    shutil.rmtree(_TMP_DIR, ignore_errors=True)


@pytest.fixture(autouse=True)
def _clean_state():
    """Empty tables, tokens and socket registry between tests."""
    yield
    db = SessionLocal()
    try:
        db.query(ChatMessage).delete()
        db.query(User).delete()
        db.commit()
    finally:
        db.close()
    auth.TOKEN_STORE.clear()
    realtime.manager.active.clear()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_user(client):
    """Register and log in a user; returns (auth headers, user dict, token)."""

    def _make(username: str, user_type: str = "organizer", first_name=None, last_name=None):
        resp = client.post(
            "/api/auth/register",
            json={
                "username": username,
                "email": f"{username}@example.com",
                "password": STRONG_PASSWORD,
                "userType": user_type,
                "firstName": first_name,
                "lastName": last_name,
            },
        )
        assert resp.status_code == 201, resp.text
        login = client.post("/api/auth/login", json={"username": username, "password": STRONG_PASSWORD})
        assert login.status_code == 200, login.text
        token = login.json()["token"]
        return {"Authorization": f"Bearer {token}"}, login.json()["user"], token

    return _make
