import os
import sys
import dataclasses

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

ROOT_DIR = os.path.dirname(os.path.dirname(__file__))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Every TestClient context opens a brand-new in-memory database.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DATA_SCOPE"] = "user"
os.environ["SEED_DEMO_DATA"] = "false"
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from config import get_settings, settings  # noqa: E402
from main import app  # noqa: E402
from seed import seed_database  # noqa: E402


@pytest.fixture(scope="function")
def client():
    """Return a TestClient wired to a fresh in-memory database for each test."""
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def session(client):
    """A session on the same in-memory database the client talks to."""
    with Session(client.app.state.engine) as db_session:
        yield db_session


@pytest.fixture
def global_scope(client):
    """Switch the app to single-tenant mode (every user sees every row)."""
    global_settings = dataclasses.replace(settings, data_scope="global")
    app.dependency_overrides[get_settings] = lambda: global_settings
    return global_settings


@pytest.fixture
def seeded(session):
    """Demo dataset: 4 users, 10 transactions."""
    seed_database(session)
    return session


@pytest.fixture
def auth_helpers(client):
    """
    Common auth utilities shared across test modules.
    Provides register/login helpers and a token helper.
    """

    def register_user(username: str, password: str, email: str | None = None):
        payload = {"username": username, "password": password}
        if email is not None:
            payload["email"] = email
        return client.post("/auth/register", json=payload)

    def login_user(username: str, password: str):
        return client.post("/auth/login", json={"username": username, "password": password})

    def get_token(username: str, password: str) -> str:
        res_reg = register_user(username, password)
        assert res_reg.status_code in (201, 409)
        res_login = login_user(username, password)
        assert res_login.status_code == 200
        data = res_login.json()["data"]
        assert "token" in data
        return data["token"]

    def auth_headers(token: str) -> dict:
        return {"Authorization": f"Bearer {token}"}

    return {
        "register_user": register_user,
        "login_user": login_user,
        "get_token": get_token,
        "auth_headers": auth_headers,
    }


@pytest.fixture
def alice_headers(auth_helpers):
    token = auth_helpers["get_token"]("alice", "SuperSecret123!")
    return auth_helpers["auth_headers"](token)


@pytest.fixture
def create_tx(client):
    """POST a transaction with sensible defaults; returns the created row."""

    def _create(headers, **overrides):
        payload = {
            "date": "2025-01-10T10:00:00Z",
            "amount": 100.0,
            "category": "Revenue",
            "status": "Paid",
            "description": "Test transaction",
        }
        payload.update(overrides)
        res = client.post("/api/transactions", json=payload, headers=headers)
        assert res.status_code == 201, res.text
        return res.json()["data"]

    return _create
