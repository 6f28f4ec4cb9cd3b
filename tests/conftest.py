"""Shared pytest fixtures for the test suite.

Every test gets its own sqlite file and data directory under pytest's
tmp_path, so tests never share state.

Fixture overview
----------------
app            - Flask app on a temporary database
client         - Flask test client for `app`
admin_headers  - Authorization header of the first registered user (admin)
user_headers   - Authorization header of a regular user (default apps only)
register_user  - factory registering further accounts, returns their header
project        - Affiliate project owned by the admin
query          - run SQL against the app database outside any request
"""

import pytest

from bizhub import create_app
from bizhub import db


def auth_header(token):
    return {"Authorization": f"Bearer {token}"}


def register(client, email, name="Test User", password="secret123"):
    resp = client.post("/auth/register", json={"email": email, "name": name, "password": password})
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


# ── Application ───────────────────────────────────────────────────────────────


@pytest.fixture
def app(tmp_path):
    app = create_app({
        "TESTING": True,
        "DB_PATH": str(tmp_path / "test.db"),
        "DATA_DIR": str(tmp_path / "data"),
        "JWT_SECRET_KEY": "test-secret-key-with-enough-length-for-hs256",
    })
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def query(app):
    """Run a SELECT (list of dicts) or, with write=True, a statement against the app DB."""
    def run(sql, args=(), one=False, write=False):
        with app.app_context():
            if write:
                return db.execute_db(sql, args)
            rows = db.query_db(sql, args)
            result = [dict(r) for r in rows]
            if one:
                return result[0] if result else None
            return result
    return run


# ── Users ─────────────────────────────────────────────────────────────────────


@pytest.fixture
def register_user(client):
    """Register an account and return its Authorization header."""
    def run(email, name="Test User", password="secret123"):
        return auth_header(register(client, email, name, password)["access_token"])
    return run


@pytest.fixture
def admin_headers(client):
    """First account on a fresh install becomes admin."""
    body = register(client, "admin@example.com", "Admin")
    assert body["user"]["role"] == "admin"
    return auth_header(body["access_token"])


@pytest.fixture
def user_headers(client, admin_headers):
    body = register(client, "user@example.com", "Regular")
    assert body["user"]["role"] == "user"
    return auth_header(body["access_token"])


# ── Affiliate data ────────────────────────────────────────────────────────────


@pytest.fixture
def project(client, admin_headers):
    resp = client.post("/api/projects", json={"name": "Keto Funnel"}, headers=admin_headers)
    assert resp.status_code == 201
    return resp.get_json()
