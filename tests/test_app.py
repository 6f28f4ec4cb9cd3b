"""
Tests for the app factory, health endpoints and the init CLI.
"""

import sqlite3

from bizhub import db
from bizhub.init_db_py import create_admin_user


class TestCoreEndpoints:
    def test_root(self, client):
        assert client.get("/").status_code == 200

    def test_health(self, client):
        assert client.get("/health").get_json() == {"status": "ok", "database": "connected"}

    def test_health_reports_broken_database(self, client, monkeypatch):
        def broken(*args, **kwargs):
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr(db, "query_db", broken)
        resp = client.get("/health")
        assert resp.status_code == 500
        assert resp.get_json()["database"] == "disconnected"

    def test_init_db_is_idempotent(self, app):
        db.init_db(app.config["DB_PATH"])
        db.init_db(app.config["DB_PATH"])


class TestInitCli:
    def test_create_admin_user(self, app, client):
        assert create_admin_user(app, "boss@example.com", "secret123") is True
        assert create_admin_user(app, "boss@example.com", "secret123") is False

        resp = client.post("/auth/login", json={"email": "boss@example.com", "password": "secret123"})
        assert resp.get_json()["user"]["role"] == "admin"
