"""
Tests for registration, login, bootstrap and admin user management.
"""


class TestAuth:
    def test_first_user_is_admin_then_users(self, client, admin_headers, user_headers):
        me = client.get("/auth/me", headers=user_headers).get_json()
        assert me["role"] == "user"
        assert me["app_permissions"] == {"affiliate_hq": True, "financial_tracker": True}
        assert me["project_ids"] == []

    def test_register_validation(self, client):
        resp = client.post("/auth/register", json={"email": "a@b.co", "name": "A", "password": "123"})
        assert resp.status_code == 400
        resp = client.post("/auth/register", json={"email": "not-an-email", "name": "A", "password": "123456"})
        assert resp.status_code == 400

    def test_duplicate_email(self, client, admin_headers):
        resp = client.post("/auth/register", json={"email": "ADMIN@example.com", "name": "X", "password": "secret123"})
        assert resp.status_code == 409

    def test_login(self, client, admin_headers):
        resp = client.post("/auth/login", json={"email": "admin@example.com", "password": "secret123"})
        assert resp.status_code == 200
        assert resp.get_json()["access_token"]
        resp = client.post("/auth/login", json={"email": "admin@example.com", "password": "wrong-pass"})
        assert resp.status_code == 401

    def test_missing_token_is_json_401(self, client):
        resp = client.get("/api/transactions")
        assert resp.status_code == 401
        assert "error" in resp.get_json()

    def test_bootstrap(self, client, user_headers, query):
        assert client.get("/api/bootstrap").get_json() == {"has_admin": True}
        assert client.post("/api/bootstrap", headers=user_headers).status_code == 400

        query("UPDATE users SET role='user'", write=True)
        assert client.get("/api/bootstrap").get_json() == {"has_admin": False}
        resp = client.post("/api/bootstrap", headers=user_headers)
        assert resp.status_code == 200
        assert client.get("/auth/me", headers=user_headers).get_json()["role"] == "admin"


class TestUsers:
    def test_admin_only(self, client, user_headers):
        assert client.get("/api/users", headers=user_headers).status_code == 403

    def test_list_includes_permissions(self, client, admin_headers, user_headers):
        users = client.get("/api/users", headers=admin_headers).get_json()
        assert {u["email"] for u in users} == {"admin@example.com", "user@example.com"}
        assert all("app_permissions" in u and "project_ids" in u for u in users)

    def test_create_with_permissions(self, client, admin_headers):
        resp = client.post("/api/users", json={
            "email": "new@example.com", "name": "New", "password": "secret123",
            "app_permissions": {"todo_dashboard": True, "affiliate_hq": False},
        }, headers=admin_headers)
        assert resp.status_code == 201
        perms = resp.get_json()["app_permissions"]
        assert perms["todo_dashboard"] is True
        assert perms["affiliate_hq"] is False
        assert resp.get_json()["role"] == "user"

    def test_update_replaces_projects(self, client, admin_headers, user_headers, project, query):
        second = client.post("/api/projects", json={"name": "Second"}, headers=admin_headers).get_json()
        user_id = query("SELECT id FROM users WHERE email='user@example.com'", one=True)["id"]

        client.put(f"/api/users/{user_id}", json={"project_ids": [project["id"], second["id"]]}, headers=admin_headers)
        resp = client.put(f"/api/users/{user_id}", json={"project_ids": [second["id"]], "name": "Renamed"},
                          headers=admin_headers)
        body = resp.get_json()
        assert body["project_ids"] == [second["id"]]
        assert body["name"] == "Renamed"

    def test_password_change(self, client, admin_headers, user_headers, query):
        user_id = query("SELECT id FROM users WHERE email='user@example.com'", one=True)["id"]
        client.put(f"/api/users/{user_id}", json={"password": "new-secret"}, headers=admin_headers)
        resp = client.post("/auth/login", json={"email": "user@example.com", "password": "new-secret"})
        assert resp.status_code == 200

    def test_cannot_delete_self(self, client, admin_headers, query):
        admin_id = query("SELECT id FROM users WHERE email='admin@example.com'", one=True)["id"]
        assert client.delete(f"/api/users/{admin_id}", headers=admin_headers).status_code == 400

    def test_delete_user_cleans_owned_mirrors(self, client, admin_headers, register_user, query):
        headers = register_user("owner@example.com")
        project = client.post("/api/projects", json={"name": "Owned"}, headers=headers).get_json()
        client.post("/api/sales", json={
            "project_id": project["id"], "platform": "X", "amount": 10, "sale_date": "2024-01-01"
        }, headers=headers)
        owner_id = query("SELECT id FROM users WHERE email='owner@example.com'", one=True)["id"]

        assert client.delete(f"/api/users/{owner_id}", headers=admin_headers).status_code == 200
        assert query("SELECT * FROM projects") == []
        assert query("SELECT * FROM transactions") == []
