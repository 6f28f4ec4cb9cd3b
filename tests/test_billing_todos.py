"""
Tests for the Project Tracker billing endpoints and the per-user todo board.
"""

import json
import os
from datetime import date, timedelta

from bizhub.todos import todo_stats


def add_billing(client, headers, **overrides):
    payload = {"project_name": "Website", "client_name": "Acme", "cost": 500, "date": "2024-06-10"}
    payload.update(overrides)
    resp = client.post("/api/project-tracker-data", json=payload, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


class TestBilling:
    def test_create_mirrors_income(self, client, admin_headers, query):
        project = add_billing(client, admin_headers)
        assert project["month"] == "2024-06"
        assert project["status"] == "unpaid"
        tx = query("SELECT * FROM transactions", one=True)
        assert tx["external_id"] == project["id"]
        assert tx["description"] == "Website - Acme"

    def test_update_then_delete(self, client, admin_headers, query):
        project = add_billing(client, admin_headers)
        resp = client.put("/api/project-tracker-data", json={"id": project["id"], "cost": 800, "status": "paid"},
                          headers=admin_headers)
        assert resp.status_code == 200
        assert query("SELECT amount FROM transactions", one=True)["amount"] == 800.0

        resp = client.delete("/api/project-tracker-data", query_string={"project_id": project["id"]},
                             headers=admin_headers)
        assert resp.status_code == 200
        assert query("SELECT * FROM transactions") == []

    def test_put_requires_id(self, client, admin_headers):
        assert client.put("/api/project-tracker-data", json={"cost": 1}, headers=admin_headers).status_code == 400

    def test_other_users_projects_hidden(self, client, admin_headers, user_headers):
        project = add_billing(client, admin_headers)
        assert client.get("/api/project-tracker-data", headers=user_headers).get_json() == []
        resp = client.put("/api/project-tracker-data", json={"id": project["id"], "cost": 1}, headers=user_headers)
        assert resp.status_code == 404

    def test_stats(self, client, admin_headers):
        add_billing(client, admin_headers, cost=500, status="paid")
        add_billing(client, admin_headers, cost=200, status="partial")
        add_billing(client, admin_headers, cost=None)
        add_billing(client, admin_headers, cost=999, date="2024-07-01")
        stats = client.get("/api/project-tracker-data/stats", query_string={"month": "2024-06"},
                           headers=admin_headers).get_json()
        assert stats == {"total_projects": 3, "total_paid": 500.0, "total_unpaid": 200.0, "total_revenue": 700.0}

    def test_open_to_any_logged_in_user(self, client, admin_headers, user_headers, query):
        user_id = query("SELECT id FROM users WHERE email='user@example.com'", one=True)["id"]
        client.put(f"/api/users/{user_id}", json={
            "app_permissions": {"project_tracker": False, "todo_dashboard": False}
        }, headers=admin_headers)

        assert client.post("/api/project-tracker-data", json={"project_name": "Mine", "date": "2024-06-10"},
                           headers=user_headers).status_code == 201
        assert client.get("/api/todo-data", headers=user_headers).status_code == 200
        assert client.get("/api/project-tracker-data").status_code == 401

    def test_bad_month_rejected(self, client, admin_headers):
        resp = client.post("/api/project-tracker-data", json={
            "project_name": "X", "date": "2024-06-10", "month": "June"
        }, headers=admin_headers)
        assert resp.status_code == 400


class TestTodos:
    def test_empty_document_by_default(self, client, user_headers):
        assert client.get("/api/todo-data", headers=user_headers).get_json() == {
            "projects": [], "categories": [], "todos": []
        }

    def test_save_and_reload_per_user(self, client, app, admin_headers, user_headers):
        doc = {"projects": [{"id": 1, "name": "Home"}], "categories": [], "todos": [{"id": 1, "title": "Milk"}]}
        assert client.post("/api/todo-data", json=doc, headers=user_headers).status_code == 200

        assert client.get("/api/todo-data", headers=user_headers).get_json() == doc
        assert client.get("/api/todo-data", headers=admin_headers).get_json()["todos"] == []
        todo_dir = os.path.join(app.config["DATA_DIR"], "todos")
        assert len(os.listdir(todo_dir)) == 1

    def test_rejects_non_list_sections(self, client, user_headers):
        resp = client.post("/api/todo-data", json={"todos": "nope"}, headers=user_headers)
        assert resp.status_code == 400

    def test_corrupt_file_reads_as_empty(self, client, app, user_headers):
        client.post("/api/todo-data", json={"todos": []}, headers=user_headers)
        todo_dir = os.path.join(app.config["DATA_DIR"], "todos")
        path = os.path.join(todo_dir, os.listdir(todo_dir)[0])
        with open(path, "w") as f:
            f.write("{not json")
        assert client.get("/api/todo-data", headers=user_headers).get_json()["todos"] == []

    def test_stats_endpoint(self, client, user_headers):
        yesterday = (date.today() - timedelta(days=1)).isoformat()
        doc = {"todos": [{"id": 1, "title": "Late", "completed": False, "due_date": yesterday}]}
        client.post("/api/todo-data", json=doc, headers=user_headers)
        stats = client.get("/api/todo-data/stats", headers=user_headers).get_json()
        assert stats == {"total": 1, "pending": 1, "completed_today": 0, "overdue": 1}


class TestTodoStats:
    def test_counts(self):
        today = date(2024, 5, 20)
        todos = [
            {"completed": True, "updated_at": "2024-05-20T09:30:00Z"},
            {"completed": True, "updated_at": "2024-05-19T23:00:00"},
            {"completed": False, "due_date": "2024-05-19"},
            {"completed": False, "due_date": "2024-05-20"},
            {"completed": False},
        ]
        assert todo_stats(todos, today) == {"total": 5, "pending": 3, "completed_today": 1, "overdue": 1}

    def test_completed_items_are_never_overdue(self):
        todos = [{"completed": True, "due_date": "2000-01-01", "updated_at": "2000-01-01"}]
        assert todo_stats(todos, date(2024, 1, 1))["overdue"] == 0

    def test_document_is_plain_json_on_disk(self, client, app, user_headers):
        client.post("/api/todo-data", json={"todos": [{"id": 7}]}, headers=user_headers)
        todo_dir = os.path.join(app.config["DATA_DIR"], "todos")
        with open(os.path.join(todo_dir, os.listdir(todo_dir)[0])) as f:
            assert json.load(f)["todos"] == [{"id": 7}]
