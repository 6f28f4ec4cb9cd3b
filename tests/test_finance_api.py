"""
API tests for the Financial Tracker: transactions and their reverse sync,
recurring processing, categories, budgets, reports and search.
"""

from datetime import date

import pytest

from bizhub.finance import process_due_recurring


def add_tx(client, headers, **overrides):
    payload = {"description": "Coffee", "amount": 4.5, "type": "expense", "date": "2024-02-10"}
    payload.update(overrides)
    resp = client.post("/api/transactions", json=payload, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


class TestTransactions:
    def test_create_defaults_to_manual(self, client, admin_headers):
        tx = add_tx(client, admin_headers)
        assert tx["source"] == "manual"
        assert tx["category_name"] is None

    def test_invalid_type_rejected(self, client, admin_headers):
        resp = client.post("/api/transactions", json={
            "description": "x", "amount": 1, "type": "gift", "date": "2024-01-01"
        }, headers=admin_headers)
        assert resp.status_code == 400

    def test_filters(self, client, admin_headers):
        add_tx(client, admin_headers, type="income", description="Salary", amount=1000)
        add_tx(client, admin_headers)
        resp = client.get("/api/transactions", query_string={"type": "income"}, headers=admin_headers)
        assert [t["description"] for t in resp.get_json()] == ["Salary"]

    def test_editing_affiliate_mirror_does_not_touch_sale(self, client, admin_headers, project, query):
        sale = client.post("/api/sales", json={
            "project_id": project["id"], "platform": "ClickBank", "amount": 100, "sale_date": "2024-03-01"
        }, headers=admin_headers).get_json()
        resp = client.put(f"/api/transactions/{sale['external_id']}", json={"amount": 999}, headers=admin_headers)
        assert resp.status_code == 200
        assert query("SELECT amount FROM sales WHERE id=?", (sale["id"],), one=True)["amount"] == 100.0

    def test_manual_link_pushes_to_sale(self, client, admin_headers, project, query):
        sale = client.post("/api/sales", json={
            "project_id": project["id"], "platform": "ClickBank", "amount": 100, "sale_date": "2024-03-01"
        }, headers=admin_headers).get_json()
        tx = add_tx(client, admin_headers, type="income", external_id=sale["id"])
        client.put(f"/api/transactions/{tx['id']}", json={"amount": 55, "date": "2024-03-09"}, headers=admin_headers)

        row = query("SELECT * FROM sales WHERE id=?", (sale["id"],), one=True)
        assert row["amount"] == 55.0
        assert row["sale_date"] == "2024-03-09"

    def test_deleting_mirror_deletes_sale(self, client, admin_headers, project, query):
        sale = client.post("/api/sales", json={
            "project_id": project["id"], "platform": "ClickBank", "amount": 100, "sale_date": "2024-03-01"
        }, headers=admin_headers).get_json()
        assert client.delete(f"/api/transactions/{sale['external_id']}", headers=admin_headers).status_code == 200
        assert query("SELECT * FROM sales") == []

    def test_deleting_manual_tx_leaves_affiliate_data(self, client, admin_headers, project, query):
        sale = client.post("/api/sales", json={
            "project_id": project["id"], "platform": "ClickBank", "amount": 100, "sale_date": "2024-03-01"
        }, headers=admin_headers).get_json()
        tx = add_tx(client, admin_headers, type="income", external_id=sale["id"])
        client.delete(f"/api/transactions/{tx['id']}", headers=admin_headers)
        assert len(query("SELECT * FROM sales")) == 1

    def test_deleting_billing_mirror_deletes_billing_project(self, client, admin_headers, query):
        project = client.post("/api/project-tracker-data", json={
            "project_name": "Site", "client_name": "Acme", "cost": 500, "date": "2024-06-01"
        }, headers=admin_headers).get_json()
        tx = query("SELECT * FROM transactions WHERE source='project_tracker'", one=True)
        client.delete(f"/api/transactions/{tx['id']}", headers=admin_headers)
        assert query("SELECT * FROM billing_projects WHERE id=?", (project["id"],)) == []

    @pytest.mark.parametrize("source", ["affiliatehq", "project_tracker"])
    def test_synced_sources_cannot_be_posted(self, client, admin_headers, user_headers, project, query, source):
        sale = client.post("/api/sales", json={
            "project_id": project["id"], "platform": "ClickBank", "amount": 100, "sale_date": "2024-03-01"
        }, headers=admin_headers).get_json()
        resp = client.post("/api/transactions", json={
            "description": "x", "amount": 1, "type": "income", "date": "2024-03-01",
            "source": source, "external_id": sale["id"],
        }, headers=user_headers)
        assert resp.status_code == 400
        assert len(query("SELECT * FROM sales")) == 1

    def test_synced_type_cannot_change(self, client, admin_headers, project, query):
        sale = client.post("/api/sales", json={
            "project_id": project["id"], "platform": "ClickBank", "amount": 100, "sale_date": "2024-03-01"
        }, headers=admin_headers).get_json()
        expense = client.post("/api/expenses", json={
            "project_id": project["id"], "category": "Ads", "amount": 40, "expense_date": "2024-03-02"
        }, headers=admin_headers).get_json()
        assert sale["id"] == expense["id"]

        resp = client.put(f"/api/transactions/{sale['external_id']}", json={"type": "expense"}, headers=admin_headers)
        assert resp.status_code == 400

        client.delete(f"/api/transactions/{sale['external_id']}", headers=admin_headers)
        assert query("SELECT id FROM sales") == []
        assert query("SELECT id FROM expenses") == [{"id": expense["id"]}]

    def test_manual_link_to_hidden_sale_is_not_pushed(self, client, admin_headers, user_headers, project, query):
        sale = client.post("/api/sales", json={
            "project_id": project["id"], "platform": "ClickBank", "amount": 100, "sale_date": "2024-03-01"
        }, headers=admin_headers).get_json()
        assert client.get(f"/api/projects/{project['id']}", headers=user_headers).status_code == 404

        tx = add_tx(client, user_headers, type="income", external_id=sale["id"])
        resp = client.put(f"/api/transactions/{tx['id']}", json={"amount": 0.01}, headers=user_headers)
        assert resp.status_code == 200
        assert query("SELECT amount FROM sales WHERE id=?", (sale["id"],), one=True)["amount"] == 100.0

    def test_finance_access_required(self, client, admin_headers, user_headers, query):
        user_id = query("SELECT id FROM users WHERE email='user@example.com'", one=True)["id"]
        client.put(f"/api/users/{user_id}", json={"app_permissions": {"financial_tracker": False}},
                   headers=admin_headers)
        assert client.get("/api/transactions", headers=user_headers).status_code == 403


class TestRecurring:
    def _recurring(self, query, frequency="monthly", next_date="2024-01-31", active=1):
        return query(
            """INSERT INTO recurring_transactions (description, amount, type, frequency, start_date, next_date, is_active)
               VALUES ('Rent', 900, 'expense', ?, ?, ?, ?)""",
            (frequency, next_date, next_date, active), write=True
        )

    def test_process_catches_up_and_clamps(self, app, query):
        rec_id = self._recurring(query)
        with app.app_context():
            created = process_due_recurring(today=date(2024, 4, 15))

        assert len(created) == 3
        dates = [r["date"] for r in query("SELECT date FROM transactions ORDER BY date")]
        assert dates == ["2024-01-31", "2024-02-29", "2024-03-29"]
        rec = query("SELECT * FROM recurring_transactions WHERE id=?", (rec_id,), one=True)
        assert rec["next_date"] == "2024-04-29"
        assert {r["source"] for r in query("SELECT source FROM transactions")} == {"recurring"}

    def test_inactive_and_future_are_skipped(self, app, query):
        self._recurring(query, active=0)
        self._recurring(query, next_date="2030-01-01")
        with app.app_context():
            assert process_due_recurring(today=date(2024, 4, 15)) == []

    def test_process_endpoint(self, client, admin_headers):
        resp = client.post("/api/recurring", json={
            "description": "Gym", "amount": 30, "type": "expense", "frequency": "weekly",
            "start_date": date.today().isoformat(),
        }, headers=admin_headers)
        assert resp.status_code == 201
        assert resp.get_json()["is_active"] is True

        body = client.post("/api/recurring/process", headers=admin_headers).get_json()
        assert body["processed"] == 1
        assert len(body["transaction_ids"]) == 1

    def test_start_date_change_resets_next_date(self, client, admin_headers):
        rec = client.post("/api/recurring", json={
            "description": "Gym", "amount": 30, "type": "expense", "frequency": "weekly", "start_date": "2024-01-01",
        }, headers=admin_headers).get_json()
        resp = client.put(f"/api/recurring/{rec['id']}", json={"start_date": "2024-05-05"}, headers=admin_headers)
        assert resp.get_json()["next_date"] == "2024-05-05"

    def test_bad_frequency_rejected(self, client, admin_headers):
        resp = client.post("/api/recurring", json={
            "description": "Gym", "amount": 30, "type": "expense", "frequency": "hourly", "start_date": "2024-01-01",
        }, headers=admin_headers)
        assert resp.status_code == 400


class TestCategoriesAndBudgets:
    def test_duplicate_category_rejected(self, client, admin_headers):
        payload = {"name": "Food", "type": "expense"}
        assert client.post("/api/categories", json=payload, headers=admin_headers).status_code == 201
        assert client.post("/api/categories", json=payload, headers=admin_headers).status_code == 400

    def test_budget_spent_is_current_month(self, client, admin_headers):
        category = client.post("/api/categories", json={"name": "Food", "type": "expense"},
                               headers=admin_headers).get_json()
        add_tx(client, admin_headers, amount=20, category_id=category["id"], date=date.today().isoformat())
        add_tx(client, admin_headers, amount=500, category_id=category["id"], date="2001-01-01")
        client.post("/api/budgets", json={"category_id": category["id"], "amount": 300}, headers=admin_headers)

        budgets = client.get("/api/budgets", headers=admin_headers).get_json()
        assert budgets[0]["spent"] == pytest.approx(20)
        assert budgets[0]["category_name"] == "Food"


class TestReportsAndSearch:
    def test_summary(self, client, admin_headers):
        add_tx(client, admin_headers, type="income", amount=1000)
        add_tx(client, admin_headers, amount=250)
        body = client.get("/api/reports", query_string={"type": "summary"}, headers=admin_headers).get_json()
        assert body == {"total_income": 1000.0, "total_expense": 250.0, "balance": 750.0}

    def test_by_category_sorted(self, client, admin_headers):
        food = client.post("/api/categories", json={"name": "Food", "type": "expense"}, headers=admin_headers).get_json()
        fun = client.post("/api/categories", json={"name": "Fun", "type": "expense"}, headers=admin_headers).get_json()
        add_tx(client, admin_headers, amount=10, category_id=food["id"])
        add_tx(client, admin_headers, amount=90, category_id=fun["id"])
        body = client.get("/api/reports", query_string={"type": "by-category"}, headers=admin_headers).get_json()
        assert [c["name"] for c in body] == ["Fun", "Food"]

    def test_monthly_trends(self, client, admin_headers):
        today = date.today()
        add_tx(client, admin_headers, type="income", amount=100, date=today.isoformat())
        add_tx(client, admin_headers, amount=40, date=today.isoformat())
        body = client.get("/api/reports", query_string={"type": "monthly-trends"}, headers=admin_headers).get_json()
        assert body == [{"month": today.strftime("%Y-%m"), "income": 100.0, "expense": 40.0}]

    def test_invalid_report_type(self, client, admin_headers):
        assert client.get("/api/reports", query_string={"type": "pie"}, headers=admin_headers).status_code == 400

    def test_search_needs_two_chars(self, client, admin_headers):
        body = client.get("/api/search", query_string={"q": "c"}, headers=admin_headers).get_json()
        assert body == {"transactions": [], "sales": [], "expenses": []}

    def test_search_across_apps(self, client, admin_headers, project):
        add_tx(client, admin_headers, description="Keto supplements")
        client.post("/api/expenses", json={
            "project_id": project["id"], "category": "Tools", "amount": 5, "expense_date": "2024-01-01"
        }, headers=admin_headers)
        body = client.get("/api/search", query_string={"q": "KETO"}, headers=admin_headers).get_json()

        descriptions = {t["description"] for t in body["transactions"]}
        assert "Keto supplements" in descriptions
        # the expense mirror carries the project name
        assert "Tools - Keto Funnel" in descriptions
        assert body["sales"] == []
