# bizhub_ui/streamlit_app.py

from datetime import date, timedelta

import pandas as pd
import plotly.express as px
import streamlit as st

from bizhub_ui.api_client import api_request, error_message, get_json, safe_json

# ---------------- Page config ----------------
st.set_page_config(page_title="BizHub Dashboard", layout="wide", page_icon="📊")


# ---------------- Session ----------------
def init_session_state():
    for key, default in (("token", None), ("user", None), ("project_id", None)):
        if key not in st.session_state:
            st.session_state[key] = default


def token():
    return st.session_state.token


def handle_auth(email, password, name=None, is_register=False):
    if is_register:
        r = api_request("POST", "/auth/register", json={"email": email, "password": password, "name": name})
    else:
        r = api_request("POST", "/auth/login", json={"email": email, "password": password})
    if r is not None and r.status_code in (200, 201):
        body = safe_json(r) or {}
        st.session_state.token = body.get("access_token")
        st.session_state.user = get_json("/auth/me", st.session_state.token)
        st.success("✅ Welcome!")
        st.rerun()
    else:
        st.error(f"❌ {error_message(r, 'Authentication failed')}")


def can_use(app_name):
    user = st.session_state.user or {}
    return user.get("role") == "admin" or user.get("app_permissions", {}).get(app_name, False)


def show_result(r, success_msg):
    if r is not None and r.status_code in (200, 201):
        st.success(success_msg)
        st.rerun()
    else:
        st.error(f"❌ {error_message(r)}")


# ---------------- Sidebar ----------------
def render_sidebar():
    with st.sidebar:
        st.title("🔐 Account")
        if token():
            user = st.session_state.user or {}
            st.success(f"Logged in as **{user.get('email', '')}**")
            if st.button("🚪 Logout", use_container_width=True):
                st.session_state.token = None
                st.session_state.user = None
                st.session_state.project_id = None
                st.rerun()
            return

        action = st.radio("Action", ["Login", "Register"], horizontal=True)
        email = st.text_input("📧 Email")
        name = st.text_input("👤 Name") if action == "Register" else None
        password = st.text_input("🔒 Password", type="password")
        if st.button("Submit", use_container_width=True):
            if email and password:
                handle_auth(email, password, name, action == "Register")
            else:
                st.warning("Please enter both email and password")


# ---------------- Affiliate HQ ----------------
def select_project():
    projects = get_json("/api/projects", token(), default=[])
    with st.expander("➕ New project", expanded=not projects):
        with st.form("new_project", clear_on_submit=True):
            p_name = st.text_input("Project name")
            p_desc = st.text_input("Description")
            if st.form_submit_button("Create project") and p_name:
                show_result(
                    api_request("POST", "/api/projects", token=token(), json={"name": p_name, "description": p_desc}),
                    "✅ Project created"
                )
    if not projects:
        return None
    names = {p["id"]: p["name"] for p in projects}
    return st.selectbox("Project", list(names), format_func=names.get)


def render_affiliate_dashboard(project_id):
    col1, col2 = st.columns(2)
    start = col1.date_input("From", value=date.today().replace(day=1))
    end = col2.date_input("To", value=date.today())
    stats = get_json("/api/dashboard", token(), params={
        "project_id": project_id, "start_date": start.isoformat(), "end_date": end.isoformat()
    })
    if not stats:
        st.info("No dashboard data")
        return

    period, previous = stats["period"], stats["previous"]
    m1, m2, m3, m4 = st.columns(4)
    m1.metric("💵 Revenue", f"${period['revenue']:,.2f}", f"{period['revenue'] - previous['revenue']:,.2f}")
    m2.metric("🛒 Sales", period["sales"], period["sales"] - previous["sales"])
    m3.metric("💸 Expenses", f"${period['expenses']:,.2f}")
    m4.metric("📈 Profit", f"${period['profit']:,.2f}")

    goal = stats.get("goal")
    if goal and goal.get("target_revenue"):
        progress = min(1.0, stats["month"]["revenue"] / goal["target_revenue"])
        st.progress(progress, text=f"Monthly goal: ${stats['month']['revenue']:,.0f} / ${goal['target_revenue']:,.0f}")

    c1, c2 = st.columns(2)
    if stats["daily_revenue"]:
        daily = pd.DataFrame(stats["daily_revenue"])
        c1.plotly_chart(px.bar(daily, x="date", y="revenue", title="Last 7 days"), use_container_width=True)
    if stats["top_platforms"]:
        top = pd.DataFrame(stats["top_platforms"])
        c2.plotly_chart(px.pie(top, names="platform", values="revenue", title="Top platforms"), use_container_width=True)


def render_sales(project_id):
    with st.form("add_sale", clear_on_submit=True):
        col_a, col_b, col_c = st.columns(3)
        platform = col_a.text_input("Platform")
        amount = col_b.number_input("Amount", min_value=0.0, format="%.2f")
        sale_date = col_c.date_input("Date", value=date.today())
        count = st.number_input("Sales count", min_value=1, value=1)
        if st.form_submit_button("💾 Add sale") and platform:
            show_result(api_request("POST", "/api/sales", token=token(), json={
                "project_id": project_id, "platform": platform, "amount": amount,
                "sale_date": sale_date.isoformat(), "sales_count": int(count),
            }), "✅ Sale added and mirrored to the Financial Tracker")

    sales = get_json("/api/sales", token(), params={"project_id": project_id}, default=[])
    if sales:
        st.dataframe(pd.DataFrame(sales)[["id", "sale_date", "platform", "amount", "sales_count", "external_id"]],
                     use_container_width=True)
        sale_id = st.selectbox("Delete sale", [s["id"] for s in sales], key="del_sale")
        if st.button("🗑️ Delete sale"):
            show_result(api_request("DELETE", f"/api/sales/{sale_id}", token=token()), "Sale deleted")


def render_expenses(project_id):
    with st.form("add_expense", clear_on_submit=True):
        col_a, col_b, col_c = st.columns(3)
        category = col_a.text_input("Category")
        amount = col_b.number_input("Amount", min_value=0.0, format="%.2f")
        expense_date = col_c.date_input("Date", value=date.today())
        description = st.text_input("Description")
        col_d, col_e = st.columns(2)
        expense_type = col_d.selectbox("Type", ["one-time", "recurring"])
        frequency = col_e.selectbox("Frequency", ["monthly", "weekly", "biweekly", "daily", "yearly"])
        if st.form_submit_button("💾 Add expense") and category:
            show_result(api_request("POST", "/api/expenses", token=token(), json={
                "project_id": project_id, "category": category, "amount": amount,
                "expense_date": expense_date.isoformat(), "description": description,
                "expense_type": expense_type,
                "frequency": frequency if expense_type == "recurring" else None,
            }), "✅ Expense added")

    expenses = get_json("/api/expenses", token(), params={"project_id": project_id}, default=[])
    if expenses:
        st.dataframe(pd.DataFrame(expenses)[
            ["id", "expense_date", "category", "description", "amount", "expense_type", "frequency"]
        ], use_container_width=True)
        col1, col2 = st.columns(2)
        expense_id = col1.selectbox("Expense", [e["id"] for e in expenses], key="sel_expense")
        if col1.button("🔁 Toggle one-time / recurring"):
            current = next(e for e in expenses if e["id"] == expense_id)
            new_type = "one-time" if current["expense_type"] == "recurring" else "recurring"
            show_result(api_request("PUT", f"/api/expenses/{expense_id}", token=token(),
                                    json={"expense_type": new_type}), f"Expense is now {new_type}")
        if col2.button("🗑️ Delete expense"):
            show_result(api_request("DELETE", f"/api/expenses/{expense_id}", token=token()), "Expense deleted")


def render_affiliate():
    st.header("🚀 Affiliate HQ")
    project_id = select_project()
    if not project_id:
        st.info("Create a project to get started")
        return
    tab1, tab2, tab3 = st.tabs(["📊 Dashboard", "🛒 Sales", "💸 Expenses"])
    with tab1:
        render_affiliate_dashboard(project_id)
    with tab2:
        render_sales(project_id)
    with tab3:
        render_expenses(project_id)


# ---------------- Financial Tracker ----------------
def render_finance():
    st.header("💰 Financial Tracker")
    summary = get_json("/api/reports", token(), params={"type": "summary"}, default={})
    col1, col2, col3 = st.columns(3)
    col1.metric("💵 Income", f"${summary.get('total_income', 0):,.2f}")
    col2.metric("💸 Expenses", f"${summary.get('total_expense', 0):,.2f}")
    col3.metric("⚖️ Balance", f"${summary.get('balance', 0):,.2f}")

    tab1, tab2, tab3 = st.tabs(["💳 Transactions", "🔁 Recurring", "📈 Reports"])
    with tab1:
        categories = get_json("/api/categories", token(), default=[])
        with st.form("add_tx", clear_on_submit=True):
            col_a, col_b, col_c = st.columns(3)
            description = col_a.text_input("Description")
            amount = col_b.number_input("Amount", min_value=0.0, format="%.2f")
            tx_type = col_c.selectbox("Type", ["expense", "income"])
            tx_date = st.date_input("Date", value=date.today())
            cat_names = {c["id"]: c["name"] for c in categories if c["type"] == tx_type}
            category_id = st.selectbox("Category", [None] + list(cat_names),
                                       format_func=lambda c: cat_names.get(c, "Uncategorized"))
            if st.form_submit_button("💾 Add transaction") and description:
                show_result(api_request("POST", "/api/transactions", token=token(), json={
                    "description": description, "amount": amount, "type": tx_type,
                    "date": tx_date.isoformat(), "category_id": category_id,
                }), "✅ Transaction added")

        txs = get_json("/api/transactions", token(), default=[])
        if txs:
            df = pd.DataFrame(txs)
            st.dataframe(df[["id", "date", "description", "amount", "type", "category_name", "source"]],
                         use_container_width=True)

    with tab2:
        if st.button("⚙️ Process due recurring transactions"):
            r = api_request("POST", "/api/recurring/process", token=token())
            body = safe_json(r) if r is not None else None
            if body and "processed" in body:
                st.success(f"Created {body['processed']} transactions")
            else:
                st.error(f"❌ {error_message(r)}")
        recurring = get_json("/api/recurring", token(), default=[])
        if recurring:
            st.dataframe(pd.DataFrame(recurring)[
                ["id", "description", "amount", "type", "frequency", "next_date", "is_active", "source"]
            ], use_container_width=True)
        else:
            st.info("No recurring transactions")

    with tab3:
        trends = get_json("/api/reports", token(), params={"type": "monthly-trends"}, default=[])
        if trends:
            monthly = pd.DataFrame(trends)
            fig = px.line(monthly, x="month", y=["income", "expense"], markers=True, title="Monthly trends")
            st.plotly_chart(fig, use_container_width=True)
        by_cat = get_json("/api/reports", token(), params={"type": "by-category"}, default=[])
        cat_df = pd.DataFrame(by_cat)
        if not cat_df.empty and cat_df["total"].sum() > 0:
            fig = px.bar(cat_df, x="total", y="name", orientation="h", title="Spending by category")
            st.plotly_chart(fig, use_container_width=True)


# ---------------- Project Tracker ----------------
def render_project_tracker():
    st.header("🧾 Project Tracker")
    month = st.text_input("Month (YYYY-MM)", value=date.today().strftime("%Y-%m"))
    stats = get_json("/api/project-tracker-data/stats", token(), params={"month": month}, default={})
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Projects", stats.get("total_projects", 0))
    col2.metric("Paid", f"${stats.get('total_paid', 0):,.2f}")
    col3.metric("Unpaid", f"${stats.get('total_unpaid', 0):,.2f}")
    col4.metric("Revenue", f"${stats.get('total_revenue', 0):,.2f}")

    with st.form("add_billing", clear_on_submit=True):
        col_a, col_b = st.columns(2)
        project_name = col_a.text_input("Project")
        client_name = col_b.text_input("Client")
        col_c, col_d, col_e = st.columns(3)
        cost = col_c.number_input("Cost", min_value=0.0, format="%.2f")
        status = col_d.selectbox("Status", ["unpaid", "paid", "partial"])
        p_date = col_e.date_input("Date", value=date.today())
        if st.form_submit_button("💾 Add project") and project_name:
            show_result(api_request("POST", "/api/project-tracker-data", token=token(), json={
                "project_name": project_name, "client_name": client_name, "cost": cost,
                "status": status, "date": p_date.isoformat(), "month": p_date.strftime("%Y-%m"),
            }), "✅ Project added")

    projects = get_json("/api/project-tracker-data", token(), default=[])
    month_projects = [p for p in projects if p["month"] == month]
    if month_projects:
        st.dataframe(pd.DataFrame(month_projects)[["id", "date", "project_name", "client_name", "cost", "status"]],
                     use_container_width=True)


# ---------------- Todos ----------------
def render_todos():
    st.header("✅ Todo Board")
    data = get_json("/api/todo-data", token(), default={"projects": [], "categories": [], "todos": []})
    stats = get_json("/api/todo-data/stats", token(), default={})
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Total", stats.get("total", 0))
    col2.metric("Pending", stats.get("pending", 0))
    col3.metric("Done today", stats.get("completed_today", 0))
    col4.metric("Overdue", stats.get("overdue", 0))

    with st.form("add_todo", clear_on_submit=True):
        title = st.text_input("Title")
        col_a, col_b = st.columns(2)
        priority = col_a.selectbox("Priority", ["medium", "high", "low"])
        due = col_b.date_input("Due", value=date.today() + timedelta(days=1))
        if st.form_submit_button("➕ Add") and title:
            now = pd.Timestamp.utcnow().isoformat()
            next_id = max((t.get("id", 0) for t in data["todos"] if isinstance(t.get("id"), int)), default=0) + 1
            data["todos"].append({
                "id": next_id, "title": title, "description": None, "completed": False,
                "priority": priority, "due_date": due.isoformat(), "project_id": None,
                "category_id": None, "created_at": now, "updated_at": now,
            })
            show_result(api_request("POST", "/api/todo-data", token=token(), json=data), "✅ Todo added")

    for todo in data["todos"]:
        checked = st.checkbox(todo["title"], value=todo.get("completed", False), key=f"todo_{todo['id']}")
        if checked != todo.get("completed", False):
            todo["completed"] = checked
            todo["updated_at"] = pd.Timestamp.utcnow().isoformat()
            show_result(api_request("POST", "/api/todo-data", token=token(), json=data), "Saved")


# ---------------- Admin ----------------
def render_admin():
    st.header("🛡️ Users")
    users = get_json("/api/users", token(), default=[])
    if users:
        rows = [{**{k: u[k] for k in ("id", "email", "name", "role")},
                 "apps": ", ".join(a for a, ok in u["app_permissions"].items() if ok)} for u in users]
        st.dataframe(pd.DataFrame(rows), use_container_width=True)


# ---------------- Main ----------------
def main():
    init_session_state()
    render_sidebar()
    if not token():
        st.title("📊 BizHub Dashboard")
        st.info("🔐 Please login to continue")
        return

    pages = {}
    if can_use("affiliate_hq"):
        pages["🚀 Affiliate HQ"] = render_affiliate
    if can_use("financial_tracker"):
        pages["💰 Financial Tracker"] = render_finance
    if can_use("project_tracker"):
        pages["🧾 Project Tracker"] = render_project_tracker
    if can_use("todo_dashboard"):
        pages["✅ Todos"] = render_todos
    if (st.session_state.user or {}).get("role") == "admin":
        pages["🛡️ Admin"] = render_admin
    if not pages:
        st.warning("No apps are enabled for your account. Ask an admin for access.")
        return

    choice = st.sidebar.radio("App", list(pages))
    pages[choice]()


main()
