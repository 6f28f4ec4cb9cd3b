# bizhub/affiliate.py
# Affiliate HQ: projects, platforms, daily sales, expenses, traffic, goals, dashboard
import logging
import sqlite3
from datetime import date

from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required

from . import db, sync
from .auth import app_access_required, get_current_user, get_user_project_ids, has_project_access, is_admin
from .models import Sale, Expense
from .stats import dashboard
from .utils import (
    FREQUENCIES, ValidationError, parse_amount, parse_date, parse_int,
    require_date, require_fields, month_bounds, row_to_dict,
)

logger = logging.getLogger("bizhub.affiliate")

affiliate_bp = Blueprint('affiliate', __name__, url_prefix='/api')

AFFILIATE_APP = 'affiliate_hq'
EXPENSE_TYPES = ('one-time', 'recurring')
PLATFORM_TYPES = ('sales', 'traffic')


# ---------------- Helpers ----------------
def not_found(what):
    return jsonify({"error": f"{what} not found"}), 404


def accessible_project(project_id):
    """projects row when the caller may see it, else None"""
    project_id = parse_int(project_id, field='project_id')
    if project_id is None or not has_project_access(get_current_user(), project_id):
        return None
    return db.query_db("SELECT * FROM projects WHERE id=?", (project_id,), one=True)


def accessible_record(table, record_id):
    """Row of a project-scoped table when its project is visible to the caller"""
    row = db.query_db(f"SELECT * FROM {table} WHERE id=?", (record_id,), one=True)
    if not row or not has_project_access(get_current_user(), row['project_id']):
        return None
    return row


def project_name(project_id):
    row = db.query_db("SELECT name FROM projects WHERE id=?", (project_id,), one=True)
    return row['name'] if row else None


def scope_filters(args, date_column):
    """WHERE clause + params for ?project_id&start_date&end_date on a project-scoped table.

    Returns None when the requested project is not visible to the caller.
    """
    clauses, params = [], []
    if args.get('project_id'):
        project = accessible_project(args.get('project_id'))
        if not project:
            return None
        clauses.append("project_id = ?")
        params.append(project['id'])
    else:
        ids = get_user_project_ids(get_current_user())
        if not ids:
            clauses.append("0")
        else:
            clauses.append(f"project_id IN ({','.join('?' * len(ids))})")
            params.extend(ids)

    start = parse_date(args.get('start_date'))
    end = parse_date(args.get('end_date'))
    if start:
        clauses.append(f"{date_column} >= ?")
        params.append(start.isoformat())
    if end:
        clauses.append(f"{date_column} <= ?")
        params.append(end.isoformat())
    return " AND ".join(clauses), params


def apply_update(table, record_id, values, touch=False):
    if not values:
        return
    assignments = ", ".join(f"{col} = ?" for col in values)
    if touch:
        assignments += ", updated_at = CURRENT_TIMESTAMP"
    db.execute_db(
        f"UPDATE {table} SET {assignments} WHERE id = ?",
        (*values.values(), record_id)
    )


def delete_project_mirrors(project_id):
    """Drop the finance-side mirrors of every sale and expense in a project"""
    for row in db.query_db("SELECT external_id FROM sales WHERE project_id=? AND external_id IS NOT NULL", (project_id,)):
        sync.delete_synced_transaction(row['external_id'])
    for row in db.query_db("SELECT * FROM expenses WHERE project_id=? AND external_id IS NOT NULL", (project_id,)):
        sync.delete_expense_mirror(Expense.from_row(row))


def validate_expense_kind(expense_type, frequency):
    if expense_type not in EXPENSE_TYPES:
        raise ValidationError("expense_type must be one-time or recurring")
    if expense_type == 'one-time':
        return None
    frequency = frequency or 'monthly'
    if frequency not in FREQUENCIES:
        raise ValidationError(f"frequency must be one of {', '.join(FREQUENCIES)}")
    return frequency


# ---------------- Projects ----------------
@affiliate_bp.route('/projects', methods=['GET'])
@jwt_required()
@app_access_required(AFFILIATE_APP)
def list_projects():
    try:
        ids = get_user_project_ids(get_current_user())
        if not ids:
            return jsonify([])
        rows = db.query_db(
            f"""SELECT p.*, u.name AS owner_name FROM projects p
                LEFT JOIN users u ON u.id = p.owner_id
                WHERE p.id IN ({','.join('?' * len(ids))})
                ORDER BY p.created_at DESC, p.id DESC""",
            ids
        )
        return jsonify([row_to_dict(r) for r in rows])
    except Exception as e:
        logger.error(f"Error fetching projects: {e}")
        return jsonify({"error": "Failed to fetch projects"}), 500


@affiliate_bp.route('/projects', methods=['POST'])
@jwt_required()
@app_access_required(AFFILIATE_APP)
def create_project():
    data = request.get_json(force=True, silent=True) or {}
    require_fields(data, ['name'])
    try:
        project_id = db.execute_db(
            "INSERT INTO projects (name, description, owner_id) VALUES (?, ?, ?)",
            (data['name'].strip(), data.get('description'), get_current_user()['id'])
        )
        logger.info(f"Project {project_id} created")
        return jsonify(row_to_dict(db.query_db("SELECT * FROM projects WHERE id=?", (project_id,), one=True))), 201
    except Exception as e:
        logger.error(f"Error creating project: {e}")
        return jsonify({"error": "Failed to create project"}), 500


@affiliate_bp.route('/projects/<int:project_id>', methods=['GET'])
@jwt_required()
@app_access_required(AFFILIATE_APP)
def get_project(project_id):
    project = accessible_project(project_id)
    if not project:
        return not_found("Project")
    return jsonify(row_to_dict(project))


def owned_project(project_id):
    """(project, error_response) for routes reserved to the owner or an admin"""
    project = accessible_project(project_id)
    if not project:
        return None, not_found("Project")
    user = get_current_user()
    if project['owner_id'] != user['id'] and not is_admin(user):
        return None, (jsonify({"error": "Only the owner can modify this project"}), 403)
    return project, None


@affiliate_bp.route('/projects/<int:project_id>', methods=['PUT'])
@jwt_required()
@app_access_required(AFFILIATE_APP)
def update_project(project_id):
    project, error = owned_project(project_id)
    if error:
        return error
    data = request.get_json(force=True, silent=True) or {}
    values = {}
    if data.get('name'):
        values['name'] = data['name'].strip()
    if 'description' in data:
        values['description'] = data['description']
    try:
        apply_update('projects', project_id, values)
        return jsonify(row_to_dict(db.query_db("SELECT * FROM projects WHERE id=?", (project_id,), one=True)))
    except Exception as e:
        logger.error(f"Error updating project {project_id}: {e}")
        return jsonify({"error": "Failed to update project"}), 500


@affiliate_bp.route('/projects/<int:project_id>', methods=['DELETE'])
@jwt_required()
@app_access_required(AFFILIATE_APP)
def delete_project(project_id):
    project, error = owned_project(project_id)
    if error:
        return error
    try:
        with db.transaction():
            delete_project_mirrors(project_id)
            # child rows go with the project through ON DELETE CASCADE
            db.execute_db("DELETE FROM projects WHERE id=?", (project_id,))
        logger.info(f"Project {project_id} deleted")
        return jsonify({"success": True})
    except Exception as e:
        logger.error(f"Error deleting project {project_id}: {e}")
        return jsonify({"error": "Failed to delete project"}), 500


# ---------------- Platforms ----------------
@affiliate_bp.route('/platforms', methods=['GET'])
@jwt_required()
@app_access_required(AFFILIATE_APP)
def list_platforms():
    project = accessible_project(request.args.get('project_id'))
    if not project:
        return not_found("Project")
    query = "SELECT * FROM platforms WHERE project_id=?"
    params = [project['id']]
    if request.args.get('type'):
        query += " AND type=?"
        params.append(request.args['type'])
    rows = db.query_db(query + " ORDER BY name", params)
    return jsonify([row_to_dict(r) for r in rows])


@affiliate_bp.route('/platforms', methods=['POST'])
@jwt_required()
@app_access_required(AFFILIATE_APP)
def create_platform():
    data = request.get_json(force=True, silent=True) or {}
    require_fields(data, ['project_id', 'name'])
    platform_type = data.get('platform_type') or 'sales'
    if platform_type not in PLATFORM_TYPES:
        raise ValidationError("platform_type must be sales or traffic")
    project = accessible_project(data['project_id'])
    if not project:
        return not_found("Project")
    try:
        platform_id = db.execute_db(
            "INSERT INTO platforms (project_id, name, type) VALUES (?, ?, ?)",
            (project['id'], data['name'].strip(), platform_type)
        )
    except sqlite3.IntegrityError:
        return jsonify({"error": "Platform already exists"}), 400
    except Exception as e:
        logger.error(f"Error creating platform: {e}")
        return jsonify({"error": "Failed to create platform"}), 500
    return jsonify(row_to_dict(db.query_db("SELECT * FROM platforms WHERE id=?", (platform_id,), one=True))), 201


@affiliate_bp.route('/platforms/<int:platform_id>', methods=['PUT'])
@jwt_required()
@app_access_required(AFFILIATE_APP)
def update_platform(platform_id):
    if not accessible_record('platforms', platform_id):
        return not_found("Platform")
    data = request.get_json(force=True, silent=True) or {}
    values = {}
    if data.get('name'):
        values['name'] = data['name'].strip()
    if data.get('platform_type'):
        if data['platform_type'] not in PLATFORM_TYPES:
            raise ValidationError("platform_type must be sales or traffic")
        values['type'] = data['platform_type']
    try:
        apply_update('platforms', platform_id, values)
    except sqlite3.IntegrityError:
        return jsonify({"error": "Platform already exists"}), 400
    return jsonify(row_to_dict(db.query_db("SELECT * FROM platforms WHERE id=?", (platform_id,), one=True)))


@affiliate_bp.route('/platforms/<int:platform_id>', methods=['DELETE'])
@jwt_required()
@app_access_required(AFFILIATE_APP)
def delete_platform(platform_id):
    if not accessible_record('platforms', platform_id):
        return not_found("Platform")
    db.execute_db("DELETE FROM platforms WHERE id=?", (platform_id,))
    return jsonify({"success": True})


# ---------------- Sales ----------------
@affiliate_bp.route('/sales', methods=['GET'])
@jwt_required()
@app_access_required(AFFILIATE_APP)
def list_sales():
    scope = scope_filters(request.args, 'sale_date')
    if scope is None:
        return not_found("Project")
    where, params = scope
    try:
        rows = db.query_db(f"SELECT * FROM sales WHERE {where} ORDER BY sale_date DESC, id DESC", params)
        return jsonify([row_to_dict(r) for r in rows])
    except Exception as e:
        logger.error(f"Error fetching sales: {e}")
        return jsonify({"error": "Failed to fetch sales"}), 500


@affiliate_bp.route('/sales', methods=['POST'])
@jwt_required()
@app_access_required(AFFILIATE_APP)
def create_sale():
    data = request.get_json(force=True, silent=True) or {}
    require_fields(data, ['project_id', 'platform', 'amount', 'sale_date'])
    amount = parse_amount(data['amount'])
    sale_date = require_date(data, 'sale_date')
    sales_count = parse_int(data.get('sales_count'), default=1, field='sales_count')

    project = accessible_project(data['project_id'])
    if not project:
        return not_found("Project")

    try:
        with db.transaction():
            sale_id = db.execute_db(
                "INSERT INTO sales (project_id, platform, amount, sales_count, sale_date) VALUES (?, ?, ?, ?, ?)",
                (project['id'], data['platform'].strip(), amount, sales_count, sale_date.isoformat())
            )
            sale = Sale.from_row(db.query_db("SELECT * FROM sales WHERE id=?", (sale_id,), one=True))
            sync.sync_sale_to_transaction(sale, project['name'])
        logger.info(f"Sale {sale.id} created for project {project['id']}")
        return jsonify(sale.to_dict()), 201
    except Exception as e:
        logger.error(f"Error creating sale: {e}")
        return jsonify({"error": "Failed to create sale"}), 500


@affiliate_bp.route('/sales/<int:sale_id>', methods=['PUT'])
@jwt_required()
@app_access_required(AFFILIATE_APP)
def update_sale(sale_id):
    if not accessible_record('sales', sale_id):
        return not_found("Sale")
    data = request.get_json(force=True, silent=True) or {}
    values = {}
    if data.get('platform'):
        values['platform'] = data['platform'].strip()
    if data.get('amount') is not None:
        values['amount'] = parse_amount(data['amount'])
    if data.get('sales_count') is not None:
        values['sales_count'] = parse_int(data['sales_count'], field='sales_count')
    if data.get('sale_date'):
        values['sale_date'] = require_date(data, 'sale_date').isoformat()

    try:
        with db.transaction():
            apply_update('sales', sale_id, values, touch=True)
            sale = Sale.from_row(db.query_db("SELECT * FROM sales WHERE id=?", (sale_id,), one=True))
            sync.sync_sale_to_transaction(sale, project_name(sale.project_id))
        return jsonify(sale.to_dict())
    except Exception as e:
        logger.error(f"Error updating sale {sale_id}: {e}")
        return jsonify({"error": "Failed to update sale"}), 500


@affiliate_bp.route('/sales/<int:sale_id>', methods=['DELETE'])
@jwt_required()
@app_access_required(AFFILIATE_APP)
def delete_sale(sale_id):
    row = accessible_record('sales', sale_id)
    if not row:
        return not_found("Sale")
    external_id = row['external_id']
    try:
        with db.transaction():
            db.execute_db("DELETE FROM sales WHERE id=?", (sale_id,))
            sync.delete_synced_transaction(external_id)
        return jsonify({"success": True})
    except Exception as e:
        logger.error(f"Error deleting sale {sale_id}: {e}")
        return jsonify({"error": "Failed to delete sale"}), 500


# ---------------- Expenses ----------------
@affiliate_bp.route('/expenses', methods=['GET'])
@jwt_required()
@app_access_required(AFFILIATE_APP)
def list_expenses():
    scope = scope_filters(request.args, 'expense_date')
    if scope is None:
        return not_found("Project")
    where, params = scope
    try:
        rows = db.query_db(f"SELECT * FROM expenses WHERE {where} ORDER BY expense_date DESC, id DESC", params)
        return jsonify([row_to_dict(r) for r in rows])
    except Exception as e:
        logger.error(f"Error fetching expenses: {e}")
        return jsonify({"error": "Failed to fetch expenses"}), 500


@affiliate_bp.route('/expenses', methods=['POST'])
@jwt_required()
@app_access_required(AFFILIATE_APP)
def create_expense():
    data = request.get_json(force=True, silent=True) or {}
    require_fields(data, ['project_id', 'category', 'amount', 'expense_date'])
    amount = parse_amount(data['amount'])
    expense_date = require_date(data, 'expense_date')
    expense_type = data.get('expense_type') or 'one-time'
    frequency = validate_expense_kind(expense_type, data.get('frequency'))

    project = accessible_project(data['project_id'])
    if not project:
        return not_found("Project")

    try:
        with db.transaction():
            expense_id = db.execute_db(
                """INSERT INTO expenses (project_id, category, description, amount, expense_type, frequency, expense_date)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (project['id'], data['category'].strip(), data.get('description'), amount,
                 expense_type, frequency, expense_date.isoformat())
            )
            expense = Expense.from_row(db.query_db("SELECT * FROM expenses WHERE id=?", (expense_id,), one=True))
            sync.sync_expense(expense, project['name'])
        logger.info(f"Expense {expense.id} ({expense_type}) created for project {project['id']}")
        return jsonify(expense.to_dict()), 201
    except Exception as e:
        logger.error(f"Error creating expense: {e}")
        return jsonify({"error": "Failed to create expense"}), 500


@affiliate_bp.route('/expenses/<int:expense_id>', methods=['PUT'])
@jwt_required()
@app_access_required(AFFILIATE_APP)
def update_expense(expense_id):
    row = accessible_record('expenses', expense_id)
    if not row:
        return not_found("Expense")
    old = Expense.from_row(row)
    data = request.get_json(force=True, silent=True) or {}

    values = {}
    if data.get('category'):
        values['category'] = data['category'].strip()
    if 'description' in data:
        values['description'] = data['description']
    if data.get('amount') is not None:
        values['amount'] = parse_amount(data['amount'])
    if data.get('expense_date'):
        values['expense_date'] = require_date(data, 'expense_date').isoformat()

    new_type = data.get('expense_type') or old.expense_type
    if new_type != old.expense_type or 'frequency' in data:
        values['expense_type'] = new_type
        values['frequency'] = validate_expense_kind(new_type, data.get('frequency') or old.frequency)

    try:
        with db.transaction():
            if new_type != old.expense_type:
                # the old mirror is the wrong kind now; a fresh one is made by the sync below
                sync.delete_expense_mirror(old)
                values['external_id'] = None
                logger.info(f"Expense {expense_id} switched {old.expense_type} -> {new_type}")
            apply_update('expenses', expense_id, values, touch=True)
            expense = Expense.from_row(db.query_db("SELECT * FROM expenses WHERE id=?", (expense_id,), one=True))
            sync.sync_expense(expense, project_name(expense.project_id))
        return jsonify(expense.to_dict())
    except Exception as e:
        logger.error(f"Error updating expense {expense_id}: {e}")
        return jsonify({"error": "Failed to update expense"}), 500


@affiliate_bp.route('/expenses/<int:expense_id>', methods=['DELETE'])
@jwt_required()
@app_access_required(AFFILIATE_APP)
def delete_expense(expense_id):
    row = accessible_record('expenses', expense_id)
    if not row:
        return not_found("Expense")
    expense = Expense.from_row(row)
    try:
        with db.transaction():
            db.execute_db("DELETE FROM expenses WHERE id=?", (expense_id,))
            sync.delete_expense_mirror(expense)
        return jsonify({"success": True})
    except Exception as e:
        logger.error(f"Error deleting expense {expense_id}: {e}")
        return jsonify({"error": "Failed to delete expense"}), 500


# ---------------- Traffic ----------------
@affiliate_bp.route('/traffic', methods=['GET'])
@jwt_required()
@app_access_required(AFFILIATE_APP)
def list_traffic():
    scope = scope_filters(request.args, 'traffic_date')
    if scope is None:
        return not_found("Project")
    where, params = scope
    rows = db.query_db(f"SELECT * FROM traffic WHERE {where} ORDER BY traffic_date DESC, id DESC", params)
    return jsonify([row_to_dict(r) for r in rows])


def traffic_values(data, partial=False):
    values = {}
    if data.get('source'):
        values['source'] = data['source'].strip()
    for field in ('clicks', 'optins'):
        if data.get(field) is not None or not partial:
            values[field] = parse_int(data.get(field), default=0, field=field)
    if data.get('cost') is not None:
        values['cost'] = parse_amount(data['cost'], field='cost')
    elif not partial:
        values['cost'] = 0.0
    if data.get('traffic_date'):
        values['traffic_date'] = require_date(data, 'traffic_date').isoformat()
    return values


@affiliate_bp.route('/traffic', methods=['POST'])
@jwt_required()
@app_access_required(AFFILIATE_APP)
def create_traffic():
    data = request.get_json(force=True, silent=True) or {}
    require_fields(data, ['project_id', 'source', 'traffic_date'])
    values = traffic_values(data)
    project = accessible_project(data['project_id'])
    if not project:
        return not_found("Project")
    try:
        traffic_id = db.execute_db(
            "INSERT INTO traffic (project_id, source, clicks, optins, cost, traffic_date) VALUES (?, ?, ?, ?, ?, ?)",
            (project['id'], values['source'], values['clicks'], values['optins'], values['cost'], values['traffic_date'])
        )
        return jsonify(row_to_dict(db.query_db("SELECT * FROM traffic WHERE id=?", (traffic_id,), one=True))), 201
    except Exception as e:
        logger.error(f"Error creating traffic entry: {e}")
        return jsonify({"error": "Failed to create traffic entry"}), 500


@affiliate_bp.route('/traffic/<int:traffic_id>', methods=['PUT'])
@jwt_required()
@app_access_required(AFFILIATE_APP)
def update_traffic(traffic_id):
    if not accessible_record('traffic', traffic_id):
        return not_found("Traffic entry")
    data = request.get_json(force=True, silent=True) or {}
    apply_update('traffic', traffic_id, traffic_values(data, partial=True))
    return jsonify(row_to_dict(db.query_db("SELECT * FROM traffic WHERE id=?", (traffic_id,), one=True)))


@affiliate_bp.route('/traffic/<int:traffic_id>', methods=['DELETE'])
@jwt_required()
@app_access_required(AFFILIATE_APP)
def delete_traffic(traffic_id):
    if not accessible_record('traffic', traffic_id):
        return not_found("Traffic entry")
    db.execute_db("DELETE FROM traffic WHERE id=?", (traffic_id,))
    return jsonify({"success": True})


# ---------------- Goals ----------------
def goal_with_progress(row, today=None):
    today = today or date.today()
    goal = row_to_dict(row)
    start, end = month_bounds(goal['year'], goal['month'])
    actual = db.query_db(
        "SELECT COALESCE(SUM(amount), 0) AS total FROM sales WHERE project_id=? AND sale_date BETWEEN ? AND ?",
        (goal['project_id'], start.isoformat(), end.isoformat()), one=True
    )['total']
    target = goal['target_revenue'] or 0
    goal['actual_revenue'] = float(actual)
    goal['progress'] = round(min(100.0, actual / target * 100), 2) if target > 0 else 0
    goal['is_current'] = goal['month'] == today.month and goal['year'] == today.year
    return goal


@affiliate_bp.route('/goals', methods=['GET'])
@jwt_required()
@app_access_required(AFFILIATE_APP)
def list_goals():
    project = accessible_project(request.args.get('project_id'))
    if not project:
        return not_found("Project")
    rows = db.query_db(
        "SELECT * FROM goals WHERE project_id=? ORDER BY year DESC, month DESC", (project['id'],)
    )
    return jsonify([goal_with_progress(r) for r in rows])


@affiliate_bp.route('/goals', methods=['POST'])
@jwt_required()
@app_access_required(AFFILIATE_APP)
def upsert_goal():
    data = request.get_json(force=True, silent=True) or {}
    require_fields(data, ['project_id', 'month', 'year', 'target_revenue'])
    month = parse_int(data['month'], field='month')
    year = parse_int(data['year'], field='year')
    if not 1 <= month <= 12:
        raise ValidationError("month must be between 1 and 12")
    target = parse_amount(data['target_revenue'], field='target_revenue')

    project = accessible_project(data['project_id'])
    if not project:
        return not_found("Project")
    try:
        db.execute_db(
            """INSERT INTO goals (project_id, month, year, target_revenue) VALUES (?, ?, ?, ?)
               ON CONFLICT(project_id, month, year)
               DO UPDATE SET target_revenue = excluded.target_revenue, updated_at = CURRENT_TIMESTAMP""",
            (project['id'], month, year, target)
        )
        row = db.query_db(
            "SELECT * FROM goals WHERE project_id=? AND month=? AND year=?", (project['id'], month, year), one=True
        )
        return jsonify(goal_with_progress(row))
    except Exception as e:
        logger.error(f"Error saving goal: {e}")
        return jsonify({"error": "Failed to save goal"}), 500


@affiliate_bp.route('/goals/<int:goal_id>', methods=['PUT'])
@jwt_required()
@app_access_required(AFFILIATE_APP)
def update_goal(goal_id):
    if not accessible_record('goals', goal_id):
        return not_found("Goal")
    data = request.get_json(force=True, silent=True) or {}
    require_fields(data, ['target_revenue'])
    db.execute_db(
        "UPDATE goals SET target_revenue=?, updated_at=CURRENT_TIMESTAMP WHERE id=?",
        (parse_amount(data['target_revenue'], field='target_revenue'), goal_id)
    )
    return jsonify(goal_with_progress(db.query_db("SELECT * FROM goals WHERE id=?", (goal_id,), one=True)))


@affiliate_bp.route('/goals/<int:goal_id>', methods=['DELETE'])
@jwt_required()
@app_access_required(AFFILIATE_APP)
def delete_goal(goal_id):
    if not accessible_record('goals', goal_id):
        return not_found("Goal")
    db.execute_db("DELETE FROM goals WHERE id=?", (goal_id,))
    return jsonify({"success": True})


# ---------------- Dashboard ----------------
@affiliate_bp.route('/dashboard', methods=['GET'])
@jwt_required()
@app_access_required(AFFILIATE_APP)
def dashboard_stats():
    if not request.args.get('project_id'):
        return jsonify({"error": "project_id is required"}), 400
    project = accessible_project(request.args.get('project_id'))
    if not project:
        return not_found("Project")
    try:
        return jsonify(dashboard(
            project['id'],
            parse_date(request.args.get('start_date')),
            parse_date(request.args.get('end_date')),
        ))
    except Exception as e:
        logger.error(f"Dashboard error: {e}")
        return jsonify({"error": "Failed to fetch dashboard data"}), 500
