# bizhub/finance.py
# Financial Tracker: categories, transactions, recurring transactions, budgets, reports, search
import logging
import sqlite3
from datetime import date

import pandas as pd
from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required

from . import db, sync
from .auth import app_access_required, get_current_user, get_user_project_ids
from .models import Category, Transaction, RecurringTransaction
from .utils import (
    FREQUENCIES, ValidationError, advance_date, add_months, month_bounds,
    parse_amount, parse_date, parse_int, require_date, require_fields, row_to_dict,
)

logger = logging.getLogger("bizhub.finance")

finance_bp = Blueprint('finance', __name__, url_prefix='/api')

FINANCE_APP = 'financial_tracker'
TX_TYPES = ('income', 'expense')
# affiliatehq and project_tracker rows are only ever written by the sync module
CLIENT_SOURCES = (sync.SOURCE_MANUAL, sync.SOURCE_RECURRING)
SYNCED_SOURCES = (sync.SOURCE_AFFILIATE, sync.SOURCE_PROJECT_TRACKER)
SEARCH_LIMIT = 10

TRANSACTION_SELECT = """
    SELECT t.*, c.name AS category_name, c.color AS category_color
    FROM transactions t LEFT JOIN categories c ON c.id = t.category_id
"""


def validate_type(value, field='type'):
    if value not in TX_TYPES:
        raise ValidationError(f"{field} must be income or expense")
    return value


def validate_category(category_id):
    category_id = parse_int(category_id, field='category_id')
    if category_id is not None and not db.query_db("SELECT id FROM categories WHERE id=?", (category_id,), one=True):
        raise ValidationError("Unknown category_id")
    return category_id


def update_row(table, record_id, values, touch=True):
    if not values:
        return
    assignments = ", ".join(f"{col} = ?" for col in values)
    if touch:
        assignments += ", updated_at = CURRENT_TIMESTAMP"
    db.execute_db(f"UPDATE {table} SET {assignments} WHERE id = ?", (*values.values(), record_id))


def transaction_detail(tx_id):
    return row_to_dict(db.query_db(TRANSACTION_SELECT + " WHERE t.id = ?", (tx_id,), one=True))


# ---------------- Categories ----------------
@finance_bp.route('/categories', methods=['GET'])
@jwt_required()
@app_access_required(FINANCE_APP)
def list_categories():
    tx_type = request.args.get('type')
    if tx_type:
        rows = db.query_db("SELECT * FROM categories WHERE type=? ORDER BY name", (tx_type,))
    else:
        rows = db.query_db("SELECT * FROM categories ORDER BY name")
    return jsonify([Category.from_row(r).to_dict() for r in rows])


@finance_bp.route('/categories', methods=['POST'])
@jwt_required()
@app_access_required(FINANCE_APP)
def create_category():
    data = request.get_json(force=True, silent=True) or {}
    require_fields(data, ['name', 'type'])
    validate_type(data['type'])
    try:
        category_id = db.execute_db(
            "INSERT INTO categories (name, type, color) VALUES (?, ?, ?)",
            (data['name'].strip(), data['type'], data.get('color') or '#6b7280')
        )
    except sqlite3.IntegrityError:
        return jsonify({"error": "Category already exists"}), 400
    except Exception as e:
        logger.error(f"Error creating category: {e}")
        return jsonify({"error": "Failed to create category"}), 500
    row = db.query_db("SELECT * FROM categories WHERE id=?", (category_id,), one=True)
    return jsonify(Category.from_row(row).to_dict()), 201


@finance_bp.route('/categories/<int:category_id>', methods=['PUT'])
@jwt_required()
@app_access_required(FINANCE_APP)
def update_category(category_id):
    if not db.query_db("SELECT id FROM categories WHERE id=?", (category_id,), one=True):
        return jsonify({"error": "Category not found"}), 404
    data = request.get_json(force=True, silent=True) or {}
    values = {}
    if data.get('name'):
        values['name'] = data['name'].strip()
    if data.get('type'):
        values['type'] = validate_type(data['type'])
    if data.get('color'):
        values['color'] = data['color']
    try:
        update_row('categories', category_id, values, touch=False)
    except sqlite3.IntegrityError:
        return jsonify({"error": "Category already exists"}), 400
    row = db.query_db("SELECT * FROM categories WHERE id=?", (category_id,), one=True)
    return jsonify(Category.from_row(row).to_dict())


@finance_bp.route('/categories/<int:category_id>', methods=['DELETE'])
@jwt_required()
@app_access_required(FINANCE_APP)
def delete_category(category_id):
    deleted = db.execute_db("DELETE FROM categories WHERE id=?", (category_id,), rowcount=True)
    if not deleted:
        return jsonify({"error": "Category not found"}), 404
    return jsonify({"success": True})


# ---------------- Transactions ----------------
@finance_bp.route('/transactions', methods=['GET'])
@jwt_required()
@app_access_required(FINANCE_APP)
def list_transactions():
    clauses, params = [], []
    start = parse_date(request.args.get('start_date'))
    end = parse_date(request.args.get('end_date'))
    if start:
        clauses.append("t.date >= ?")
        params.append(start.isoformat())
    if end:
        clauses.append("t.date <= ?")
        params.append(end.isoformat())
    for field in ('type', 'source'):
        if request.args.get(field):
            clauses.append(f"t.{field} = ?")
            params.append(request.args[field])
    if request.args.get('external_id'):
        clauses.append("t.external_id = ?")
        params.append(parse_int(request.args['external_id'], field='external_id'))

    where = (" WHERE " + " AND ".join(clauses)) if clauses else ""
    try:
        rows = db.query_db(TRANSACTION_SELECT + where + " ORDER BY t.date DESC, t.id DESC LIMIT 1000", params)
        return jsonify([row_to_dict(r) for r in rows])
    except Exception as e:
        logger.error(f"Error fetching transactions: {e}")
        return jsonify({"error": "Failed to fetch transactions"}), 500


@finance_bp.route('/transactions', methods=['POST'])
@jwt_required()
@app_access_required(FINANCE_APP)
def create_transaction():
    data = request.get_json(force=True, silent=True) or {}
    require_fields(data, ['description', 'amount', 'type', 'date'])
    amount = parse_amount(data['amount'])
    tx_type = validate_type(data['type'])
    tx_date = require_date(data, 'date')
    category_id = validate_category(data.get('category_id'))
    source = data.get('source') or sync.SOURCE_MANUAL
    if source not in CLIENT_SOURCES:
        raise ValidationError("source must be manual or recurring")
    external_id = parse_int(data.get('external_id'), field='external_id')

    try:
        tx_id = db.execute_db(
            """INSERT INTO transactions (description, amount, type, date, category_id, source, external_id)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (data['description'].strip(), amount, tx_type, tx_date.isoformat(), category_id, source, external_id)
        )
        logger.info(f"Transaction {tx_id} created ({tx_type}, {source})")
        return jsonify(transaction_detail(tx_id)), 201
    except Exception as e:
        logger.error(f"Error creating transaction: {e}")
        return jsonify({"error": "Failed to create transaction"}), 500


@finance_bp.route('/transactions/<int:tx_id>', methods=['GET'])
@jwt_required()
@app_access_required(FINANCE_APP)
def get_transaction(tx_id):
    tx = transaction_detail(tx_id)
    if not tx:
        return jsonify({"error": "Transaction not found"}), 404
    return jsonify(tx)


@finance_bp.route('/transactions/<int:tx_id>', methods=['PUT'])
@jwt_required()
@app_access_required(FINANCE_APP)
def update_transaction(tx_id):
    row = db.query_db("SELECT * FROM transactions WHERE id=?", (tx_id,), one=True)
    if not row:
        return jsonify({"error": "Transaction not found"}), 404
    current = Transaction.from_row(row)
    data = request.get_json(force=True, silent=True) or {}
    values = {}
    if data.get('description'):
        values['description'] = data['description'].strip()
    if data.get('amount') is not None:
        values['amount'] = parse_amount(data['amount'])
    if data.get('type'):
        values['type'] = validate_type(data['type'])
        if values['type'] != current.type and current.source in SYNCED_SOURCES:
            raise ValidationError("Type of a synced transaction cannot be changed")
    if data.get('date'):
        values['date'] = require_date(data, 'date').isoformat()
    if 'category_id' in data:
        values['category_id'] = validate_category(data['category_id'])

    try:
        with db.transaction():
            update_row('transactions', tx_id, values)
            transaction = Transaction.from_row(db.query_db("SELECT * FROM transactions WHERE id=?", (tx_id,), one=True))
            sync.sync_transaction_to_affiliatehq(transaction, get_current_user())
        return jsonify(transaction_detail(tx_id))
    except Exception as e:
        logger.error(f"Error updating transaction {tx_id}: {e}")
        return jsonify({"error": "Failed to update transaction"}), 500


@finance_bp.route('/transactions/<int:tx_id>', methods=['DELETE'])
@jwt_required()
@app_access_required(FINANCE_APP)
def delete_transaction(tx_id):
    row = db.query_db("SELECT * FROM transactions WHERE id=?", (tx_id,), one=True)
    if not row:
        return jsonify({"error": "Transaction not found"}), 404
    transaction = Transaction.from_row(row)
    try:
        with db.transaction():
            db.execute_db("DELETE FROM transactions WHERE id=?", (tx_id,))
            if transaction.source == sync.SOURCE_AFFILIATE:
                sync.delete_synced_affiliatehq_entry(transaction.external_id, transaction.type, transaction.id)
            elif transaction.source == sync.SOURCE_PROJECT_TRACKER and transaction.external_id:
                db.execute_db("DELETE FROM billing_projects WHERE id=?", (transaction.external_id,))
        return jsonify({"success": True})
    except Exception as e:
        logger.error(f"Error deleting transaction {tx_id}: {e}")
        return jsonify({"error": "Failed to delete transaction"}), 500


# ---------------- Recurring ----------------
def recurring_detail(recurring_id):
    row = db.query_db("SELECT * FROM recurring_transactions WHERE id=?", (recurring_id,), one=True)
    return RecurringTransaction.from_row(row).to_dict() if row else None


def validate_frequency(value):
    if value not in FREQUENCIES:
        raise ValidationError(f"frequency must be one of {', '.join(FREQUENCIES)}")
    return value


def process_due_recurring(today=None):
    """Turn every due occurrence of active recurring entries into transactions.

    An entry that fell several periods behind gets one transaction per missed
    occurrence. Returns the ids of the created transactions.
    """
    today = today or date.today()
    created = []
    due = db.query_db(
        "SELECT * FROM recurring_transactions WHERE is_active = 1 AND next_date <= ? ORDER BY next_date",
        (today.isoformat(),)
    )
    with db.transaction():
        for row in due:
            recurring = RecurringTransaction.from_row(row)
            next_date = parse_date(recurring.next_date)
            while next_date <= today:
                created.append(db.execute_db(
                    """INSERT INTO transactions (description, amount, type, date, category_id, source)
                       VALUES (?, ?, ?, ?, ?, ?)""",
                    (recurring.description, recurring.amount, recurring.type,
                     next_date.isoformat(), recurring.category_id, sync.SOURCE_RECURRING)
                ))
                next_date = advance_date(next_date, recurring.frequency)
            update_row('recurring_transactions', recurring.id, {"next_date": next_date.isoformat()})
    if created:
        logger.info(f"Processed {len(due)} recurring entries into {len(created)} transactions")
    return created


@finance_bp.route('/recurring', methods=['GET'])
@jwt_required()
@app_access_required(FINANCE_APP)
def list_recurring():
    rows = db.query_db(
        """SELECT r.*, c.name AS category_name, c.color AS category_color
           FROM recurring_transactions r LEFT JOIN categories c ON c.id = r.category_id
           ORDER BY r.next_date, r.id"""
    )
    result = []
    for r in rows:
        item = row_to_dict(r)
        item['is_active'] = bool(item['is_active'])
        result.append(item)
    return jsonify(result)


@finance_bp.route('/recurring', methods=['POST'])
@jwt_required()
@app_access_required(FINANCE_APP)
def create_recurring():
    data = request.get_json(force=True, silent=True) or {}
    require_fields(data, ['description', 'amount', 'type', 'frequency', 'start_date'])
    amount = parse_amount(data['amount'])
    tx_type = validate_type(data['type'])
    frequency = validate_frequency(data['frequency'])
    start_date = require_date(data, 'start_date')
    category_id = validate_category(data.get('category_id'))
    try:
        recurring_id = db.execute_db(
            """INSERT INTO recurring_transactions
               (description, amount, type, category_id, frequency, start_date, next_date, is_active, source)
               VALUES (?, ?, ?, ?, ?, ?, ?, 1, ?)""",
            (data['description'].strip(), amount, tx_type, category_id, frequency,
             start_date.isoformat(), start_date.isoformat(), sync.SOURCE_MANUAL)
        )
        return jsonify(recurring_detail(recurring_id)), 201
    except Exception as e:
        logger.error(f"Error creating recurring transaction: {e}")
        return jsonify({"error": "Failed to create recurring transaction"}), 500


@finance_bp.route('/recurring/<int:recurring_id>', methods=['PUT'])
@jwt_required()
@app_access_required(FINANCE_APP)
def update_recurring(recurring_id):
    if not recurring_detail(recurring_id):
        return jsonify({"error": "Recurring transaction not found"}), 404
    data = request.get_json(force=True, silent=True) or {}
    values = {}
    if data.get('description'):
        values['description'] = data['description'].strip()
    if data.get('amount') is not None:
        values['amount'] = parse_amount(data['amount'])
    if data.get('type'):
        values['type'] = validate_type(data['type'])
    if data.get('frequency'):
        values['frequency'] = validate_frequency(data['frequency'])
    if data.get('start_date'):
        start_date = require_date(data, 'start_date').isoformat()
        values['start_date'] = start_date
        values['next_date'] = start_date
    if 'category_id' in data:
        values['category_id'] = validate_category(data['category_id'])
    if 'is_active' in data:
        values['is_active'] = 1 if data['is_active'] else 0
    update_row('recurring_transactions', recurring_id, values)
    return jsonify(recurring_detail(recurring_id))


@finance_bp.route('/recurring/<int:recurring_id>', methods=['DELETE'])
@jwt_required()
@app_access_required(FINANCE_APP)
def delete_recurring(recurring_id):
    deleted = db.execute_db("DELETE FROM recurring_transactions WHERE id=?", (recurring_id,), rowcount=True)
    if not deleted:
        return jsonify({"error": "Recurring transaction not found"}), 404
    return jsonify({"success": True})


@finance_bp.route('/recurring/process', methods=['POST'])
@jwt_required()
@app_access_required(FINANCE_APP)
def process_recurring():
    try:
        created = process_due_recurring()
        return jsonify({"processed": len(created), "transaction_ids": created})
    except Exception as e:
        logger.error(f"Error processing recurring transactions: {e}")
        return jsonify({"error": "Failed to process recurring transactions"}), 500


# ---------------- Budgets ----------------
def budget_with_spent(row, today=None):
    today = today or date.today()
    start, end = month_bounds(today.year, today.month)
    spent = db.query_db(
        """SELECT COALESCE(SUM(amount), 0) AS total FROM transactions
           WHERE category_id=? AND type='expense' AND date BETWEEN ? AND ?""",
        (row['category_id'], start.isoformat(), end.isoformat()), one=True
    )['total']
    budget = row_to_dict(row)
    budget['spent'] = float(spent)
    return budget


BUDGET_SELECT = """
    SELECT b.*, c.name AS category_name, c.color AS category_color
    FROM budgets b JOIN categories c ON c.id = b.category_id
"""


@finance_bp.route('/budgets', methods=['GET'])
@jwt_required()
@app_access_required(FINANCE_APP)
def list_budgets():
    try:
        rows = db.query_db(BUDGET_SELECT + " ORDER BY c.name")
        return jsonify([budget_with_spent(r) for r in rows])
    except Exception as e:
        logger.error(f"Error fetching budgets: {e}")
        return jsonify({"error": "Failed to fetch budgets"}), 500


@finance_bp.route('/budgets', methods=['POST'])
@jwt_required()
@app_access_required(FINANCE_APP)
def create_budget():
    data = request.get_json(force=True, silent=True) or {}
    require_fields(data, ['category_id', 'amount'])
    category_id = validate_category(data['category_id'])
    amount = parse_amount(data['amount'])
    budget_id = db.execute_db(
        "INSERT INTO budgets (category_id, amount, period) VALUES (?, ?, ?)",
        (category_id, amount, data.get('period') or 'monthly')
    )
    return jsonify(budget_with_spent(db.query_db(BUDGET_SELECT + " WHERE b.id=?", (budget_id,), one=True))), 201


@finance_bp.route('/budgets/<int:budget_id>', methods=['PUT'])
@jwt_required()
@app_access_required(FINANCE_APP)
def update_budget(budget_id):
    if not db.query_db("SELECT id FROM budgets WHERE id=?", (budget_id,), one=True):
        return jsonify({"error": "Budget not found"}), 404
    data = request.get_json(force=True, silent=True) or {}
    values = {}
    if data.get('category_id') is not None:
        values['category_id'] = validate_category(data['category_id'])
    if data.get('amount') is not None:
        values['amount'] = parse_amount(data['amount'])
    if data.get('period'):
        values['period'] = data['period']
    update_row('budgets', budget_id, values, touch=False)
    return jsonify(budget_with_spent(db.query_db(BUDGET_SELECT + " WHERE b.id=?", (budget_id,), one=True)))


@finance_bp.route('/budgets/<int:budget_id>', methods=['DELETE'])
@jwt_required()
@app_access_required(FINANCE_APP)
def delete_budget(budget_id):
    deleted = db.execute_db("DELETE FROM budgets WHERE id=?", (budget_id,), rowcount=True)
    if not deleted:
        return jsonify({"error": "Budget not found"}), 404
    return jsonify({"success": True})


# ---------------- Reports ----------------
def date_filter(args, column='date'):
    start = parse_date(args.get('start_date'))
    end = parse_date(args.get('end_date'))
    if start and end:
        return f" AND {column} BETWEEN ? AND ?", [start.isoformat(), end.isoformat()]
    return "", []


def summary_report(args):
    where, params = date_filter(args)
    row = db.query_db(
        f"""SELECT COALESCE(SUM(CASE WHEN type='income' THEN amount END), 0) AS income,
                   COALESCE(SUM(CASE WHEN type='expense' THEN amount END), 0) AS expense
            FROM transactions WHERE 1=1{where}""",
        params, one=True
    )
    total_income = float(row['income'])
    total_expense = float(row['expense'])
    return {
        "total_income": round(total_income, 2),
        "total_expense": round(total_expense, 2),
        "balance": round(total_income - total_expense, 2),
    }


def by_category_report(args):
    category_type = args.get('category_type') or 'expense'
    where, params = date_filter(args, 't.date')
    rows = db.query_db(
        f"""SELECT c.id, c.name, c.color, COALESCE(SUM(t.amount), 0) AS total
            FROM categories c
            LEFT JOIN transactions t ON t.category_id = c.id{where}
            WHERE c.type = ?
            GROUP BY c.id ORDER BY total DESC, c.name""",
        params + [category_type]
    )
    return [row_to_dict(r) for r in rows]


def monthly_trends_report(today=None):
    """Income and expense per month over the last 12 months"""
    today = today or date.today()
    since = add_months(today, -12)
    rows = db.query_db(
        "SELECT date, amount, type FROM transactions WHERE date >= ? ORDER BY date",
        (since.isoformat(),)
    )
    if not rows:
        return []
    df = pd.DataFrame([dict(r) for r in rows])
    df['date'] = pd.to_datetime(df['date'], errors='coerce')
    df = df.dropna(subset=['date'])
    df['month'] = df['date'].dt.strftime('%Y-%m')
    pivot = df.pivot_table(index='month', columns='type', values='amount', aggfunc='sum', fill_value=0)
    return [
        {
            "month": month,
            "income": float(pivot.loc[month].get('income', 0)),
            "expense": float(pivot.loc[month].get('expense', 0)),
        }
        for month in sorted(pivot.index)
    ]


@finance_bp.route('/reports', methods=['GET'])
@jwt_required()
@app_access_required(FINANCE_APP)
def reports():
    report_type = request.args.get('type') or 'summary'
    try:
        if report_type == 'summary':
            return jsonify(summary_report(request.args))
        if report_type == 'by-category':
            return jsonify(by_category_report(request.args))
        if report_type == 'monthly-trends':
            return jsonify(monthly_trends_report())
    except Exception as e:
        logger.error(f"Error building {report_type} report: {e}")
        return jsonify({"error": "Failed to fetch report"}), 500
    return jsonify({"error": "Invalid report type"}), 400


# ---------------- Search ----------------
@finance_bp.route('/search', methods=['GET'])
@jwt_required()
@app_access_required(FINANCE_APP)
def search():
    query = (request.args.get('q') or '').strip().lower()
    if len(query) < 2:
        return jsonify({"transactions": [], "sales": [], "expenses": []})

    pattern = f"%{query}%"
    try:
        transactions = db.query_db(
            TRANSACTION_SELECT + " WHERE LOWER(t.description) LIKE ? ORDER BY t.date DESC LIMIT ?",
            (pattern, SEARCH_LIMIT)
        )

        # affiliate rows only from projects the caller can see
        ids = get_user_project_ids(get_current_user())
        sales, expenses = [], []
        if ids:
            in_clause = ','.join('?' * len(ids))
            sales = db.query_db(
                f"""SELECT s.*, p.name AS project_name FROM sales s JOIN projects p ON p.id = s.project_id
                    WHERE s.project_id IN ({in_clause})
                      AND (LOWER(s.platform) LIKE ? OR LOWER(p.name) LIKE ?)
                    ORDER BY s.sale_date DESC LIMIT ?""",
                (*ids, pattern, pattern, SEARCH_LIMIT)
            )
            expenses = db.query_db(
                f"""SELECT e.*, p.name AS project_name FROM expenses e JOIN projects p ON p.id = e.project_id
                    WHERE e.project_id IN ({in_clause})
                      AND (LOWER(COALESCE(e.description, '')) LIKE ? OR LOWER(e.category) LIKE ?)
                    ORDER BY e.expense_date DESC LIMIT ?""",
                (*ids, pattern, pattern, SEARCH_LIMIT)
            )
        return jsonify({
            "transactions": [row_to_dict(r) for r in transactions],
            "sales": [row_to_dict(r) for r in sales],
            "expenses": [row_to_dict(r) for r in expenses],
        })
    except Exception as e:
        logger.error(f"Search error: {e}")
        return jsonify({"error": "Search failed"}), 500
