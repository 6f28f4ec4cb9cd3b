# bizhub/billing.py
# Project Tracker: client projects billed per month, mirrored as income in the Financial Tracker
import logging
import re

from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required

from . import db, sync
from .auth import get_current_user, is_admin
from .models import BillingProject
from .utils import ValidationError, parse_amount, parse_int, require_date, require_fields

logger = logging.getLogger("bizhub.billing")

billing_bp = Blueprint('billing', __name__, url_prefix='/api/project-tracker-data')

STATUSES = ('paid', 'unpaid', 'partial')
MONTH_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def validate_month(value):
    if not value or not MONTH_RE.match(str(value)):
        raise ValidationError("month must look like YYYY-MM")
    return str(value)


def parse_cost(value):
    if value is None or value == '':
        return None
    return parse_amount(value, field='cost')


def load_owned(project_id):
    """BillingProject visible to the caller, else None"""
    row = db.query_db("SELECT * FROM billing_projects WHERE id=?", (project_id,), one=True)
    if not row:
        return None
    user = get_current_user()
    if not is_admin(user) and row['user_id'] != user['id']:
        return None
    return BillingProject.from_row(row)


def reload(project_id):
    return BillingProject.from_row(db.query_db("SELECT * FROM billing_projects WHERE id=?", (project_id,), one=True))


@billing_bp.route('', methods=['GET'])
@jwt_required()
def list_billing_projects():
    user = get_current_user()
    try:
        if is_admin(user):
            rows = db.query_db("SELECT * FROM billing_projects ORDER BY date DESC, id DESC")
        else:
            rows = db.query_db(
                "SELECT * FROM billing_projects WHERE user_id=? ORDER BY date DESC, id DESC", (user['id'],)
            )
        return jsonify([BillingProject.from_row(r).to_dict() for r in rows])
    except Exception as e:
        logger.error(f"Error reading project tracker data: {e}")
        return jsonify({"error": "Failed to read data"}), 500


@billing_bp.route('', methods=['POST'])
@jwt_required()
def create_billing_project():
    data = request.get_json(force=True, silent=True) or {}
    require_fields(data, ['project_name', 'date'])
    project_date = require_date(data, 'date')
    month = validate_month(data.get('month') or project_date.strftime('%Y-%m'))
    status = data.get('status') or 'unpaid'
    if status not in STATUSES:
        raise ValidationError(f"status must be one of {', '.join(STATUSES)}")
    cost = parse_cost(data.get('cost'))

    try:
        with db.transaction():
            project_id = db.execute_db(
                """INSERT INTO billing_projects (project_name, client_name, description, cost, status, date, month, user_id)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (data['project_name'].strip(), data.get('client_name') or '', data.get('description') or '',
                 cost, status, project_date.isoformat(), month, get_current_user()['id'])
            )
            project = reload(project_id)
            sync.sync_billing_project_to_transaction(project)
        logger.info(f"Billing project {project_id} created")
        return jsonify(project.to_dict()), 201
    except Exception as e:
        logger.error(f"Error creating project: {e}")
        return jsonify({"error": "Failed to create project"}), 500


@billing_bp.route('', methods=['PUT'])
@jwt_required()
def update_billing_project():
    data = request.get_json(force=True, silent=True) or {}
    project_id = parse_int(data.get('id'), field='id')
    if project_id is None:
        return jsonify({"error": "Missing project id"}), 400
    if not load_owned(project_id):
        return jsonify({"error": "Not found"}), 404

    values = {}
    for field in ('project_name', 'client_name', 'description'):
        if field in data:
            values[field] = data[field] or ''
    if 'cost' in data:
        values['cost'] = parse_cost(data['cost'])
    if 'status' in data:
        if data['status'] not in STATUSES:
            raise ValidationError(f"status must be one of {', '.join(STATUSES)}")
        values['status'] = data['status']
    if 'date' in data:
        values['date'] = require_date(data, 'date').isoformat()
    if 'month' in data:
        values['month'] = validate_month(data['month'])
    if not values.get('project_name', True):
        raise ValidationError("project_name cannot be empty")

    try:
        with db.transaction():
            if values:
                assignments = ", ".join(f"{col} = ?" for col in values)
                db.execute_db(
                    f"UPDATE billing_projects SET {assignments} WHERE id = ?",
                    (*values.values(), project_id)
                )
            project = reload(project_id)
            sync.sync_billing_project_to_transaction(project)
        return jsonify(project.to_dict())
    except Exception as e:
        logger.error(f"Error updating project {project_id}: {e}")
        return jsonify({"error": "Failed to update project"}), 500


@billing_bp.route('', methods=['DELETE'])
@jwt_required()
def delete_billing_project():
    project_id = parse_int(request.args.get('project_id'), field='project_id')
    if project_id is None:
        return jsonify({"error": "Missing project_id"}), 400
    if not load_owned(project_id):
        return jsonify({"error": "Not found"}), 404
    try:
        with db.transaction():
            db.execute_db("DELETE FROM billing_projects WHERE id=?", (project_id,))
            sync.delete_synced_billing_transaction(project_id)
        return jsonify({"success": True})
    except Exception as e:
        logger.error(f"Error deleting project {project_id}: {e}")
        return jsonify({"error": "Failed to delete project"}), 500


def billing_stats(projects):
    """Project count and billed amounts for a list of BillingProject; partial counts as unpaid"""
    paid = sum(p.cost or 0 for p in projects if p.status == 'paid')
    unpaid = sum(p.cost or 0 for p in projects if p.status != 'paid')
    return {
        "total_projects": len(projects),
        "total_paid": round(paid, 2),
        "total_unpaid": round(unpaid, 2),
        "total_revenue": round(paid + unpaid, 2),
    }


@billing_bp.route('/stats', methods=['GET'])
@jwt_required()
def stats():
    user = get_current_user()
    query, params = "SELECT * FROM billing_projects WHERE 1=1", []
    if request.args.get('month'):
        query += " AND month=?"
        params.append(validate_month(request.args['month']))
    if not is_admin(user):
        query += " AND user_id=?"
        params.append(user['id'])
    projects = [BillingProject.from_row(r) for r in db.query_db(query, params)]
    return jsonify(billing_stats(projects))
