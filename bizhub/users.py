# bizhub/users.py
# admin-only user management
import logging

from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required
from werkzeug.security import generate_password_hash

from . import db
from .affiliate import delete_project_mirrors
from .sync import delete_synced_billing_transaction
from .auth import (
    admin_required, create_user, get_current_user, get_app_permissions,
    set_app_permissions, public_user, MIN_PASSWORD_LENGTH,
)

logger = logging.getLogger("bizhub.users")

users_bp = Blueprint('users', __name__, url_prefix='/api/users')


def user_detail(row):
    result = public_user(row)
    result['app_permissions'] = get_app_permissions(row['id'])
    result['project_ids'] = [
        r['project_id'] for r in db.query_db(
            "SELECT project_id FROM user_project_permissions WHERE user_id=? ORDER BY project_id",
            (row['id'],)
        )
    ]
    return result


def replace_project_permissions(user_id, project_ids):
    db.execute_db("DELETE FROM user_project_permissions WHERE user_id=?", (user_id,))
    for project_id in set(int(p) for p in project_ids):
        if db.query_db("SELECT id FROM projects WHERE id=?", (project_id,), one=True):
            db.execute_db(
                "INSERT INTO user_project_permissions (user_id, project_id) VALUES (?, ?)",
                (user_id, project_id)
            )


@users_bp.route('', methods=['GET'])
@jwt_required()
@admin_required
def list_users():
    try:
        rows = db.query_db("SELECT * FROM users ORDER BY created_at DESC, id DESC")
        return jsonify([user_detail(r) for r in rows])
    except Exception as e:
        logger.error(f"Error listing users: {e}")
        return jsonify({"error": "Failed to fetch users"}), 500


@users_bp.route('', methods=['POST'])
@jwt_required()
@admin_required
def add_user():
    data = request.get_json(force=True, silent=True) or {}
    try:
        user, error = create_user(
            data.get('email'), data.get('name'), data.get('password'),
            role=data.get('role', 'user')
        )
        if error:
            status = 409 if error == "Email already registered" else 400
            return jsonify({"error": error}), status

        with db.transaction():
            if isinstance(data.get('app_permissions'), dict):
                set_app_permissions(user['id'], data['app_permissions'])
            if isinstance(data.get('project_ids'), list):
                replace_project_permissions(user['id'], data['project_ids'])
        return jsonify(user_detail(user)), 201
    except (TypeError, ValueError):
        return jsonify({"error": "project_ids must be a list of integers"}), 400
    except Exception as e:
        logger.error(f"Error creating user: {e}")
        return jsonify({"error": "Failed to create user"}), 500


@users_bp.route('/<int:user_id>', methods=['GET'])
@jwt_required()
@admin_required
def get_user(user_id):
    row = db.query_db("SELECT * FROM users WHERE id=?", (user_id,), one=True)
    if not row:
        return jsonify({"error": "User not found"}), 404
    return jsonify(user_detail(row))


@users_bp.route('/<int:user_id>', methods=['PUT'])
@jwt_required()
@admin_required
def update_user(user_id):
    row = db.query_db("SELECT * FROM users WHERE id=?", (user_id,), one=True)
    if not row:
        return jsonify({"error": "User not found"}), 404

    data = request.get_json(force=True, silent=True) or {}
    if 'role' in data and data['role'] not in ('admin', 'user'):
        return jsonify({"error": "Invalid role"}), 400
    if data.get('password') and len(data['password']) < MIN_PASSWORD_LENGTH:
        return jsonify({"error": f"Password must be at least {MIN_PASSWORD_LENGTH} characters"}), 400

    try:
        with db.transaction():
            if data.get('name'):
                db.execute_db("UPDATE users SET name=? WHERE id=?", (data['name'].strip(), user_id))
            if 'role' in data:
                db.execute_db("UPDATE users SET role=? WHERE id=?", (data['role'], user_id))
            if data.get('password'):
                db.execute_db(
                    "UPDATE users SET password_hash=? WHERE id=?",
                    (generate_password_hash(data['password']), user_id)
                )
            if isinstance(data.get('app_permissions'), dict):
                set_app_permissions(user_id, data['app_permissions'])
            if isinstance(data.get('project_ids'), list):
                replace_project_permissions(user_id, data['project_ids'])
    except (TypeError, ValueError):
        return jsonify({"error": "project_ids must be a list of integers"}), 400
    except Exception as e:
        logger.error(f"Error updating user {user_id}: {e}")
        return jsonify({"error": "Failed to update user"}), 500

    row = db.query_db("SELECT * FROM users WHERE id=?", (user_id,), one=True)
    return jsonify(user_detail(row))


@users_bp.route('/<int:user_id>', methods=['DELETE'])
@jwt_required()
@admin_required
def delete_user(user_id):
    if user_id == get_current_user()['id']:
        return jsonify({"error": "You cannot delete your own account"}), 400
    try:
        with db.transaction():
            # owned projects cascade away with the user, their finance mirrors do not
            for project in db.query_db("SELECT id FROM projects WHERE owner_id=?", (user_id,)):
                delete_project_mirrors(project['id'])
            for billing in db.query_db("SELECT id FROM billing_projects WHERE user_id=?", (user_id,)):
                delete_synced_billing_transaction(billing['id'])
            deleted = db.execute_db("DELETE FROM users WHERE id=?", (user_id,), rowcount=True)
    except Exception as e:
        logger.error(f"Error deleting user {user_id}: {e}")
        return jsonify({"error": "Failed to delete user"}), 500
    if not deleted:
        return jsonify({"error": "User not found"}), 404
    logger.info(f"User {user_id} deleted")
    return jsonify({"msg": "deleted"})
