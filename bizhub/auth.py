# bizhub/auth.py
import logging
import re
from functools import wraps

from flask import Blueprint, request, jsonify, g
from flask_jwt_extended import create_access_token, jwt_required, get_jwt_identity
from werkzeug.security import generate_password_hash, check_password_hash

from . import db

logger = logging.getLogger("bizhub.auth")

auth_bp = Blueprint('auth', __name__)
bootstrap_bp = Blueprint('bootstrap', __name__)

APP_NAMES = ("affiliate_hq", "financial_tracker", "todo_dashboard", "project_tracker")
DEFAULT_APPS = ("affiliate_hq", "financial_tracker")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 6


# ---------------- User helpers ----------------
def public_user(row):
    return {
        "id": row['id'],
        "email": row['email'],
        "name": row['name'],
        "role": row['role'],
        "created_at": row['created_at'],
    }


def get_app_permissions(user_id):
    rows = db.query_db(
        "SELECT app_name, can_access FROM user_app_permissions WHERE user_id=?", (user_id,)
    )
    return {r['app_name']: bool(r['can_access']) for r in rows}


def set_app_permissions(user_id, permissions):
    """Upsert can_access per app; unknown app names are ignored"""
    for app_name, can_access in permissions.items():
        if app_name not in APP_NAMES:
            continue
        db.execute_db(
            """INSERT INTO user_app_permissions (user_id, app_name, can_access) VALUES (?, ?, ?)
               ON CONFLICT(user_id, app_name) DO UPDATE SET can_access = excluded.can_access""",
            (user_id, app_name, 1 if can_access else 0)
        )


def create_user(email, name, password, role=None, apps=DEFAULT_APPS):
    """Insert a user and grant the default apps.

    The very first account becomes admin unless a role is given.
    Returns (user_row, error).
    """
    email = (email or '').strip().lower()
    name = (name or '').strip()
    if not email or not EMAIL_RE.match(email):
        return None, "Valid email required"
    if not name:
        return None, "Name required"
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        return None, f"Password must be at least {MIN_PASSWORD_LENGTH} characters"

    if db.query_db("SELECT id FROM users WHERE email=?", (email,), one=True):
        return None, "Email already registered"

    if role is None:
        count = db.query_db("SELECT COUNT(*) AS n FROM users", one=True)['n']
        role = 'admin' if count == 0 else 'user'
    if role not in ('admin', 'user'):
        return None, "Invalid role"

    with db.transaction():
        user_id = db.execute_db(
            "INSERT INTO users (email, name, password_hash, role) VALUES (?, ?, ?, ?)",
            (email, name, generate_password_hash(password), role)
        )
        set_app_permissions(user_id, {a: True for a in apps})

    logger.info(f"User {user_id} registered with role {role}")
    return db.query_db("SELECT * FROM users WHERE id=?", (user_id,), one=True), None


def get_current_user():
    """The users row for the JWT identity, cached for the request"""
    if 'current_user' not in g:
        g.current_user = db.query_db(
            "SELECT * FROM users WHERE id=?", (int(get_jwt_identity()),), one=True
        )
    return g.current_user


def is_admin(user):
    return bool(user) and user['role'] == 'admin'


def has_app_access(user, app_name):
    if is_admin(user):
        return True
    row = db.query_db(
        "SELECT can_access FROM user_app_permissions WHERE user_id=? AND app_name=?",
        (user['id'], app_name), one=True
    )
    return bool(row and row['can_access'])


def get_user_project_ids(user):
    """Ids of every affiliate project the user may see"""
    if is_admin(user):
        rows = db.query_db("SELECT id FROM projects")
    else:
        rows = db.query_db(
            """SELECT id FROM projects WHERE owner_id = ?
               UNION
               SELECT project_id FROM user_project_permissions WHERE user_id = ?""",
            (user['id'], user['id'])
        )
    return sorted(r[0] for r in rows)


def has_project_access(user, project_id):
    if project_id is None:
        return False
    return int(project_id) in get_user_project_ids(user)


# ---------------- Decorators ----------------
# Both go below @jwt_required() so the identity is already verified.
def app_access_required(app_name):
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = get_current_user()
            if not user:
                return jsonify({"error": "User not found"}), 401
            if not has_app_access(user, app_name):
                return jsonify({"error": f"No access to {app_name}"}), 403
            return fn(*args, **kwargs)
        return wrapper
    return decorator


def admin_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        user = get_current_user()
        if not is_admin(user):
            return jsonify({"error": "Admin access required"}), 403
        return fn(*args, **kwargs)
    return wrapper


# ---------------- Routes ----------------
@auth_bp.route('/register', methods=['POST'])
def register():
    data = request.get_json(force=True, silent=True) or {}
    try:
        user, error = create_user(data.get('email'), data.get('name'), data.get('password'))
    except Exception as e:
        logger.error(f"Registration failed: {e}")
        return jsonify({"error": "Registration failed"}), 500
    if error:
        status = 409 if error == "Email already registered" else 400
        return jsonify({"error": error}), status

    token = create_access_token(identity=str(user['id']))
    return jsonify({"msg": "registered", "access_token": token, "user": public_user(user)}), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(force=True, silent=True) or {}
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''
    if not email or not password:
        return jsonify({"error": "Email and password required"}), 400

    user = db.query_db("SELECT * FROM users WHERE email=?", (email,), one=True)
    if not user or not check_password_hash(user['password_hash'], password):
        logger.warning(f"Failed login for {email}")
        return jsonify({"error": "Invalid credentials"}), 401

    token = create_access_token(identity=str(user['id']))
    logger.info(f"User {user['id']} logged in")
    return jsonify({"access_token": token, "user": public_user(user)})


@auth_bp.route('/me', methods=['GET'])
@jwt_required()
def me():
    user = get_current_user()
    if not user:
        return jsonify({"error": "User not found"}), 404
    result = public_user(user)
    result['app_permissions'] = get_app_permissions(user['id'])
    result['project_ids'] = get_user_project_ids(user)
    return jsonify(result)


@bootstrap_bp.route('/api/bootstrap', methods=['GET'])
def bootstrap_status():
    row = db.query_db("SELECT COUNT(*) AS n FROM users WHERE role='admin'", one=True)
    return jsonify({"has_admin": row['n'] > 0})


@bootstrap_bp.route('/api/bootstrap', methods=['POST'])
@jwt_required()
def bootstrap_admin():
    """Promote the caller when the install has no admin yet"""
    user = get_current_user()
    if not user:
        return jsonify({"error": "User not found"}), 404
    row = db.query_db("SELECT COUNT(*) AS n FROM users WHERE role='admin'", one=True)
    if row['n'] > 0:
        return jsonify({"error": "An admin already exists"}), 400

    db.execute_db("UPDATE users SET role='admin' WHERE id=?", (user['id'],))
    g.pop('current_user', None)
    logger.info(f"User {user['id']} promoted to admin via bootstrap")
    return jsonify({"msg": "promoted", "role": "admin"})
