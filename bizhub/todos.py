# bizhub/todos.py
# Todo board: one JSON document per user on disk
import json
import logging
import os
from datetime import date, datetime

from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity

from .utils import parse_date

logger = logging.getLogger("bizhub.todos")

todos_bp = Blueprint('todos', __name__, url_prefix='/api/todo-data')

REQUIRED_KEYS = ('projects', 'categories', 'todos')


def empty_document():
    return {key: [] for key in REQUIRED_KEYS}


def todo_file(user_id):
    todo_dir = os.path.join(current_app.config['DATA_DIR'], 'todos')
    os.makedirs(todo_dir, exist_ok=True)
    return os.path.join(todo_dir, f"{int(user_id)}.json")


def load_data(user_id):
    '''Load a user's todo document, falling back to an empty one'''
    path = todo_file(user_id)
    if not os.path.exists(path):
        return empty_document()
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        logger.warning(f"Corrupt todo file for user {user_id}, starting empty: {e}")
        return empty_document()

    for key in REQUIRED_KEYS:
        if not isinstance(data.get(key), list):
            data[key] = []
    return data


def save_data(user_id, data):
    '''Save a user's todo document (temp file + rename)'''
    path = todo_file(user_id)
    tmp_path = path + '.tmp'
    with open(tmp_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2)
    os.replace(tmp_path, path)


def _timestamp_date(value):
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00')).date()
    except ValueError:
        return parse_date(value)


def todo_stats(todos, today=None):
    today = today or date.today()
    pending = [t for t in todos if not t.get('completed')]
    completed_today = [
        t for t in todos
        if t.get('completed') and _timestamp_date(t.get('updated_at')) == today
    ]
    overdue = [
        t for t in pending
        if t.get('due_date') and (parse_date(t['due_date']) or today) < today
    ]
    return {
        "total": len(todos),
        "pending": len(pending),
        "completed_today": len(completed_today),
        "overdue": len(overdue),
    }


@todos_bp.route('', methods=['GET'])
@jwt_required()
def get_todo_data():
    try:
        return jsonify(load_data(get_jwt_identity()))
    except Exception as e:
        logger.error(f"Error reading todo data: {e}")
        return jsonify({"error": "Failed to read data"}), 500


@todos_bp.route('', methods=['POST'])
@jwt_required()
def save_todo_data():
    data = request.get_json(force=True, silent=True)
    if not isinstance(data, dict) or any(not isinstance(data.get(k, []), list) for k in REQUIRED_KEYS):
        return jsonify({"error": "Expected an object with projects, categories and todos lists"}), 400
    document = {key: data.get(key, []) for key in REQUIRED_KEYS}
    try:
        save_data(get_jwt_identity(), document)
        return jsonify({"success": True})
    except Exception as e:
        logger.error(f"Error saving todo data: {e}")
        return jsonify({"error": "Failed to save data"}), 500


@todos_bp.route('/stats', methods=['GET'])
@jwt_required()
def get_todo_stats():
    return jsonify(todo_stats(load_data(get_jwt_identity())['todos']))
