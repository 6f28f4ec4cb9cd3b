# bizhub/db.py
import os
import sqlite3
from contextlib import contextmanager

from flask import g, current_app

DB_PATH = os.environ.get("DB_PATH", os.path.join(os.path.dirname(__file__), "..", "data", "bizhub.db"))
SQL_FILE = os.path.join(os.path.dirname(__file__), "init_db.sql")


def get_db_path():
    try:
        return current_app.config.get("DB_PATH", DB_PATH)
    except RuntimeError:
        return DB_PATH


def connect(db_path=None):
    """Open a connection with the settings every caller expects"""
    db_path = db_path or get_db_path()
    os.makedirs(os.path.dirname(os.path.abspath(db_path)), exist_ok=True)
    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def get_db():
    db = getattr(g, '_database', None)
    if db is None:
        db = g._database = connect()
    return db


def close_db(exception=None):
    db = g.pop('_database', None)
    if db is not None:
        db.close()


def in_transaction():
    return getattr(g, '_tx_depth', 0) > 0


def query_db(query, args=(), one=False):
    cur = get_db().execute(query, args)
    rv = cur.fetchall()
    cur.close()
    return (rv[0] if rv else None) if one else rv


def execute_db(query, args=(), rowcount=False):
    """Run a write statement; returns lastrowid, or the affected row count when rowcount=True.

    Commits immediately unless called inside a transaction() block.
    """
    conn = get_db()
    cur = conn.cursor()
    cur.execute(query, args)
    if not in_transaction():
        conn.commit()
    result = cur.rowcount if rowcount else cur.lastrowid
    cur.close()
    return result


@contextmanager
def transaction():
    """Group several execute_db calls into one commit; rolls everything back on error.

    Nested blocks join the outermost one.
    """
    conn = get_db()
    depth = getattr(g, '_tx_depth', 0)
    g._tx_depth = depth + 1
    try:
        yield conn
        if depth == 0:
            conn.commit()
    except Exception:
        if depth == 0:
            conn.rollback()
        raise
    finally:
        g._tx_depth = depth


def init_db(db_path=None):
    """
    Initialize the SQLite database using init_db.sql located in the package folder.
    This is idempotent (uses IF NOT EXISTS in SQL) so safe to call at app startup.
    """
    if not os.path.exists(SQL_FILE):
        raise FileNotFoundError(f"init_db.sql not found at expected path: {SQL_FILE}")

    conn = connect(db_path)
    try:
        with open(SQL_FILE, 'r', encoding='utf-8') as f:
            sql = f.read()
        conn.executescript(sql)
        conn.commit()
    finally:
        conn.close()
