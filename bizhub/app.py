# bizhub/app.py

import os
import logging
from datetime import timedelta

from flask import Flask, jsonify
from flask_jwt_extended import JWTManager
from flask_cors import CORS

from . import db
from .auth import auth_bp, bootstrap_bp
from .users import users_bp
from .affiliate import affiliate_bp
from .finance import finance_bp
from .billing import billing_bp
from .todos import todos_bp
from .utils import ValidationError

# ---------------- Configuration ----------------
logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger("bizhub")

DATA_DIR = os.environ.get("DATA_DIR", os.path.join(os.path.dirname(__file__), "..", "data"))


def load_config(app, test_config=None):
    app.config['DB_PATH'] = os.environ.get('DB_PATH', db.DB_PATH)
    app.config['DATA_DIR'] = DATA_DIR
    app.config['JWT_SECRET_KEY'] = os.environ.get('JWT_SECRET_KEY', "dev-key-change-me")
    expires = int(os.environ.get('JWT_ACCESS_TOKEN_EXPIRES_MINUTES', 60 * 24))
    app.config['JWT_ACCESS_TOKEN_EXPIRES'] = timedelta(minutes=expires)
    app.config['CORS_ORIGINS'] = os.environ.get('CORS_ORIGINS', 'http://localhost:8501,http://localhost:8502')
    if test_config:
        app.config.update(test_config)


def register_jwt_handlers(jwt):
    @jwt.unauthorized_loader
    def missing_token(reason):
        return jsonify({"error": "Unauthorized", "detail": reason}), 401

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return jsonify({"error": "Invalid token", "detail": reason}), 401

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return jsonify({"error": "Token expired"}), 401


# ---------------- Flask App Factory ----------------
def create_app(test_config=None):
    app = Flask(__name__)
    load_config(app, test_config)

    register_jwt_handlers(JWTManager(app))

    # CORS
    origins = [o.strip() for o in app.config['CORS_ORIGINS'].split(",") if o.strip()]
    CORS(app, resources={r"/*": {"origins": origins}}, supports_credentials=True)

    # Blueprints
    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(bootstrap_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(affiliate_bp)
    app.register_blueprint(finance_bp)
    app.register_blueprint(billing_bp)
    app.register_blueprint(todos_bp)

    @app.errorhandler(ValidationError)
    def handle_validation_error(e):
        return jsonify({"error": str(e)}), 400

    # Initialize DB
    with app.app_context():
        db.init_db(app.config['DB_PATH'])
        logger.info(f"Database initialized at {app.config['DB_PATH']}")

    # Teardown
    @app.teardown_appcontext
    def close_connection(exception):
        try:
            db.close_db(exception)
        except Exception:
            logger.exception("Error closing DB connection")

    # ---------------- Core Endpoints ----------------
    @app.route('/')
    def root():
        return jsonify({"msg": "BizHub dashboard backend root"})

    @app.route('/health')
    def health():
        try:
            db.query_db("SELECT 1", one=True)
            return jsonify({"status": "ok", "database": "connected"})
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return jsonify({"status": "error", "database": "disconnected"}), 500

    return app


# ---------------- Run ----------------
if __name__ == '__main__':
    app = create_app()
    app.run(debug=True, host='0.0.0.0', port=5000)
