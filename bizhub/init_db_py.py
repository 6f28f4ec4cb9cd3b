# bizhub/init_db_py.py

import argparse

from . import db
from .app import create_app
from .auth import create_user


def init_database(app):
    db.init_db(app.config['DB_PATH'])
    print(f"Connected to database at {app.config['DB_PATH']}")
    print("🎉 Database initialized successfully!")


def create_admin_user(app, email, password, name="Administrator"):
    """Create an admin account unless the email is already taken"""
    with app.app_context():
        existing = db.query_db("SELECT id, role FROM users WHERE email=?", (email.lower(),), one=True)
        if existing:
            print(f"ℹ️  User {email} already exists (role: {existing['role']})")
            return False

        user, error = create_user(
            email, name, password, role='admin',
            apps=("affiliate_hq", "financial_tracker", "todo_dashboard", "project_tracker")
        )
        if error:
            print(f"❌ Could not create admin: {error}")
            return False
        print("✅ Admin user created:")
        print(f"   📧 Email: {user['email']}")
        print("   ⚠️  CHANGE THIS PASSWORD IMMEDIATELY if it is a default!")
        return True


def main(argv=None):
    parser = argparse.ArgumentParser(description="Initialize the BizHub database")
    parser.add_argument("--email", help="create an admin user with this email")
    parser.add_argument("--password", help="password for the admin user")
    parser.add_argument("--name", default="Administrator")
    args = parser.parse_args(argv)

    print("=" * 50)
    print("🔄 Initializing BizHub Database")
    print("=" * 50)

    app = create_app()
    init_database(app)

    if args.email:
        if not args.password:
            parser.error("--password is required with --email")
        print("\n" + "=" * 50)
        print("🔧 Admin Setup")
        print("=" * 50)
        return 0 if create_admin_user(app, args.email, args.password, args.name) else 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
