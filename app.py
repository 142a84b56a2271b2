import logging

import click
from flask import Flask, jsonify, request, g
from flask_migrate import Migrate
from sqlalchemy.exc import OperationalError

from config import Config
from models import db
from models.user import User
from routes import (
    health_bp,
    auth_bp,
    zones_bp,
    booking_bp,
    wizard_bp,
    admin_bp,
    manage_bp,
    audit_logs_bp,
)
from security.csrf import CSRF_EXEMPT_PATHS, require_csrf
from services.errors import BookingError, TransportFailure
from utils.accounts import AccountError, create_account
from utils.auth_context import load_current_user
from utils.logging_setup import setup_logging
from utils.seed import DEFAULT_ROLES, get_role, seed_roles

log = logging.getLogger(__name__)


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    setup_logging(app.config.get("LOG_LEVEL", "INFO"))

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(zones_bp)
    app.register_blueprint(booking_bp)
    app.register_blueprint(wizard_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(manage_bp)
    app.register_blueprint(audit_logs_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    with app.app_context():
        if app.config.get("AUTO_CREATE_TABLES"):
            db.create_all()
        seed_roles()

    @app.before_request
    def _load_user():
        load_current_user()

    @app.before_request
    def _csrf_protect():
        # Only protect state-changing requests
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            if request.path in CSRF_EXEMPT_PATHS:
                return None

            # Only enforce CSRF once the caller holds a cookie session
            if getattr(g, "user", None) is not None:
                failure = require_csrf()
                if failure:
                    return failure

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    @app.errorhandler(BookingError)
    def _booking_error(e):
        return jsonify(**e.to_dict()), e.status_code

    @app.errorhandler(OperationalError)
    def _storage_unavailable(e):
        db.session.rollback()
        log.error("%s %s failed to reach storage: %s", request.method, request.path, e)
        failure = TransportFailure("Storage is unavailable, please try again")
        return jsonify(**failure.to_dict()), failure.status_code

    register_cli(app)

    return app

#-------------------------

def register_cli(app):
    @app.cli.command("create-user")
    @click.argument("username")
    @click.option("--role", default="STUDENT", show_default=True,
                  type=click.Choice(DEFAULT_ROLES, case_sensitive=False))
    @click.option("--full-name", default=None)
    @click.password_option()
    def create_user(username, role, full_name, password):
        """Create a login account (use --role ADMIN for the first administrator)."""
        try:
            user = create_account(username, password, role=role, full_name=full_name)
        except AccountError as e:
            db.session.rollback()
            click.echo(f"Error: {e}")
            return
        db.session.commit()

        click.echo(f"{user.username} created with role {role.upper()}")

    @app.cli.command("make-admin")
    @click.argument("username")
    def make_admin(username):
        """Grant ADMIN to an existing account (bootstrap)."""
        user = User.query.filter_by(username=username.strip()).first()
        if not user:
            click.echo("User not found")
            return

        admin_role = get_role("ADMIN")
        if admin_role not in user.roles:
            user.roles.append(admin_role)
        db.session.commit()

        click.echo(f"{user.username} promoted to ADMIN")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
