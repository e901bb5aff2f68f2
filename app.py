import logging

import click
from flask import Flask, jsonify
from flask_migrate import Migrate
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from config import Config
from routes import health_bp, auth_bp, admin_sessions_bp, admin_users_bp

from models import db
from models.user import User
from security import attempts, session as session_store
from security.credentials import normalize_email
from security.errors import AuthError
from security.password import hash_password
from security.recovery import reset_sessions_on_startup
from utils.auth_context import auth_error_response, load_current_user

logger = logging.getLogger(__name__)


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_sessions_bp)
    app.register_blueprint(admin_users_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # Sessions marked valid by a previous process would lock their owners out
    if app.config.get("RESET_SESSIONS_ON_STARTUP"):
        with app.app_context():
            reset_sessions_on_startup()

    @app.before_request
    def _load_user():
        load_current_user()

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Cache-Control"] = "no-store"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_error_handlers(app)
    register_cli(app)

    return app


def register_error_handlers(app):
    @app.errorhandler(AuthError)
    def _auth_error(err):
        return auth_error_response(err)

    @app.errorhandler(HTTPException)
    def _http_error(err):
        return jsonify(success=False, error=err.description, code=err.name.upper().replace(" ", "_")), err.code

    @app.errorhandler(SQLAlchemyError)
    def _db_error(err):
        db.session.rollback()
        logger.error("Database error: %s", err)
        return jsonify(success=False, error="Internal server error", code="INTERNAL_ERROR"), 500

    @app.errorhandler(Exception)
    def _unhandled(err):
        logger.exception("Unhandled error")
        return jsonify(success=False, error="Internal server error", code="INTERNAL_ERROR"), 500


#-------------------------

def register_cli(app):
    @app.cli.command("create-user")
    @click.argument("email")
    @click.argument("password")
    @click.option("--name", default=None, help="Display name.")
    @click.option("--admin", "is_admin", is_flag=True, help="Create the user as an admin.")
    @click.option("--approved", is_flag=True, help="Mark the user approved for login.")
    def create_user(email, password, name, is_admin, approved):
        """Create a user (bootstrap)."""
        email = normalize_email(email)
        if User.query.filter_by(email=email).first():
            click.echo("User already exists")
            return

        user = User(
            email=email,
            name=name,
            password_hash=hash_password(password),
            is_admin=is_admin,
            is_approved=approved or is_admin,
        )
        db.session.add(user)
        db.session.commit()
        click.echo(f"Created {user.email} (id={user.id})")

    @app.cli.command("make-admin")
    @click.argument("email")
    def make_admin(email):
        """Promote a user to admin by email."""
        user = User.query.filter_by(email=normalize_email(email)).first()
        if not user:
            click.echo("User not found")
            return

        user.is_admin = True
        user.is_approved = True
        db.session.commit()
        click.echo(f"{user.email} promoted to admin")

    @app.cli.command("cleanup-sessions")
    @click.option("--inactive-minutes", type=int, default=None,
                  help="Invalidate valid sessions idle longer than this.")
    def cleanup_sessions(inactive_minutes):
        """Invalidate stale sessions and purge old bookkeeping rows."""
        stale = session_store.cleanup_stale(inactive_minutes)
        old = session_store.cleanup_old_sessions()
        old_attempts = attempts.cleanup_old()
        switches = attempts.cleanup_old_switches()
        bans = attempts.cleanup_expired_bans()
        click.echo(
            f"stale={stale} old_sessions={old} old_attempts={old_attempts} "
            f"old_switches={switches} expired_bans={bans}"
        )

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
