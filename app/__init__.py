"""
ReqBridge
Flask Application Factory.

Usage:
    from app import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask, jsonify, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.auth import init_auth
from app.config import config
from app.core.exceptions import AIServiceError, ReqBridgeError
from app.middleware.logging_config import configure_logging
from app.middleware.rate_limiter import init_rate_limits
from app.middleware.security_headers import init_security_headers
from app.middleware.timing import init_request_timing
from app.models import db
from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)


# ── SQLite FK enforcement (global engine event) ─────────────────────────
@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # no global limit — apply per-blueprint
    storage_uri=os.getenv("RATELIMIT_STORAGE_URI", "memory://"),
)


def _import_models():
    """Import every model module so create_all and Alembic see the tables."""
    from app.models import activity, ai, auth, customer, document  # noqa: F401
    from app.models import email, project, requirement, roles  # noqa: F401
    from app.models import settings, workflow  # noqa: F401


def register_error_handlers(app):
    """Map service-layer exceptions and HTTP errors to JSON bodies."""

    @app.errorhandler(ReqBridgeError)
    def _domain_error(e):
        if isinstance(e, AIServiceError):
            logger.warning("AI service error on %s: %s", request.path, e)
        else:
            logger.debug("%s on %s: %s", type(e).__name__, request.path, e)
        return api_error(e.code, e.message, details=e.details)

    @app.errorhandler(IntegrityError)
    def _integrity_error(e):
        db.session.rollback()
        logger.warning("Integrity error on %s: %s", request.path, e.orig)
        return api_error(E.CONFLICT, "Duplicate or constraint violation")

    @app.errorhandler(SQLAlchemyError)
    def _database_error(e):
        db.session.rollback()
        logger.error("Database error on %s: %s", request.path, e, exc_info=True)
        return api_error(E.DATABASE, "Database error")

    @app.errorhandler(404)
    def not_found(e):
        return api_error(E.NOT_FOUND, "Not found", path=request.path)

    @app.errorhandler(405)
    def method_not_allowed(e):
        return api_error(E.METHOD_NOT_ALLOWED, "Method not allowed")

    @app.errorhandler(413)
    def too_large(e):
        return api_error(E.PAYLOAD_TOO_LARGE, "Request body too large")

    @app.errorhandler(429)
    def rate_limited(e):
        return api_error(E.RATE_LIMITED, "Too many requests", retry_after=e.description)

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")


def register_cli(app):
    @app.cli.command("create-admin")
    @click.argument("username")
    @click.argument("email")
    @click.password_option()
    def create_admin_cmd(username, email, password):
        """Create an admin account."""
        from app.services import user_service
        user = user_service.create_user(username, password, email, role="admin")
        click.echo(f"Created admin user {user.username} (id={user.id})")

    @app.cli.command("reset-settings")
    def reset_settings_cmd():
        """Restore application settings to their defaults."""
        from app.services import settings_service
        settings_service.reset_settings(user_id=None)
        click.echo("Application settings reset to defaults.")


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    cfg = config[config_name]
    # ProductionConfig validates required env vars in __init__
    app.config.from_object(cfg() if config_name == "production" else cfg)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()],
             supports_credentials=True)
    else:
        CORS(app, supports_credentials=True)

    # ── Request timing first so rejected requests are timed too ──────────
    init_request_timing(app)

    # ── Authentication & CSRF middleware ──────────────────────────────────
    init_auth(app)

    # ── Security headers ─────────────────────────────────────────────────
    init_security_headers(app)

    # ── Models + tables ──────────────────────────────────────────────────
    _import_models()
    os.makedirs(app.config["UPLOAD_FOLDER"], exist_ok=True)
    if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite:///") \
            and ":memory:" not in app.config["SQLALCHEMY_DATABASE_URI"]:
        os.makedirs(app.instance_path, exist_ok=True)

    with app.app_context():
        db.create_all()
        app.logger.info("db.create_all() completed successfully")

    # ── Blueprints ───────────────────────────────────────────────────────
    from app.blueprints import register_blueprints
    register_blueprints(app)

    @app.route("/api/v1/health")
    def health_check():
        return jsonify({"status": "ok", "app": "ReqBridge"})

    register_error_handlers(app)
    register_cli(app)

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
