"""
Shared Session Hub
Flask Application Factory.

Usage:
    from chatshare import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

from chatshare.config import config
from chatshare.models import db
from chatshare.middleware.jwt_auth import init_jwt_middleware
from chatshare.middleware.logging_config import configure_logging
from chatshare.middleware.rate_limiter import init_rate_limits
from chatshare.middleware.security_headers import init_security_headers
from chatshare.middleware.timing import init_request_timing

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine


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
    storage_uri=os.getenv("REDIS_URL") or "memory://",  # Redis in production, memory for dev
)


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
    # Instantiated so ProductionConfig can refuse missing secrets
    app.config.from_object(config[config_name]())
    os.makedirs(app.instance_path, exist_ok=True)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Security headers ─────────────────────────────────────────────────
    init_security_headers(app)

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── JWT identity (anonymous when absent or invalid) ──────────────────
    init_jwt_middleware(app)

    # ── Request guards (input length + Content-Type) ─────────────────────
    app.config.setdefault("MAX_CONTENT_LENGTH", 2 * 1024 * 1024)  # 2 MB

    @app.before_request
    def _guard_request():
        from flask import abort
        if request.method in ("POST", "PUT", "PATCH") and request.path.startswith("/api/"):
            ct = request.content_type or ""
            if request.data and "json" not in ct:
                abort(415, description="Content-Type must be application/json")

    # ── Import all models so Alembic can detect them ─────────────────────
    from chatshare.models import auth as _auth_models          # noqa: F401
    from chatshare.models import project as _project_models    # noqa: F401
    from chatshare.models import session as _session_models    # noqa: F401
    from chatshare.models import audit as _audit_models        # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS; migrations stay authoritative) ──
    if app.config.get("AUTO_CREATE_TABLES"):
        with app.app_context():
            try:
                db.create_all()
                app.logger.info("db.create_all() completed successfully")
            except Exception as e:
                app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from chatshare.blueprints.auth_bp import auth_bp
    from chatshare.blueprints.health_bp import health_bp
    from chatshare.blueprints.project_bp import project_bp
    from chatshare.blueprints.sharing_bp import sharing_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(health_bp)
    app.register_blueprint(project_bp)
    app.register_blueprint(sharing_bp)

    # ── Rate limiting (per blueprint) ────────────────────────────────────
    init_rate_limits(app, limiter)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("seed-admin")
    @click.option("--username", default=None, help="Defaults to DEFAULT_ADMIN_USERNAME.")
    @click.option("--password", default=None, help="Defaults to DEFAULT_ADMIN_PASSWORD.")
    def seed_admin_cmd(username, password):
        """Create the bootstrap admin account if it does not exist."""
        from chatshare.services.user_service import ensure_default_admin
        username = username or app.config["DEFAULT_ADMIN_USERNAME"]
        password = password or app.config.get("DEFAULT_ADMIN_PASSWORD")
        if not password:
            raise click.UsageError("Set DEFAULT_ADMIN_PASSWORD or pass --password")
        user, created = ensure_default_admin(username, password)
        if created:
            logger.info("Created admin user %s (id=%s)", user.username, user.id)
        else:
            logger.info("Admin user %s already exists", user.username)

    # ── Health check (detailed version at /api/health/live) ──────────────
    @app.route("/api/health")
    def health():
        return {"status": "ok", "app": "Shared Session Hub"}

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "code": "ERR_NOT_FOUND", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(415)
    def unsupported_media(e):
        return {"error": e.description or "Unsupported media type"}, 415

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "detail": str(e.description)}, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error", "code": "ERR_INTERNAL"}, 500

    return app
