"""
SiteBook
Flask Application Factory.

Usage:
    from sitebook import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event

from sitebook.config import config
from sitebook.middleware.jwt_auth import init_jwt_middleware
from sitebook.middleware.logging_config import configure_logging
from sitebook.middleware.rate_limiter import init_rate_limits
from sitebook.middleware.timing import init_request_timing
from sitebook.models import db
from sitebook.services.approval_policy import init_approval_policy
from sitebook.utils.errors import register_error_handlers

logger = logging.getLogger(__name__)


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
    default_limits=[],                     # no global limit, applied per blueprint
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
    config_cls = config[config_name]
    app.config.from_object(config_cls() if config_name == "production" else config_cls)

    configure_logging(app)

    if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite:///") and ":memory:" not in app.config[
        "SQLALCHEMY_DATABASE_URI"
    ]:
        os.makedirs(app.instance_path, exist_ok=True)

    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    init_approval_policy(app)
    init_request_timing(app)
    init_jwt_middleware(app)
    register_error_handlers(app)

    app.config.setdefault("MAX_CONTENT_LENGTH", 2 * 1024 * 1024)  # 2 MB

    # ── Import all models so create_all() sees every table ───────────────
    from sitebook.models import audit as _audit_models              # noqa: F401
    from sitebook.models import auth as _auth_models                # noqa: F401
    from sitebook.models import finance as _finance_models          # noqa: F401
    from sitebook.models import materials as _materials_models      # noqa: F401
    from sitebook.models import notification as _notification_models  # noqa: F401
    from sitebook.models import project as _project_models          # noqa: F401
    from sitebook.models import site as _site_models                # noqa: F401

    with app.app_context():
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except Exception as e:
            app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from sitebook.blueprints.approval_bp import approval_bp
    from sitebook.blueprints.audit_bp import audit_bp
    from sitebook.blueprints.auth_bp import auth_bp
    from sitebook.blueprints.entities_bp import entities_bp
    from sitebook.blueprints.finance_bp import finance_bp
    from sitebook.blueprints.health_bp import health_bp
    from sitebook.blueprints.notification_bp import notification_bp
    from sitebook.blueprints.projects_bp import projects_bp
    from sitebook.blueprints.users_bp import users_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(projects_bp)
    app.register_blueprint(approval_bp)
    app.register_blueprint(audit_bp)
    app.register_blueprint(notification_bp)
    app.register_blueprint(finance_bp)
    # Generic /<kind> routes last
    app.register_blueprint(entities_bp)

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "code": "ERR_NOT_FOUND", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error", "code": "ERR_INTERNAL"}, 500

    init_rate_limits(app, limiter)

    return app
