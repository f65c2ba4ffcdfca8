"""
Employee Sentiment Survey Platform.

    from sentiment import create_app
    app = create_app()            # APP_ENV, else "development"
    app = create_app("testing")
"""

import logging
import os

from flask import Flask
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event
from sqlalchemy.exc import SQLAlchemyError

from sentiment.ai.analysis_runner import AnalysisRunner
from sentiment.config import config
from sentiment.integrations.analysis_gateway import AnalysisGateway
from sentiment.middleware.jwt_auth import init_jwt_middleware
from sentiment.middleware.logging_config import configure_logging
from sentiment.middleware.rate_limiter import init_rate_limits
from sentiment.middleware.tenant_context import init_tenant_context
from sentiment.middleware.timing import init_request_timing
from sentiment.models import db
from sentiment.utils.errors import E, api_error

logger = logging.getLogger(__name__)

MAX_BODY_BYTES = 1024 * 1024

migrate = Migrate()
# Limits are attached per blueprint in init_rate_limits.
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],
    storage_uri=os.getenv("REDIS_URL", "memory://"),
)


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _sqlite_foreign_keys(dbapi_conn, connection_record):
    # Reset cascades from companies to employees and answers rely on this.
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def _load_config(app, config_name):
    config_cls = config[config_name]
    # ProductionConfig checks its env vars in __init__
    app.config.from_object(config_cls() if config_name == "production" else config_cls)
    app.config.setdefault("MAX_CONTENT_LENGTH", MAX_BODY_BYTES)


def _init_extensions(app):
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)

    origins = [o.strip() for o in (app.config.get("CORS_ORIGINS") or "").split(",") if o.strip()]
    if origins and origins != ["*"]:
        CORS(app, origins=origins)
    else:
        CORS(app)


def _init_analysis(app):
    """One gateway per app; the runner schedules orchestration through it."""
    gateway = AnalysisGateway(
        base_url=app.config["ANALYSIS_SERVICE_URL"],
        timeout=app.config["ANALYSIS_TIMEOUT_SECONDS"],
        health_timeout=app.config["ANALYSIS_HEALTH_TIMEOUT_SECONDS"],
    )
    app.extensions["analysis_gateway"] = gateway
    app.extensions["analysis_runner"] = AnalysisRunner(
        gateway, app=app, run_in_background=app.config["ANALYSIS_RUN_IN_BACKGROUND"],
    )
    logger.info("Analysis service at %s", gateway.base_url,
                extra={"analysis_endpoint": gateway.base_url})


def _create_tables(app):
    # Registers every table on db.metadata before create_all / Alembic autogenerate.
    from sentiment.models import analysis, company, feedback, report, survey  # noqa: F401

    with app.app_context():
        try:
            db.create_all()
        except SQLAlchemyError as exc:
            logger.warning("Schema bootstrap skipped: %s", exc)


def _register_blueprints(app):
    from sentiment.blueprints.admin_bp import admin_bp
    from sentiment.blueprints.health_bp import health_bp
    from sentiment.blueprints.hr_bp import hr_bp
    from sentiment.blueprints.reports_bp import reports_bp
    from sentiment.blueprints.survey_bp import survey_bp

    for blueprint in (survey_bp, reports_bp, hr_bp, admin_bp, health_bp):
        app.register_blueprint(blueprint)


def _register_http_errors(app):
    """JSON bodies for errors raised by Flask itself rather than our services."""

    @app.errorhandler(404)
    def _not_found(exc):
        return api_error(E.NOT_FOUND, "No such endpoint")

    @app.errorhandler(405)
    def _method_not_allowed(exc):
        return api_error(E.METHOD_NOT_ALLOWED, "Method not allowed")

    @app.errorhandler(413)
    def _too_large(exc):
        return api_error(E.PAYLOAD_TOO_LARGE, "Request body too large",
                         details={"limit_bytes": app.config["MAX_CONTENT_LENGTH"]})

    @app.errorhandler(429)
    def _rate_limited(exc):
        return api_error(E.RATE_LIMITED, "Too many requests", details={"limit": str(exc.description)})

    @app.errorhandler(500)
    def _server_error(exc):
        logger.error("Unhandled server error: %s", exc, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")


def create_app(config_name=None):
    config_name = config_name or os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    _load_config(app, config_name)
    configure_logging(app)

    _init_extensions(app)
    _init_analysis(app)

    # Order matters: request id, then token, then caller.
    init_request_timing(app)
    init_jwt_middleware(app)
    init_tenant_context(app)

    _create_tables(app)
    _register_blueprints(app)
    _register_http_errors(app)
    init_rate_limits(app, limiter)
    return app
