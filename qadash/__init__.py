"""
qadash — test-case dashboard data-flow service.
Flask Application Factory.

Usage:
    from qadash import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import asyncio
import logging
import os

from flask import Flask, request
from flask_cors import CORS
from sqlalchemy.pool import NullPool

from qadash.config import config
from qadash.middleware.logging_config import configure_logging
from qadash.middleware.timing import init_request_timing
from qadash.models import create_engine
from qadash.models.gateway import SqlAlchemyGateway
from qadash.services.data_flow import DataFlowService

logger = logging.getLogger(__name__)


def _ensure_sqlite_dir(engine):
    if engine.dialect.name != "sqlite":
        return
    database = engine.url.database
    if database and database != ":memory:":
        os.makedirs(os.path.dirname(os.path.abspath(database)), exist_ok=True)


def create_app(config_name=None, config_overrides=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.
        config_overrides: Mapping applied on top of the selected config
                     (tests point DATABASE_URL at a temporary file this way).

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name]())
    if config_overrides:
        app.config.update(config_overrides)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── CORS ─────────────────────────────────────────────────────────────
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Persistence gateway ──────────────────────────────────────────────
    # Async views run on a fresh event loop per request: no pooled
    # connections may outlive the loop that opened them.
    engine = create_engine(app.config["DATABASE_URL"], poolclass=NullPool)
    _ensure_sqlite_dir(engine)
    gateway = SqlAlchemyGateway(engine)
    if app.config.get("AUTO_CREATE_SCHEMA"):
        asyncio.run(gateway.create_schema())
        logger.info("Schema ensured on %s", engine.url.render_as_string(hide_password=True))

    app.extensions["persistence_gateway"] = gateway
    app.extensions["data_flow"] = DataFlowService.from_config(gateway, app.config)

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── Blueprints ───────────────────────────────────────────────────────
    from qadash.blueprints.data_flow_bp import data_flow_bp

    app.register_blueprint(data_flow_bp)

    # ── Health check ─────────────────────────────────────────────────────
    @app.route("/api/v1/health")
    def health():
        return {"status": "ok", "app": "qadash"}

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error"}, 500

    return app
