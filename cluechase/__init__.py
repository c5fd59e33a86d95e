"""
ClueChase
Flask Application Factory.

Usage:
    from cluechase import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask, request, send_from_directory
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from cluechase.config import config
from cluechase.integrations.evidence_storage import LocalEvidenceStorage
from cluechase.middleware.identity import init_identity_middleware
from cluechase.middleware.logging_config import configure_logging
from cluechase.middleware.rate_limiter import init_rate_limits
from cluechase.middleware.timing import init_request_timing
from cluechase.models import db

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


limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # limits are set per blueprint
    storage_uri=os.getenv("REDIS_URL", "memory://"),
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
    cfg = config[config_name]
    # ProductionConfig validates required env vars on instantiation
    app.config.from_object(cfg() if config_name == "production" else cfg)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # SQLite dev database lives under instance/
    db_uri = app.config.get("SQLALCHEMY_DATABASE_URI") or ""
    if db_uri.startswith("sqlite:///") and ":memory:" not in db_uri:
        os.makedirs(os.path.dirname(db_uri[len("sqlite:///"):]), exist_ok=True)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Evidence storage backend ─────────────────────────────────────────
    app.extensions["evidence_storage"] = LocalEvidenceStorage(
        app.config["UPLOAD_FOLDER"], app.config.get("UPLOAD_BASE_URL", "/uploads"),
    )

    # ── Request middleware ───────────────────────────────────────────────
    init_request_timing(app)
    init_identity_middleware(app)

    # ── Import all models so create_all sees them ────────────────────────
    from cluechase.models import clue as _clue_models              # noqa: F401
    from cluechase.models import game as _game_models              # noqa: F401
    from cluechase.models import submission as _submission_models  # noqa: F401
    from cluechase.models import team as _team_models              # noqa: F401

    with app.app_context():
        db.create_all()

    # ── Blueprints ───────────────────────────────────────────────────────
    from cluechase.blueprints.clue_bp import clue_bp
    from cluechase.blueprints.evidence_bp import evidence_bp
    from cluechase.blueprints.game_bp import game_bp
    from cluechase.blueprints.health_bp import health_bp
    from cluechase.blueprints.submission_bp import submission_bp
    from cluechase.blueprints.team_bp import team_bp

    app.register_blueprint(game_bp)
    app.register_blueprint(team_bp)
    app.register_blueprint(submission_bp)
    app.register_blueprint(clue_bp)
    app.register_blueprint(evidence_bp)
    app.register_blueprint(health_bp)

    upload_base = app.config.get("UPLOAD_BASE_URL", "/uploads").rstrip("/")
    if upload_base.startswith("/"):
        @app.route(f"{upload_base}/<path:filename>", methods=["GET"])
        def uploaded_file(filename):
            return send_from_directory(app.config["UPLOAD_FOLDER"], filename)

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

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
