"""
QRMFG Plant Questionnaire Service
Flask Application Factory.

Usage:
    from qrmfg import create_app
    app = create_app()           # APP_ENV, else "development"
    app = create_app("testing")
"""

import logging
import os

from flask import Flask, abort, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy.exc import SQLAlchemyError

from qrmfg.config import config
from qrmfg.middleware.logging_config import configure_logging
from qrmfg.middleware.rate_limiter import init_rate_limits
from qrmfg.middleware.timing import init_request_timing
from qrmfg.models import db
from qrmfg.utils.errors import E, api_error

logger = logging.getLogger(__name__)

MAX_BODY_BYTES = 2 * 1024 * 1024
_MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH"})


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],  # per-blueprint limits only, see middleware.rate_limiter
    storage_uri=os.getenv("RATELIMIT_STORAGE_URI", "memory://"),
)


def create_app(config_name=None):
    """
    Build the questionnaire service.

    Args:
        config_name: "development", "testing" or "production".
                     Defaults to the APP_ENV env var, then "development".
    """
    config_name = config_name or os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    config_cls = config[config_name]
    # ProductionConfig checks its environment when instantiated
    app.config.from_object(config_cls() if config_name == "production" else config_cls)
    app.config.setdefault("MAX_CONTENT_LENGTH", MAX_BODY_BYTES)

    configure_logging(app)

    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    origins = [o.strip() for o in (app.config.get("CORS_ORIGINS") or "").split(",") if o.strip()]
    CORS(app, origins=origins if origins and origins != ["*"] else "*")

    init_request_timing(app)
    app.before_request(_guard_request)

    _create_tables(app)
    _register_blueprints(app)
    _register_cli(app)
    _register_error_handlers(app)

    init_rate_limits(app, limiter)
    return app


def _guard_request():
    """Reject oversized bodies and non-JSON writes to the API."""
    max_len = request.max_content_length
    if max_len and request.content_length and request.content_length > max_len:
        abort(413, description="Request body too large")
    if request.method in _MUTATING_METHODS and request.path.startswith("/api/"):
        if request.data and "json" not in (request.content_type or ""):
            abort(415, description="Content-Type must be application/json")


def _create_tables(app):
    from qrmfg.models import cqs, plant_response, questionnaire, workflow  # noqa: F401

    with app.app_context():
        try:
            db.create_all()
        except SQLAlchemyError as exc:
            # migrations may own the schema; the app can still serve reads
            app.logger.warning("db.create_all() failed: %s", exc)


def _register_blueprints(app):
    from qrmfg.blueprints.cqs_admin_bp import cqs_admin_bp
    from qrmfg.blueprints.health_bp import health_bp
    from qrmfg.blueprints.plant_questionnaire_bp import plant_questionnaire_bp

    app.register_blueprint(plant_questionnaire_bp)
    app.register_blueprint(cqs_admin_bp)
    app.register_blueprint(health_bp)

    @app.route("/api/v1/health")
    def health():
        return {"status": "ok", "app": "QRMFG Plant Questionnaire"}


def _register_cli(app):
    @app.cli.command("seed-question-templates")
    def seed_question_templates_cmd():
        """Seed the default plant MSDS questionnaire (idempotent)."""
        from qrmfg.services.template_catalog import seed_default_templates

        count = seed_default_templates()
        db.session.commit()
        logger.info("Seeded %s new question templates", count)

    @app.cli.command("seed-cqs-demo")
    def seed_cqs_demo_cmd():
        """Seed demo CQS hazard data for MAT001..MAT005 (idempotent)."""
        from qrmfg.services.cqs_sync_service import seed_demo_materials

        count = seed_demo_materials()
        db.session.commit()
        logger.info("Seeded %s demo CQS materials", count)


def _register_error_handlers(app):
    @app.errorhandler(404)
    def not_found(e):
        return api_error(E.NOT_FOUND, "Not found", details={"path": request.path})

    @app.errorhandler(405)
    def method_not_allowed(e):
        return api_error(E.METHOD_NOT_ALLOWED, "Method not allowed", details={"method": request.method})

    @app.errorhandler(413)
    def too_large(e):
        return api_error(E.PAYLOAD_TOO_LARGE, e.description)

    @app.errorhandler(415)
    def unsupported_media(e):
        return api_error(E.UNSUPPORTED_MEDIA_TYPE, e.description)

    @app.errorhandler(429)
    def rate_limited(e):
        return api_error(E.RATE_LIMITED, "Too many requests", details={"limit": e.description})

    @app.errorhandler(500)
    def server_error(e):
        logger.error("Unhandled error on %s %s", request.method, request.path, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")
