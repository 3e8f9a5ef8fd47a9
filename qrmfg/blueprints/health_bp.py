"""
Health check blueprint.

Endpoints:
    GET /api/v1/health/ready  — simple 200 for load balancers
    GET /api/v1/health/live   — database reachability and catalog size
"""

import logging
import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from qrmfg.models import db
from qrmfg.models.questionnaire import QuestionTemplate

logger = logging.getLogger(__name__)

health_bp = Blueprint("health_bp", __name__, url_prefix="/api/v1/health")


@health_bp.route("/ready", methods=["GET"])
def ready():
    """Simple readiness probe — always 200 if app is running."""
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    """Liveness check with dependency status."""
    checks = {}
    overall = True

    # ── Database ─────────────────────────────────────────────────────
    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        db_ms = (time.perf_counter() - t0) * 1000
        checks["database"] = {"status": "ok", "latency_ms": round(db_ms, 1)}
    except SQLAlchemyError as exc:
        db.session.rollback()
        checks["database"] = {"status": "error", "detail": str(exc)}
        overall = False
        logger.error("Health check: database unreachable: %s", exc)

    # ── Template catalog ─────────────────────────────────────────────
    if overall:
        active = db.session.execute(
            select(func.count()).select_from(QuestionTemplate).where(QuestionTemplate.is_active.is_(True))
        ).scalar()
        checks["templates"] = {"status": "ok" if active else "empty", "active": active}

    checks["integrations"] = {
        "cqs_provider": current_app.config.get("CQS_PROVIDER"),
        "workflow_gateway": current_app.config.get("WORKFLOW_GATEWAY"),
    }

    status_code = 200 if overall else 503
    return jsonify({
        "status": "healthy" if overall else "degraded",
        "checks": checks,
    }), status_code
