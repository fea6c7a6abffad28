"""
Health check blueprint.

Endpoints:
    GET /api/v1/health  — liveness with a database round-trip
"""

import logging
import time

from flask import Blueprint, jsonify

from sitebook.models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/v1")


@health_bp.route("/health", methods=["GET"])
def health():
    checks = {}
    overall = True
    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        db_ms = (time.perf_counter() - t0) * 1000
        checks["database"] = {"status": "ok", "latency_ms": round(db_ms, 1)}
    except Exception as exc:
        checks["database"] = {"status": "error", "detail": str(exc)}
        overall = False
        logger.error("Health check, database failed: %s", exc)

    body = {"status": "ok" if overall else "degraded", "app": "SiteBook", "checks": checks}
    return jsonify(body), 200 if overall else 503
