"""
Probes for the load balancer and on-call.

    GET /api/v1/health/ready   process is up
    GET /api/v1/health/live    survey database answers a trivial query
    GET /api/v1/health/agent   analysis service answers its /health
"""

import logging
import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError

from sentiment.models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health_bp", __name__, url_prefix="/api/v1/health")


def _database_check() -> dict:
    started = time.perf_counter()
    try:
        db.session.execute(db.text("SELECT 1"))
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Database probe failed: %s", exc)
        return {"status": "error", "detail": str(exc)}
    return {"status": "ok", "latency_ms": round((time.perf_counter() - started) * 1000, 1)}


@health_bp.route("/ready", methods=["GET"])
def ready():
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    database = _database_check()
    healthy = database["status"] == "ok"
    body = {
        "status": "healthy" if healthy else "degraded",
        "checks": {
            "database": database,
            "app": {"debug": current_app.debug, "testing": current_app.testing},
        },
    }
    return jsonify(body), 200 if healthy else 503


@health_bp.route("/agent", methods=["GET"])
def agent():
    """Reachability of the analysis service, using its short health timeout."""
    gateway = current_app.extensions["analysis_gateway"]
    probe = gateway.health()
    body = {
        "status": "ok" if probe.ok else "unavailable",
        "url": gateway.base_url,
        "status_code": probe.status_code,
        "latency_ms": probe.duration_ms,
    }
    if not probe.ok:
        logger.warning("Analysis service probe failed: %s", probe.error,
                       extra={"analysis_endpoint": gateway.base_url})
        body["error"] = probe.error
        return jsonify(body), 503
    body["agent"] = probe.data
    return jsonify(body), 200
