"""
Health probes.

    GET /api/v1/health/ready   process is up (load balancer)
    GET /api/v1/health/live    database round trip, upload storage and
                               which AI providers are configured

``/live`` answers 503 with ``status: degraded`` when the database or the
upload folder is unusable. Missing AI keys are reported but never degrade
the service; analysis endpoints fail on their own with a clear message.
"""

import logging
import os
import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError

from app.models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/v1/health")

_PROVIDER_KEYS = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "huggingface": "HUGGINGFACE_API_KEY",
}


def _check_database() -> dict:
    started = time.perf_counter()
    try:
        db.session.execute(db.text("SELECT 1"))
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Liveness: database check failed: %s", exc)
        return {"status": "error", "detail": exc.__class__.__name__}
    return {"status": "ok", "latency_ms": round((time.perf_counter() - started) * 1000, 1)}


def _check_storage() -> dict:
    folder = current_app.config["UPLOAD_FOLDER"]
    if os.path.isdir(folder) and os.access(folder, os.W_OK):
        return {"status": "ok"}
    logger.error("Liveness: upload folder %s is not writable", folder)
    return {"status": "error", "detail": "upload folder not writable"}


def _ai_providers() -> dict:
    cfg = current_app.config
    return {
        "configured": sorted(name for name, key in _PROVIDER_KEYS.items() if cfg.get(key)),
        "stub_fallback": bool(cfg.get("AI_STUB_FALLBACK")),
    }


@health_bp.route("/ready", methods=["GET"])
def ready():
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    checks = {
        "database": _check_database(),
        "storage": _check_storage(),
        "ai": _ai_providers(),
        "app": {
            "name": "ReqBridge",
            "debug": current_app.debug,
            "testing": current_app.testing,
        },
    }
    healthy = all(checks[name]["status"] == "ok" for name in ("database", "storage"))
    return jsonify({
        "status": "healthy" if healthy else "degraded",
        "checks": checks,
    }), 200 if healthy else 503
