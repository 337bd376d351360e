# backend/boxcount/routes/system.py
"""
System health, availability status and schedule endpoints.
"""

import time
from flask import Blueprint, current_app, jsonify, request
from ..extensions import db
from ..decorators import require_admin_secret
from ..errors import ServiceError, InvalidInputError, error_response
from ..models import Store, Asset
from ..services import availability_service
from ..validation import get_json_body, require_bool
from boxcount.time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and that the reference lists are loaded.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        store_count = db.session.query(Store).count()
        asset_count = db.session.query(Asset).count()

        elapsed_ms = (time.time() - start_time) * 1000

        details = {"stores": store_count, "assets": asset_count}
        if not store_count or not asset_count:
            return {
                "status": "degraded",
                "latency_ms": round(elapsed_ms, 2),
                "warning": "Store or asset reference list is empty",
                "details": details,
            }
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": details,
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_configuration_health() -> dict:
    """Admin routes fail closed without ADMIN_SECRET; surface that here."""
    if not current_app.config.get("ADMIN_SECRET"):
        return {"status": "degraded", "warning": "ADMIN_SECRET is not configured"}
    return {"status": "healthy"}


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    config_health = check_configuration_health()

    all_checks = [database_health, config_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status, http_status = "unhealthy", 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "configuration": config_health,
        }
    }, http_status


@system_bp.get("/system/status")
def get_status():
    """
    Persisted availability, as-is.

    Returns:
        200: {"blocked": bool, "mode": "manual"|"automatic", "window"?: {...}}
    """
    try:
        status = availability_service.get_status()
        db.session.commit()
        return jsonify(status), 200
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to read system status")
        return jsonify({"error": "Failed to read system status", "code": "SERVICE_ERROR"}), 500


@system_bp.post("/system/status")
@require_admin_secret
def set_status():
    """
    Manual override; also switches the system to manual mode.

    Request body:
    {
        "blocked": bool,
        "credential": str
    }
    """
    try:
        data = get_json_body(request)
        if "blocked" not in data:
            raise InvalidInputError("blocked is required")

        config = availability_service.set_manual(require_bool("blocked", data["blocked"]))
        db.session.commit()

        current_app.logger.info("System manually %s", "blocked" if config.blocked else "unblocked")
        return jsonify(config.to_dict()), 200

    except ServiceError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update system status")
        return jsonify({"error": "Failed to update system status", "code": "SERVICE_ERROR"}), 500


@system_bp.post("/system/schedule")
@require_admin_secret
def set_schedule():
    """
    Set mode and counting window; reconciles immediately when the window is complete.

    Request body:
    {
        "mode": "manual" | "automatic",
        "window": {"startDate": "YYYY-MM-DD", "startTime": "HH:MM",
                   "endDate": "YYYY-MM-DD", "endTime": "HH:MM"},
        "credential": str
    }
    """
    try:
        data = get_json_body(request)
        if data.get("mode") is None:
            raise InvalidInputError("mode is required")

        config, result = availability_service.set_schedule(data["mode"], data.get("window"))
        db.session.commit()

        current_app.logger.info(
            "Schedule set: mode=%s window=%s blocked=%s", config.mode, config.window_dict(), config.blocked
        )
        body = config.to_dict()
        body["reconcile"] = result.to_dict() if result else None
        return jsonify(body), 200

    except ServiceError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update schedule")
        return jsonify({"error": "Failed to update schedule", "code": "SERVICE_ERROR"}), 500


@system_bp.get("/system/reconcile")
def reconcile():
    """
    Recompute blocked from the schedule and persist it if it changed.

    Idempotent; clients poll this (about once a minute) while a page is open.
    """
    try:
        result = availability_service.reconcile()
        db.session.commit()

        if result.changed:
            current_app.logger.info(
                "System automatically %s by schedule", "blocked" if result.blocked else "unblocked"
            )
        return jsonify(result.to_dict()), 200

    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to reconcile system status")
        return jsonify({"error": "Failed to reconcile system status", "code": "SERVICE_ERROR"}), 500
