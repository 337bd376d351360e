# backend/boxcount/routes/integration.py
"""
Integration token admin endpoints and the token-authenticated export API.

/integration/export is the only route authenticated by bearer token instead
of the admin secret. It is read-only.
"""
from flask import Blueprint, request, jsonify, current_app
from boxcount.extensions import db
from boxcount.decorators import require_admin_secret, require_bearer_token
from boxcount.errors import ServiceError, InvalidInputError, error_response
from boxcount.services import integration_service
from boxcount.time_utils import to_utc_z, utcnow
from boxcount.validation import coerce_int, get_json_body, optional_datetime, require_bool


integration_bp = Blueprint("integration", __name__, url_prefix="/integration")


@integration_bp.get("/token")
@require_admin_secret
def get_token_config():
    """Current integration settings with the token masked."""
    try:
        config = integration_service.get_masked_config()
        db.session.commit()
        return jsonify(config), 200
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to read integration config")
        return jsonify({"error": "Failed to read integration config", "code": "SERVICE_ERROR"}), 500


@integration_bp.post("/token")
@require_admin_secret
def set_integration_enabled():
    """
    Enable or disable the export.

    Request body:
    {
        "enabled": bool,
        "credential": str
    }

    Returns:
        200: Updated (masked) config
        403: Enabling while the system is blocked
    """
    try:
        data = get_json_body(request)
        if "enabled" not in data:
            raise InvalidInputError("enabled is required")

        config = integration_service.set_enabled(require_bool("enabled", data["enabled"]))
        db.session.commit()

        current_app.logger.info("Integration %s", "enabled" if config.enabled else "disabled")
        return jsonify(config.to_dict()), 200

    except ServiceError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update integration config")
        return jsonify({"error": "Failed to update integration config", "code": "SERVICE_ERROR"}), 500


@integration_bp.put("/token")
@require_admin_secret
def rotate_token():
    """
    Generate a new token. The plaintext is returned only in this response.

    Returns:
        200: {"token": str, "expiresAt": str}
    """
    try:
        token, config = integration_service.generate_token()
        db.session.commit()

        current_app.logger.info("Integration token rotated (%s)", config.token_hint)
        return jsonify({"token": token, "expiresAt": to_utc_z(config.expires_at)}), 200

    except ServiceError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to rotate integration token")
        return jsonify({"error": "Failed to rotate integration token", "code": "SERVICE_ERROR"}), 500


@integration_bp.get("/export")
@require_bearer_token
def export_counts(bearer_token: str):
    """
    Read-only export of count records.

    Headers:
        Authorization: Bearer <integration token>

    Query parameters (all optional, combined with AND):
        storeId, assetId: exact filters
        since: ISO-8601; only records strictly newer

    Returns:
        200: {"count": int, "timestamp": str, "data": [...]}
        401: Invalid or expired token
        403: Integration disabled
    """
    try:
        since = optional_datetime("since", request.args.get("since"))

        integration_service.authorize(
            bearer_token,
            source_ip=request.headers.get("X-Forwarded-For", request.remote_addr),
            user_agent=request.headers.get("User-Agent"),
        )
        db.session.commit()

        records = integration_service.export_records(
            store_id=request.args.get("storeId"),
            asset_id=request.args.get("assetId"),
            since=since,
        )
        return jsonify({
            "count": len(records),
            "timestamp": to_utc_z(utcnow()),
            "data": [r.to_dict() for r in records],
        }), 200

    except ServiceError as e:
        db.session.rollback()
        if e.status_code in (401, 403):
            current_app.logger.warning("Integration export refused: %s", e.code)
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to serve integration export")
        return jsonify({"error": "Failed to process the request", "code": "SERVICE_ERROR"}), 500


@integration_bp.get("/logs")
@require_admin_secret
def access_logs():
    """
    Recent export accesses.

    Query parameters:
        limit: Max rows (default 50)
        since: ISO-8601 lower bound
    """
    try:
        result = integration_service.list_access_logs(
            limit=coerce_int("limit", request.args.get("limit", integration_service.DEFAULT_LOG_LIMIT)),
            since=optional_datetime("since", request.args.get("since")),
        )
        return jsonify(result), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list integration logs")
        return jsonify({"error": "Failed to list integration logs", "code": "SERVICE_ERROR"}), 500
