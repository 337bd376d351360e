# backend/boxcount/routes/admin.py
"""
Admin-only maintenance endpoints.
"""
from flask import Blueprint, request, jsonify, current_app
from boxcount.extensions import db
from boxcount.decorators import check_admin_credential, require_admin_secret
from boxcount.errors import ServiceError, ConfigurationError, UnauthorizedError, error_response
from boxcount.services import maintenance_service
from boxcount.validation import get_json_body


admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


@admin_bp.post("/verify")
def verify_credential():
    """
    Check an admin credential without doing anything else.

    Returns:
        200: {"authorized": bool}
        500: ADMIN_SECRET not configured
    """
    try:
        data = get_json_body(request)
        check_admin_credential(data.get("credential"))
        return jsonify({"authorized": True}), 200
    except UnauthorizedError:
        return jsonify({"authorized": False}), 200
    except ConfigurationError as e:
        current_app.logger.error("ADMIN_SECRET is not configured")
        return error_response(e)
    except ServiceError as e:
        return error_response(e)


@admin_bp.post("/cleanup")
@require_admin_secret
def cleanup():
    """
    Bulk delete count records.

    Request body:
    {
        "cleanupType": "all" | "inventory" | "transit" | "custom",
        "storeId": str (custom only),
        "credential": str
    }
    """
    try:
        data = get_json_body(request)
        results = maintenance_service.cleanup_counts(
            data.get("cleanupType"), data.get("storeId")
        )
        db.session.commit()

        current_app.logger.warning(
            "Admin cleanup %s (store=%s) removed %d records",
            data.get("cleanupType"), data.get("storeId"), results["totalDeleted"],
        )
        return jsonify({"results": results}), 200

    except ServiceError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to clean up records")
        return jsonify({"error": "Failed to clean up records", "code": "SERVICE_ERROR"}), 500
