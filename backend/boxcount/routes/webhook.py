# backend/boxcount/routes/webhook.py
from flask import Blueprint, request, jsonify, current_app
from boxcount.extensions import db
from boxcount.decorators import require_admin_secret
from boxcount.errors import ServiceError, error_response
from boxcount.services import webhook_service
from boxcount.validation import get_json_body


webhook_bp = Blueprint("webhook", __name__, url_prefix="/webhook")


@webhook_bp.get("/config")
def get_webhook_config():
    """Webhook settings; the token is masked."""
    try:
        config = webhook_service.get_config()
        db.session.commit()
        return jsonify(config.to_dict()), 200
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to read webhook config")
        return jsonify({"error": "Failed to read webhook config", "code": "SERVICE_ERROR"}), 500


@webhook_bp.post("/config")
@require_admin_secret
def update_webhook_config():
    """
    Replace webhook settings.

    Request body:
    {
        "url": str,
        "token": str (optional; omitted or the masked value keeps the current one, "" clears it),
        "enabled": bool,
        "credential": str
    }
    """
    try:
        data = get_json_body(request)
        config = webhook_service.update_config(
            url=data.get("url"),
            token=data["token"] if "token" in data else webhook_service.KEEP_TOKEN,
            enabled=data.get("enabled", False),
        )
        db.session.commit()

        current_app.logger.info("Webhook %s", "enabled" if config.enabled else "disabled")
        return jsonify(config.to_dict()), 200

    except ServiceError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update webhook config")
        return jsonify({"error": "Failed to update webhook config", "code": "SERVICE_ERROR"}), 500
