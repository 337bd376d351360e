# backend/boxcount/routes/stores.py
"""
Reference lists and per-store status for the counting page.
"""
from flask import Blueprint, jsonify, current_app
from boxcount.errors import ServiceError, error_response
from boxcount.services import catalog_service, count_service
from boxcount.services.count_service import KIND_TRANSIT


stores_bp = Blueprint("stores", __name__)


@stores_bp.get("/stores")
def list_stores():
    try:
        stores = catalog_service.list_stores()
        return jsonify({
            "stores": [
                {**s.to_dict(), "isDistributionCenter": catalog_service.is_distribution_center(s)}
                for s in stores
            ]
        }), 200
    except Exception:
        current_app.logger.exception("Failed to list stores")
        return jsonify({"error": "Failed to list stores", "code": "SERVICE_ERROR"}), 500


@stores_bp.get("/assets")
def list_assets():
    try:
        return jsonify({"assets": [a.to_dict() for a in catalog_service.list_assets()]}), 200
    except Exception:
        current_app.logger.exception("Failed to list assets")
        return jsonify({"error": "Failed to list assets", "code": "SERVICE_ERROR"}), 500


@stores_bp.get("/stores/<store_id>/status")
def store_status(store_id: str):
    """
    Whether the store already counted.

    Returns:
        200: {"alreadySubmitted": bool, "transitSubmitted": bool, "isDistributionCenter": bool, ...}
        404: Unknown store
    """
    try:
        return jsonify(count_service.store_status(store_id)), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to check status of store %s", store_id)
        return jsonify({"error": "Failed to check store status", "code": "SERVICE_ERROR"}), 500


@stores_bp.get("/stores/<store_id>/transit")
def store_transit_records(store_id: str):
    """Transit records already submitted by one store, newest first."""
    try:
        store = catalog_service.get_store(store_id)
        records = count_service.list_records(KIND_TRANSIT, store_id=store.id, limit=None)
        return jsonify({"records": [r.to_dict() for r in records]}), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load transit records for store %s", store_id)
        return jsonify({"error": "Failed to load transit records", "code": "SERVICE_ERROR"}), 500
