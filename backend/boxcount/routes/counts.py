# backend/boxcount/routes/counts.py
"""
Count submission and admin record management routes.

The same handlers serve the regular count (/counts) and the distribution
center transit count (/transit); each has its own table and guard.
"""
from flask import Blueprint, request, jsonify, current_app
from boxcount.extensions import db
from boxcount.decorators import require_admin_secret
from boxcount.errors import ServiceError, InvalidInputError, error_response
from boxcount.services import count_service, webhook_service
from boxcount.services.count_service import KIND_STORE, KIND_TRANSIT
from boxcount.validation import get_json_body, optional_datetime, coerce_int


counts_bp = Blueprint("counts", __name__)


def _submit(kind: str):
    try:
        data = get_json_body(request)

        records = count_service.submit_count(
            store_id=data.get("storeId"),
            email=data.get("email"),
            quantities=data.get("quantities"),
            kind=kind,
        )

        db.session.commit()

    except ServiceError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to record %s count", kind)
        return jsonify({"error": "Failed to record count", "code": "SERVICE_ERROR"}), 500

    current_app.logger.info(
        "Recorded %s count for store %s (%d records)", kind, records[0].store_id, len(records)
    )
    payload = [r.to_dict() for r in records]

    # Fire-and-forget; the response never waits on delivery
    webhook_service.dispatch_records(records, kind)

    return jsonify({"records": payload}), 201


@counts_bp.route("/counts", methods=["POST"])
def submit_count():
    """
    Submit a store's one-time count.

    Request body:
    {
        "storeId": str,
        "email": str,
        "quantities": {assetId: int}
    }

    Returns:
        201: Count recorded
        400: Invalid input
        403: System blocked
        409: Store already submitted
    """
    return _submit(KIND_STORE)


@counts_bp.route("/transit", methods=["POST"])
def submit_transit_count():
    """Submit a distribution center's transit count. Same body and answers as /counts."""
    return _submit(KIND_TRANSIT)


def _list(kind: str):
    try:
        limit = coerce_int("limit", request.args.get("limit", count_service.DEFAULT_LIST_LIMIT))
        records = count_service.list_records(
            kind,
            store_id=request.args.get("storeId"),
            email=request.args.get("email"),
            asset_id=request.args.get("assetId"),
            since=optional_datetime("since", request.args.get("since")),
            until=optional_datetime("until", request.args.get("until")),
            limit=limit,
        )
        return jsonify({"records": [r.to_dict() for r in records]}), 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list %s counts", kind)
        return jsonify({"error": "Failed to list counts", "code": "SERVICE_ERROR"}), 500


@counts_bp.route("/counts", methods=["GET"])
@require_admin_secret
def list_counts():
    """
    List count records.

    Query parameters:
        storeId, email, assetId: exact filters
        since, until: ISO-8601 bounds on recordedAt (inclusive)
        limit: Max results (default 100)
    """
    return _list(KIND_STORE)


@counts_bp.route("/transit", methods=["GET"])
@require_admin_secret
def list_transit_counts():
    return _list(KIND_TRANSIT)


@counts_bp.route("/counts/stats", methods=["GET"])
@require_admin_secret
def count_statistics():
    """Totals for the admin dashboard."""
    try:
        return jsonify(count_service.get_statistics()), 200
    except Exception:
        current_app.logger.exception("Failed to compute count statistics")
        return jsonify({"error": "Failed to compute statistics", "code": "SERVICE_ERROR"}), 500


def _update(kind: str, record_id: int):
    try:
        data = get_json_body(request)
        if "quantity" not in data:
            raise InvalidInputError("quantity is required")

        record = count_service.update_record(kind, record_id, data["quantity"])
        db.session.commit()

        current_app.logger.info("Admin set %s record %s quantity to %s", kind, record_id, record.quantity)
        return jsonify({"record": record.to_dict()}), 200

    except ServiceError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update %s record %s", kind, record_id)
        return jsonify({"error": "Failed to update record", "code": "SERVICE_ERROR"}), 500


def _delete(kind: str, record_id: int):
    try:
        count_service.delete_record(kind, record_id)
        db.session.commit()

        current_app.logger.info("Admin deleted %s record %s", kind, record_id)
        return jsonify({"deleted": record_id}), 200

    except ServiceError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete %s record %s", kind, record_id)
        return jsonify({"error": "Failed to delete record", "code": "SERVICE_ERROR"}), 500


@counts_bp.route("/counts/<int:record_id>", methods=["PUT"])
@require_admin_secret
def update_count(record_id: int):
    """
    Edit one record's quantity.

    Request body:
    {
        "quantity": int,
        "credential": str
    }
    """
    return _update(KIND_STORE, record_id)


@counts_bp.route("/counts/<int:record_id>", methods=["DELETE"])
@require_admin_secret
def delete_count(record_id: int):
    return _delete(KIND_STORE, record_id)


@counts_bp.route("/transit/<int:record_id>", methods=["PUT"])
@require_admin_secret
def update_transit_count(record_id: int):
    return _update(KIND_TRANSIT, record_id)


@counts_bp.route("/transit/<int:record_id>", methods=["DELETE"])
@require_admin_secret
def delete_transit_count(record_id: int):
    return _delete(KIND_TRANSIT, record_id)
