# Overview: Service-layer operations for maintenance; encapsulates business logic and database work.

from __future__ import annotations

from datetime import timedelta

from ..extensions import db
from ..errors import InvalidInputError
from ..models import CountRecord, TransitCountRecord, IntegrationAccessLog
from boxcount.time_utils import utcnow


CLEANUP_ALL = "all"
CLEANUP_INVENTORY = "inventory"
CLEANUP_TRANSIT = "transit"
CLEANUP_CUSTOM = "custom"

CLEANUP_TYPES = (CLEANUP_ALL, CLEANUP_INVENTORY, CLEANUP_TRANSIT, CLEANUP_CUSTOM)


def cleanup_counts(cleanup_type: str, store_id: str | None = None) -> dict:
    """
    Bulk delete count records.

    - all: both tables
    - inventory: count_records only
    - transit: transit_count_records only
    - custom: both tables, limited to store_id ("all" or empty means every store)

    Caller commits.
    """
    if cleanup_type not in CLEANUP_TYPES:
        raise InvalidInputError(f"cleanupType must be one of: {', '.join(CLEANUP_TYPES)}")

    store_filter = None
    if cleanup_type == CLEANUP_CUSTOM and store_id and str(store_id).strip() != "all":
        store_filter = str(store_id).strip()

    total_before = (
        db.session.query(CountRecord).count()
        + db.session.query(TransitCountRecord).count()
    )

    def _delete(model) -> int:
        query = db.session.query(model)
        if store_filter is not None:
            query = query.filter(model.store_id == store_filter)
        return query.delete(synchronize_session=False)

    deleted_inventory = 0
    deleted_transit = 0
    if cleanup_type in (CLEANUP_ALL, CLEANUP_CUSTOM, CLEANUP_INVENTORY):
        deleted_inventory = _delete(CountRecord)
    if cleanup_type in (CLEANUP_ALL, CLEANUP_CUSTOM, CLEANUP_TRANSIT):
        deleted_transit = _delete(TransitCountRecord)

    return {
        "deletedInventory": deleted_inventory,
        "deletedTransit": deleted_transit,
        "totalDeleted": deleted_inventory + deleted_transit,
        "totalBefore": total_before,
    }


def cleanup_access_logs(*, retention_days: int = 90) -> int:
    """Delete integration access log rows older than retention_days. Caller commits."""
    cutoff = utcnow() - timedelta(days=retention_days)
    deleted = db.session.query(IntegrationAccessLog).filter(
        IntegrationAccessLog.accessed_at < cutoff
    ).delete()
    return deleted
