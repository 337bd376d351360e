# backend/boxcount/services/count_service.py
"""
Box count submission service.

WHY: Each store counts its boxes exactly once per inventory. Every submission
writes one row per asset in the reference list, so "the store has rows" and
"the store has submitted" are the same fact.

PIPELINE (submit_count):
1. Reject if the system is blocked
2. Validate store, e-mail and quantities
3. Guard: reject if the store already has rows in the kind's table
4. Build one record per asset (omitted assets count as 0)
5. Insert the batch with a single flush
6. The route commits, then hands the batch to the webhook dispatcher

KINDS:
- store: the regular count (count_records)
- transit: boxes in transit, distribution centers only (transit_count_records)

The guard is a read-then-write check. Two simultaneous submissions for one
store can both pass it; the (store_id, asset_id) unique constraint then
rejects the second batch at flush time, and that is reported as the same
DuplicateSubmissionError.
"""
from __future__ import annotations
from collections import Counter
from datetime import datetime, timedelta

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from boxcount.extensions import db
from boxcount.errors import (
    DuplicateSubmissionError,
    InvalidInputError,
    NotFoundError,
    SystemBlockedError,
    UpstreamStoreError,
)
from boxcount.models import CountRecord, TransitCountRecord, Store
from boxcount.services import availability_service, catalog_service
from boxcount.services.concurrency import run_with_retry
from boxcount.time_utils import utcnow
from boxcount.validation import coerce_quantity, require_email


# Count kind constants
KIND_STORE = "store"
KIND_TRANSIT = "transit"

RECORD_MODELS = {
    KIND_STORE: CountRecord,
    KIND_TRANSIT: TransitCountRecord,
}

DEFAULT_LIST_LIMIT = 100
MAX_LIST_LIMIT = 1000


def record_model(kind: str):
    try:
        return RECORD_MODELS[kind]
    except KeyError:
        raise InvalidInputError(f"Invalid count kind: {kind}")


def has_submitted(store_id: str, kind: str = KIND_STORE) -> bool:
    """Submission guard check: does the store have any rows of this kind?"""
    model = record_model(kind)
    return db.session.query(model.id).filter_by(store_id=store_id).first() is not None


def validate_quantities(quantities, asset_ids: set[str]) -> dict[str, int]:
    """
    Normalize {assetId: quantity} input.

    Unknown asset ids are rejected; quantities are strict integers clamped to >= 0.
    """
    if quantities is None:
        return {}
    if not isinstance(quantities, dict):
        raise InvalidInputError("quantities must be an object of {assetId: number}")

    cleaned = {}
    for raw_id, raw_quantity in quantities.items():
        asset_id = str(raw_id).strip()
        if asset_id not in asset_ids:
            raise InvalidInputError(f"Unknown asset: {asset_id}")
        cleaned[asset_id] = coerce_quantity(f"quantities.{asset_id}", raw_quantity)
    return cleaned


def submit_count(
    store_id,
    email,
    quantities,
    kind: str = KIND_STORE,
    now: datetime | None = None,
) -> list:
    """
    Record a store's one-time count.

    Args:
        store_id: Store code from the reference list
        email: Submitter e-mail
        quantities: {assetId: quantity}; omitted assets are recorded as 0
        kind: "store" or "transit"
        now: Override for recorded_at (tests)

    Returns:
        list: The inserted records, in asset order

    Raises:
        InvalidInputError, SystemBlockedError, DuplicateSubmissionError,
        UpstreamStoreError
    """
    model = record_model(kind)

    # A closed window rejects every payload, valid or not
    if availability_service.is_blocked():
        raise SystemBlockedError()

    if store_id is None or not str(store_id).strip():
        raise InvalidInputError("storeId is required")
    submitter_email = require_email(email)

    store = catalog_service.find_store(store_id)
    if store is None:
        raise InvalidInputError(f"Unknown store: {store_id}")
    if kind == KIND_TRANSIT and not catalog_service.is_distribution_center(store):
        raise InvalidInputError(f"Store {store.id} is not a distribution center")

    assets = catalog_service.list_assets()
    if not assets:
        raise InvalidInputError("No assets configured")
    cleaned = validate_quantities(quantities, {a.id for a in assets})

    if has_submitted(store.id, kind):
        raise DuplicateSubmissionError()

    recorded_at = now or utcnow()
    records = [
        model(
            store_id=store.id,
            store_name=store.name,
            submitter_email=submitter_email,
            asset_id=asset.id,
            asset_name=asset.name,
            quantity=cleaned.get(asset.id, 0),
            recorded_at=recorded_at,
        )
        for asset in assets
    ]

    try:
        db.session.add_all(records)
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateSubmissionError()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise UpstreamStoreError(f"Failed to record count: {exc.__class__.__name__}")

    return records


def store_status(store_id: str) -> dict:
    """What the counting page needs to know about one store."""
    store = catalog_service.find_store(store_id)
    if store is None:
        raise NotFoundError(f"Store {store_id} not found")

    is_dc = catalog_service.is_distribution_center(store)
    return {
        "storeId": store.id,
        "storeName": store.name,
        "alreadySubmitted": has_submitted(store.id, KIND_STORE),
        "transitSubmitted": has_submitted(store.id, KIND_TRANSIT) if is_dc else False,
        "isDistributionCenter": is_dc,
    }


def _get_record(kind: str, record_id: int):
    model = record_model(kind)
    record = db.session.get(model, record_id)
    if record is None:
        raise NotFoundError(f"Count record {record_id} not found")
    return record


def update_record(kind: str, record_id: int, quantity) -> object:
    """Admin edit of a single quantity. Caller commits."""
    def _op():
        record = _get_record(kind, record_id)
        record.quantity = coerce_quantity("quantity", quantity)
        record.modified_at = utcnow()
        db.session.flush()
        return record

    return run_with_retry(_op)


def delete_record(kind: str, record_id: int) -> None:
    """Admin removal of a single record. Caller commits."""
    def _op():
        record = _get_record(kind, record_id)
        db.session.delete(record)
        db.session.flush()

    run_with_retry(_op)


def list_records(
    kind: str = KIND_STORE,
    *,
    store_id: str | None = None,
    email: str | None = None,
    asset_id: str | None = None,
    since: datetime | None = None,
    until: datetime | None = None,
    limit: int | None = DEFAULT_LIST_LIMIT,
) -> list:
    """Records newest first. All filters are optional and combined with AND."""
    model = record_model(kind)
    query = db.session.query(model)

    if store_id:
        query = query.filter(model.store_id == store_id)
    if email:
        query = query.filter(model.submitter_email == email.strip().lower())
    if asset_id:
        query = query.filter(model.asset_id == asset_id)
    if since is not None:
        query = query.filter(model.recorded_at >= since)
    if until is not None:
        query = query.filter(model.recorded_at <= until)

    query = query.order_by(model.recorded_at.desc(), model.id.desc())
    if limit is not None:
        if limit < 1 or limit > MAX_LIST_LIMIT:
            raise InvalidInputError(f"limit must be between 1 and {MAX_LIST_LIMIT}")
        query = query.limit(limit)
    return query.all()


def get_statistics(now: datetime | None = None) -> dict:
    """
    Dashboard totals over the regular count table.

    averagePerHour is submissions (rows) in the last 24h divided by the
    number of distinct hours that saw at least one row.
    """
    now = now or utcnow()

    stores_counted = db.session.query(
        func.count(func.distinct(CountRecord.store_id))
    ).scalar() or 0
    total_stores = db.session.query(func.count(Store.id)).scalar() or 0
    total_records = db.session.query(func.count(CountRecord.id)).scalar() or 0

    per_asset = {
        asset_id: int(total or 0)
        for asset_id, total in db.session.query(
            CountRecord.asset_id, func.sum(CountRecord.quantity)
        ).group_by(CountRecord.asset_id)
    }
    per_store = {
        store_id: int(total or 0)
        for store_id, total in db.session.query(
            CountRecord.store_id, func.sum(CountRecord.quantity)
        ).group_by(CountRecord.store_id)
    }

    recent = db.session.query(CountRecord.recorded_at).filter(
        CountRecord.recorded_at > now - timedelta(hours=24)
    ).all()
    per_hour = Counter(
        recorded_at.replace(minute=0, second=0, microsecond=0)
        for (recorded_at,) in recent
    )
    average_per_hour = (len(recent) / len(per_hour)) if per_hour else 0.0

    return {
        "totalStores": total_stores,
        "storesCounted": stores_counted,
        "totalRecords": total_records,
        "totalItems": sum(per_asset.values()),
        "averagePerHour": round(average_per_hour, 2),
        "itemsByAsset": per_asset,
        "itemsByStore": per_store,
    }

