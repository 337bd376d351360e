# Overview: Service-layer operations for the store and asset reference lists.

from __future__ import annotations

import csv
import io

from flask import current_app

from ..extensions import db
from ..errors import InvalidInputError, NotFoundError
from ..models import Store, Asset


def list_stores() -> list[Store]:
    return db.session.query(Store).order_by(Store.name).all()


def list_assets() -> list[Asset]:
    return db.session.query(Asset).order_by(Asset.position, Asset.id).all()


def get_store(store_id: str) -> Store:
    store = db.session.get(Store, store_id)
    if store is None:
        raise NotFoundError(f"Store {store_id} not found")
    return store


def find_store(store_id) -> Store | None:
    if store_id is None:
        return None
    return db.session.get(Store, str(store_id).strip())


def is_distribution_center(store: Store) -> bool:
    """Distribution centers are recognized by display name."""
    names = current_app.config.get("DISTRIBUTION_CENTER_NAMES", ())
    normalized = {n.strip().casefold() for n in names}
    return store.name.strip().casefold() in normalized


def _read_rows(text: str, required: tuple[str, ...]) -> list[dict]:
    reader = csv.DictReader(io.StringIO(text))
    if reader.fieldnames is None:
        raise InvalidInputError("CSV file is empty")
    missing = [c for c in required if c not in reader.fieldnames]
    if missing:
        raise InvalidInputError(f"CSV missing columns: {', '.join(missing)}")

    rows = []
    for line_no, row in enumerate(reader, start=2):
        cleaned = {k: (v or "").strip() for k, v in row.items() if k}
        for col in required:
            if not cleaned.get(col):
                raise InvalidInputError(f"Line {line_no}: {col} is required")
        rows.append(cleaned)
    return rows


def import_stores(text: str) -> tuple[int, int]:
    """
    Upsert stores from CSV with columns id,name.

    Returns (created, updated). Caller commits.
    """
    created = updated = 0
    for row in _read_rows(text, ("id", "name")):
        store = db.session.get(Store, row["id"])
        if store is None:
            db.session.add(Store(id=row["id"], name=row["name"]))
            created += 1
        elif store.name != row["name"]:
            store.name = row["name"]
            updated += 1
    db.session.flush()
    return created, updated


def import_assets(text: str) -> tuple[int, int]:
    """
    Upsert assets from CSV with columns id,name and optional position.

    Without a position column, file order is used. Caller commits.
    """
    created = updated = 0
    for index, row in enumerate(_read_rows(text, ("id", "name"))):
        raw_position = row.get("position")
        try:
            position = int(raw_position) if raw_position else index
        except ValueError:
            raise InvalidInputError(f"Asset {row['id']}: position must be an integer")

        asset = db.session.get(Asset, row["id"])
        if asset is None:
            db.session.add(Asset(id=row["id"], name=row["name"], position=position))
            created += 1
        elif asset.name != row["name"] or asset.position != position:
            asset.name = row["name"]
            asset.position = position
            updated += 1
    db.session.flush()
    return created, updated
