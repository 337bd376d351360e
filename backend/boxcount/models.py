# backend/boxcount/models.py
from __future__ import annotations
from .extensions import db
from boxcount.time_utils import to_utc_z


# Fixed primary key for the single-row configuration tables
SINGLETON_ID = 1

MODE_MANUAL = "manual"
MODE_AUTOMATIC = "automatic"


class Store(db.Model):
    """A physical location that submits exactly one count."""
    __tablename__ = "stores"

    id = db.Column(db.String(32), primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Store id={self.id!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
        }


class Asset(db.Model):
    """A countable box type. The reference list is fixed and ordered by position."""
    __tablename__ = "assets"

    id = db.Column(db.String(32), primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<Asset id={self.id!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "position": self.position,
        }


class SystemConfig(db.Model):
    """
    Single-row availability state (id is always SINGLETON_ID).

    Window fields hold business-local wall clock: dates as YYYY-MM-DD,
    times as HH:MM. They are kept as entered so an incomplete or malformed
    window can be shown back to the admin.
    """
    __tablename__ = "system_config"

    id = db.Column(db.Integer, primary_key=True)
    mode = db.Column(db.String(16), nullable=False, default=MODE_MANUAL)
    blocked = db.Column(db.Boolean, nullable=False, default=False)
    window_start_date = db.Column(db.String(10), nullable=True)
    window_start_time = db.Column(db.String(8), nullable=True)
    window_end_date = db.Column(db.String(10), nullable=True)
    window_end_time = db.Column(db.String(8), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def window_complete(self) -> bool:
        return all([
            self.window_start_date,
            self.window_start_time,
            self.window_end_date,
            self.window_end_time,
        ])

    def window_dict(self) -> dict | None:
        if not any([
            self.window_start_date,
            self.window_start_time,
            self.window_end_date,
            self.window_end_time,
        ]):
            return None
        return {
            "startDate": self.window_start_date or "",
            "startTime": self.window_start_time or "",
            "endDate": self.window_end_date or "",
            "endTime": self.window_end_time or "",
        }

    def to_dict(self) -> dict:
        data = {
            "blocked": self.blocked,
            "mode": self.mode,
            "updatedAt": to_utc_z(self.updated_at),
        }
        window = self.window_dict()
        if window is not None:
            data["window"] = window
        return data


class _CountRecordColumns:
    """Columns shared by the store and transit count tables."""

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.String(32), nullable=False, index=True)
    store_name = db.Column(db.String(120), nullable=False)
    submitter_email = db.Column(db.String(255), nullable=False)
    asset_id = db.Column(db.String(32), nullable=False, index=True)
    asset_name = db.Column(db.String(120), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=0)
    recorded_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    modified_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "storeId": self.store_id,
            "storeName": self.store_name,
            "email": self.submitter_email,
            "assetId": self.asset_id,
            "assetName": self.asset_name,
            "quantity": self.quantity,
            "recordedAt": to_utc_z(self.recorded_at),
            "modifiedAt": to_utc_z(self.modified_at),
        }


class CountRecord(_CountRecordColumns, db.Model):
    """
    One row per (store, asset) of a store's single count.

    The unique constraint makes a second full submission for the same store
    impossible even when two requests pass the existence check together.
    """
    __tablename__ = "count_records"
    __table_args__ = (
        db.UniqueConstraint("store_id", "asset_id", name="uq_count_records_store_asset"),
        {"sqlite_autoincrement": True},
    )

    def __repr__(self) -> str:
        return f"<CountRecord id={self.id} store={self.store_id!r} asset={self.asset_id!r}>"


class TransitCountRecord(_CountRecordColumns, db.Model):
    """Boxes in transit, counted only by distribution centers."""
    __tablename__ = "transit_count_records"
    __table_args__ = (
        db.UniqueConstraint("store_id", "asset_id", name="uq_transit_count_records_store_asset"),
        {"sqlite_autoincrement": True},
    )

    def __repr__(self) -> str:
        return f"<TransitCountRecord id={self.id} store={self.store_id!r} asset={self.asset_id!r}>"


class IntegrationConfig(db.Model):
    """
    Single-row integration settings.

    Only the SHA-256 hash of the bearer token is stored; token_hint keeps a
    masked form for display.
    """
    __tablename__ = "integration_config"

    id = db.Column(db.Integer, primary_key=True)
    enabled = db.Column(db.Boolean, nullable=False, default=False)
    token_hash = db.Column(db.String(64), nullable=True)
    token_hint = db.Column(db.String(16), nullable=True)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=True)
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=True)
    connection_count = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "enabled": self.enabled,
            "token": self.token_hint or "",
            "expiresAt": to_utc_z(self.expires_at),
            "lastUsedAt": to_utc_z(self.last_used_at),
            "connectionCount": self.connection_count or 0,
            "updatedAt": to_utc_z(self.updated_at),
        }


class WebhookConfig(db.Model):
    __tablename__ = "webhook_config"

    id = db.Column(db.Integer, primary_key=True)
    url = db.Column(db.String(2048), nullable=False, default="")
    token = db.Column(db.String(512), nullable=True)
    enabled = db.Column(db.Boolean, nullable=False, default=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        token = self.token or ""
        return {
            "url": self.url or "",
            "token": mask_secret(token),
            "hasToken": bool(token),
            "enabled": self.enabled,
            "updatedAt": to_utc_z(self.updated_at),
        }


class IntegrationAccessLog(db.Model):
    """Append-only: one row per authorized read of the export endpoint."""
    __tablename__ = "integration_access_logs"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    token_hint = db.Column(db.String(16), nullable=True)
    source_ip = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    accessed_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "token": self.token_hint or "",
            "sourceIp": self.source_ip,
            "userAgent": self.user_agent,
            "accessedAt": to_utc_z(self.accessed_at),
        }


def mask_secret(value: str) -> str:
    """Keep the first and last four characters, e.g. 'abcd...wxyz'."""
    if not value:
        return ""
    if len(value) <= 8:
        return "*" * len(value)
    return f"{value[:4]}...{value[-4:]}"
