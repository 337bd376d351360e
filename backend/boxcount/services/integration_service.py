# Overview: Service-layer operations for the integration export; encapsulates business logic and database work.

"""
Integration token management for the read-only export endpoint.

SECURITY FEATURES:
- Tokens come from secrets.token_urlsafe (32 bytes of entropy)
- Only the SHA-256 hash is stored; the plaintext is shown once, at rotation
- Tokens expire INTEGRATION_TOKEN_TTL_HOURS after rotation (default 24h)
- Integration cannot be enabled while the system is blocked
- Every authorized read is appended to integration_access_logs
"""
from __future__ import annotations

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta

from flask import current_app

from ..extensions import db
from ..errors import (
    IntegrationDisabledError,
    InvalidInputError,
    SystemBlockedError,
    TokenExpiredError,
    UnauthorizedError,
)
from ..models import (
    CountRecord,
    IntegrationAccessLog,
    IntegrationConfig,
    SINGLETON_ID,
    mask_secret,
)
from . import availability_service
from .concurrency import get_or_create_singleton
from boxcount.time_utils import to_utc_naive, utcnow


DEFAULT_TOKEN_TTL = timedelta(hours=24)
DEFAULT_LOG_LIMIT = 50
MAX_LOG_LIMIT = 500


def generate_token_value() -> str:
    return secrets.token_urlsafe(32)


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    Tokens are high-entropy, so a fast hash is sufficient.
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def token_ttl() -> timedelta:
    hours = current_app.config.get("INTEGRATION_TOKEN_TTL_HOURS")
    return timedelta(hours=hours) if hours else DEFAULT_TOKEN_TTL


def get_config() -> IntegrationConfig:
    return get_or_create_singleton(
        IntegrationConfig, SINGLETON_ID, enabled=False, connection_count=0
    )


def get_masked_config() -> dict:
    return get_config().to_dict()


def generate_token(now: datetime | None = None) -> tuple[str, IntegrationConfig]:
    """
    Rotate the integration token.

    Returns (plaintext_token, config). The previous token stops working
    immediately. Caller commits.
    """
    now = now or utcnow()
    token = generate_token_value()

    config = get_config()
    config.token_hash = hash_token(token)
    config.token_hint = mask_secret(token)
    config.expires_at = now + token_ttl()
    config.updated_at = now
    db.session.flush()
    return token, config


def set_enabled(enabled: bool, now: datetime | None = None) -> IntegrationConfig:
    """Enable or disable the export. Enabling requires an open system. Caller commits."""
    if not isinstance(enabled, bool):
        raise InvalidInputError("enabled must be a boolean")
    if enabled and availability_service.is_blocked():
        raise SystemBlockedError("Integration cannot be enabled while the system is blocked")

    config = get_config()
    config.enabled = enabled
    config.updated_at = now or utcnow()
    db.session.flush()
    return config


def authorize(
    bearer_token: str | None,
    *,
    source_ip: str | None = None,
    user_agent: str | None = None,
    now: datetime | None = None,
) -> IntegrationConfig:
    """
    Validate a bearer token and record the access.

    Raises:
        IntegrationDisabledError: integration is switched off
        UnauthorizedError: no token supplied, none configured, or mismatch
        TokenExpiredError: token is past expires_at

    Caller commits.
    """
    now = now or utcnow()
    config = get_config()

    if not config.enabled:
        raise IntegrationDisabledError()
    if not bearer_token or not config.token_hash:
        raise UnauthorizedError("Invalid integration token")
    if not hmac.compare_digest(hash_token(bearer_token), config.token_hash):
        raise UnauthorizedError("Invalid integration token")
    if config.expires_at is None or now > to_utc_naive(config.expires_at):
        raise TokenExpiredError()

    db.session.add(IntegrationAccessLog(
        token_hint=config.token_hint,
        source_ip=(source_ip or "unknown")[:64],
        user_agent=(user_agent or "unknown")[:255],
        accessed_at=now,
    ))
    config.connection_count = (config.connection_count or 0) + 1
    config.last_used_at = now
    db.session.flush()
    return config


def export_records(
    *,
    store_id: str | None = None,
    asset_id: str | None = None,
    since: datetime | None = None,
) -> list[CountRecord]:
    """Count records newest first; filters are ANDed and since is exclusive."""
    query = db.session.query(CountRecord)
    if store_id:
        query = query.filter(CountRecord.store_id == store_id)
    if asset_id:
        query = query.filter(CountRecord.asset_id == asset_id)
    if since is not None:
        query = query.filter(CountRecord.recorded_at > since)
    return query.order_by(CountRecord.recorded_at.desc(), CountRecord.id.desc()).all()


def list_access_logs(
    limit: int = DEFAULT_LOG_LIMIT,
    since: datetime | None = None,
    now: datetime | None = None,
) -> dict:
    """Recent access log rows plus counts for the last hour and last day."""
    if limit < 1 or limit > MAX_LOG_LIMIT:
        raise InvalidInputError(f"limit must be between 1 and {MAX_LOG_LIMIT}")
    now = now or utcnow()

    query = db.session.query(IntegrationAccessLog)
    if since is not None:
        query = query.filter(IntegrationAccessLog.accessed_at >= since)
    logs = query.order_by(
        IntegrationAccessLog.accessed_at.desc(), IntegrationAccessLog.id.desc()
    ).limit(limit).all()

    def _count_since(cutoff: datetime) -> int:
        return db.session.query(IntegrationAccessLog).filter(
            IntegrationAccessLog.accessed_at >= cutoff
        ).count()

    return {
        "logs": [log.to_dict() for log in logs],
        "stats": {
            "lastHour": _count_since(now - timedelta(hours=1)),
            "lastDay": _count_since(now - timedelta(days=1)),
        },
    }
