# backend/boxcount/config.py
from __future__ import annotations
import os


def _csv_env(name: str, default: str) -> tuple[str, ...]:
    raw = os.environ.get(name, default)
    return tuple(part.strip() for part in raw.split(",") if part.strip())


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/boxcount.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///boxcount.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Shared admin secret. No default: admin routes fail closed when unset.
    ADMIN_SECRET = os.environ.get("ADMIN_SECRET")

    # Schedule windows are entered in business-local wall clock (São Paulo, no DST)
    BUSINESS_UTC_OFFSET = os.environ.get("BUSINESS_UTC_OFFSET", "-03:00")

    # Stores offered the extra transit count
    DISTRIBUTION_CENTER_NAMES = _csv_env("DISTRIBUTION_CENTER_NAMES", "CD SP,CD ES")

    WEBHOOK_TIMEOUT_SECONDS = float(os.environ.get("WEBHOOK_TIMEOUT_SECONDS", "8"))
    WEBHOOK_MAX_WORKERS = int(os.environ.get("WEBHOOK_MAX_WORKERS", "8"))

    INTEGRATION_TOKEN_TTL_HOURS = int(os.environ.get("INTEGRATION_TOKEN_TTL_HOURS", "24"))

    CORS_ALLOWED_ORIGINS = _csv_env(
        "CORS_ALLOWED_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000",
    )
