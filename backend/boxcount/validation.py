from __future__ import annotations
import re
from datetime import datetime
from typing import Any

from boxcount.errors import InvalidInputError
from boxcount.time_utils import parse_iso_datetime


# Upper bound on a single asset quantity; guards against typos like 1e9 boxes
MAX_QUANTITY = 1_000_000

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def coerce_int(field: str, value: Any) -> int:
    """
    Strict integer coercion for JSON input.

    Accepts ints and plain digit strings (optional leading minus). Rejects
    booleans, floats, scientific notation and decimals.
    """
    # bool is a subclass of int
    if isinstance(value, bool):
        raise InvalidInputError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise InvalidInputError(f"{field} must be an integer")
        if 'e' in stripped.lower():
            raise InvalidInputError(f"{field} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise InvalidInputError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise InvalidInputError(f"{field} must be an integer")
    if isinstance(value, float):
        raise InvalidInputError(f"{field} must be an integer, not a decimal")
    raise InvalidInputError(f"{field} must be an integer")


def coerce_quantity(field: str, value: Any) -> int:
    """Integer quantity clamped to >= 0."""
    quantity = coerce_int(field, value)
    if quantity > MAX_QUANTITY:
        raise InvalidInputError(f"{field} cannot exceed {MAX_QUANTITY}")
    return max(quantity, 0)


def require_text(field: str, value: Any, *, max_length: int | None = None) -> str:
    if value is None:
        raise InvalidInputError(f"{field} is required")
    text = str(value).strip()
    if not text:
        raise InvalidInputError(f"{field} cannot be blank")
    if max_length and len(text) > max_length:
        raise InvalidInputError(f"{field} exceeds max length {max_length}")
    return text


def require_email(value: Any) -> str:
    email = require_text("email", value, max_length=255)
    if not _EMAIL_RE.match(email):
        raise InvalidInputError("email must be a valid e-mail address")
    return email.lower()


def require_bool(field: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise InvalidInputError(f"{field} must be a boolean")
    return value


def optional_datetime(field: str, value: Any) -> datetime | None:
    """ISO-8601 string -> UTC-naive datetime; None/blank -> None."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if not isinstance(value, str):
        raise InvalidInputError(f"{field} must be an ISO-8601 datetime")
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise InvalidInputError(f"{field} must be an ISO-8601 datetime")


def get_json_body(request) -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise InvalidInputError("Invalid JSON payload")
    return payload
