# Overview: Service-layer operations for system availability; encapsulates business logic and database work.

"""
System availability state machine.

STATES: manual-open, manual-closed, automatic-open, automatic-closed.

TRANSITIONS:
- set_manual(): admin override, always lands in manual mode
- set_schedule(): admin sets mode and window; reconciles immediately when the
  window is complete
- reconcile(): discovers window edges by polling. There is no timer; the
  blocked flag is only as fresh as the last reconcile call.

reconcile() derives the desired flag from scratch every call, so concurrent
or repeated calls can at worst write the same value twice.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ..extensions import db
from ..errors import InvalidInputError
from ..models import SystemConfig, SINGLETON_ID, MODE_MANUAL, MODE_AUTOMATIC
from .concurrency import get_or_create_singleton
from .schedule import is_within_window, parse_window_date, parse_window_time, window_instant
from boxcount.time_utils import utcnow


VALID_MODES = (MODE_MANUAL, MODE_AUTOMATIC)

# Request keys of a window payload -> SystemConfig columns
WINDOW_FIELDS = {
    "startDate": "window_start_date",
    "startTime": "window_start_time",
    "endDate": "window_end_date",
    "endTime": "window_end_time",
}


@dataclass
class ReconcileResult:
    mode: str
    blocked: bool
    changed: bool
    within_window: bool | None = None
    window: dict | None = None

    @property
    def status(self) -> str:
        if self.mode != MODE_AUTOMATIC:
            return "manual"
        return "blocked" if self.blocked else "unblocked"

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "mode": self.mode,
            "blocked": self.blocked,
            "changed": self.changed,
            "withinWindow": self.within_window,
            "window": self.window,
        }


def get_system_config() -> SystemConfig:
    return get_or_create_singleton(
        SystemConfig, SINGLETON_ID, mode=MODE_MANUAL, blocked=False
    )


def get_status() -> dict:
    """Persisted mode and flag, no recomputation."""
    return get_system_config().to_dict()


def is_blocked() -> bool:
    return bool(get_system_config().blocked)


def _reconcile_config(config: SystemConfig, now: datetime) -> ReconcileResult:
    if config.mode != MODE_AUTOMATIC:
        return ReconcileResult(mode=config.mode, blocked=config.blocked, changed=False)

    # Automatic mode only derives the flag from a complete window
    if not config.window_complete:
        return ReconcileResult(
            mode=config.mode,
            blocked=config.blocked,
            changed=False,
            window=config.window_dict(),
        )

    within = is_within_window(
        config.window_start_date,
        config.window_start_time,
        config.window_end_date,
        config.window_end_time,
        now,
    )
    desired_blocked = not within
    changed = bool(config.blocked) != desired_blocked
    if changed:
        config.blocked = desired_blocked
        config.updated_at = utcnow()

    return ReconcileResult(
        mode=config.mode,
        blocked=desired_blocked,
        changed=changed,
        within_window=within,
        window=config.window_dict(),
    )


def reconcile(now: datetime | None = None) -> ReconcileResult:
    """
    Bring the persisted blocked flag in line with the schedule.

    No-op in manual mode. Writes only when the flag must change. Caller commits.
    """
    return _reconcile_config(get_system_config(), now or utcnow())


def set_manual(blocked: bool) -> SystemConfig:
    """Admin override. Any manual toggle switches the system to manual mode."""
    if not isinstance(blocked, bool):
        raise InvalidInputError("blocked must be a boolean")

    config = get_system_config()
    config.blocked = blocked
    config.mode = MODE_MANUAL
    config.updated_at = utcnow()
    return config


def validate_window(window: dict | None) -> dict:
    """
    Check the provided window parts and return {column: value}.

    Missing or blank parts are skipped; present ones must parse.
    """
    if window is None:
        return {}
    if not isinstance(window, dict):
        raise InvalidInputError("window must be an object")

    patch = {}
    for key, column in WINDOW_FIELDS.items():
        raw = window.get(key)
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            continue
        if not isinstance(raw, str):
            raise InvalidInputError(f"{key} must be a string")
        value = raw.strip()
        if key.endswith("Date"):
            if parse_window_date(value) is None:
                raise InvalidInputError(f"{key} must be a date (YYYY-MM-DD)")
        elif parse_window_time(value) is None:
            raise InvalidInputError(f"{key} must be a time (HH:MM)")
        patch[column] = value

    if len(patch) == len(WINDOW_FIELDS):
        start = window_instant(patch["window_start_date"], patch["window_start_time"])
        end = window_instant(patch["window_end_date"], patch["window_end_time"])
        if start > end:
            raise InvalidInputError("Window end must not be before window start")

    return patch


def set_schedule(
    mode: str,
    window: dict | None = None,
    now: datetime | None = None,
) -> tuple[SystemConfig, ReconcileResult | None]:
    """
    Set the availability mode and, in automatic mode, the window.

    When all four window fields are stored the state is reconciled right away
    instead of waiting for the next poll. Caller commits.
    """
    if mode not in VALID_MODES:
        raise InvalidInputError(f"mode must be one of: {', '.join(VALID_MODES)}")

    patch = validate_window(window) if mode == MODE_AUTOMATIC else {}

    config = get_system_config()
    config.mode = mode
    for column, value in patch.items():
        setattr(config, column, value)
    config.updated_at = utcnow()
    db.session.flush()

    result = None
    if mode == MODE_AUTOMATIC and config.window_complete:
        result = _reconcile_config(config, now or utcnow())
    return config, result
