# Overview: Retry and single-row upsert helpers shared by the services.

from __future__ import annotations

import time

from sqlalchemy.exc import IntegrityError, OperationalError

from ..extensions import db


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on transient failures.

    Retries on OperationalError (locked database, dropped connection).
    IntegrityError is never retried: it means a concurrent writer won.
    """
    for attempt in range(attempts):
        try:
            return func()
        except OperationalError:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))


def get_or_create_singleton(model, row_id: int, **defaults):
    """
    Return the fixed-id row of a single-row table, inserting it if missing.

    Two first requests may race to insert; the loser re-reads the winner's row.
    """
    row = db.session.get(model, row_id)
    if row is not None:
        return row

    row = model(id=row_id, **defaults)
    try:
        with db.session.begin_nested():
            db.session.add(row)
    except IntegrityError:
        row = db.session.get(model, row_id)
    return row
