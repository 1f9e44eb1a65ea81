# Overview: Transaction boundary and row-locking helpers shared by every mutating service.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_in_transaction(func, *, attempts: int = 1, backoff_base: float = 0.1, retry_on=RETRYABLE_ERRORS):
    """
    Execute func as one atomic unit: commit on success, roll back on any error.

    Nothing is retried by default. Idempotent operations may pass attempts > 1
    to retry on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts), or on whatever retry_on names. Every
    attempt starts from a clean session.
    """
    for attempt in range(attempts):
        try:
            result = func()
            db.session.commit()
            return result
        except retry_on:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
