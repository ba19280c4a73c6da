# Overview: Transaction and retry helpers shared by every mutating service.

from __future__ import annotations

import logging
import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; the version_id columns on
    stock rows still turn a lost update into a StaleDataError there.
    """
    return query.with_for_update()


def _configured_attempts() -> int:
    return int(current_app.config.get("CONCURRENCY_RETRY_ATTEMPTS", 3))


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Anything else propagates on the first
    failure.
    """
    if attempts is None:
        attempts = _configured_attempts()
    attempts = max(1, attempts)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            logger.warning(
                "Concurrency conflict (attempt %s/%s): %s", attempt + 1, attempts, exc
            )
            time.sleep(backoff_base * (2 ** attempt))


def run_in_transaction(func, *, attempts: int | None = None):
    """
    Run func as one unit of work: commit on success, roll back on any error.

    func must not commit. Validation errors raised before the first write
    leave the session clean; errors raised after a write discard it.
    """
    def _op():
        try:
            result = func()
            db.session.commit()
        except (OperationalError, StaleDataError):
            raise
        except Exception:
            db.session.rollback()
            raise
        return result

    return run_with_retry(_op, attempts=attempts)
