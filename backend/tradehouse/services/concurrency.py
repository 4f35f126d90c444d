# Overview: Transaction helpers shared by every service that reads then writes stock or totals.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


class RetryableConflict(Exception):
    """A uniqueness race another writer won; the whole operation should be replayed."""


RETRYABLE_ERRORS = (OperationalError, StaleDataError, RetryableConflict)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    The version_id columns still catch lost updates there.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run one unit of work as a single transaction.

    Any exception rolls the session back, so a failed operation leaves no
    partial stock or invoice writes behind. OperationalError (locks,
    deadlocks), StaleDataError (version conflicts) and RetryableConflict are replayed with
    exponential backoff; everything else propagates on the first failure.
    """
    for attempt in range(attempts):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Concurrent update detected (%s); retrying (%d/%d)",
                type(exc).__name__, attempt + 1, attempts,
            )
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise

