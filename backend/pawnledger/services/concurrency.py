from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """Row locks for the items of a sale (a no-op on SQLite)."""
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, retry_on: tuple = RETRYABLE_ERRORS):
    """
    Run func, rolling back and retrying when it loses a race.

    Lock / deadlock errors are retried by default. Invoice numbering also
    passes IntegrityError: a duplicate (book_id, invoice_number) means
    another sale took the number first, and the retry computes the next one.
    func must redo all of its work on each call.
    """
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except retry_on as exc:
            db.session.rollback()
            if attempt == attempts:
                raise
            current_app.logger.warning(
                "Retrying after %s (attempt %s of %s)", type(exc).__name__, attempt, attempts
            )
            time.sleep(backoff_base * (2 ** (attempt - 1)))
