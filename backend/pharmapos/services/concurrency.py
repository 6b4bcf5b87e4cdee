# Overview: Locking and retry helpers for ledger-sensitive transactions.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there the version_id columns
    on Sale and Shift catch the conflict at flush time instead.
    """
    return query.with_for_update()


def is_document_number_collision(exc: IntegrityError) -> bool:
    """
    Did a unique document_number constraint (uq_sales_document_number,
    uq_returns_document_number) reject the write?

    SQLite names the column ("sales.document_number"), other backends name
    the constraint; both mention document_number.
    """
    return "document_number" in str(getattr(exc, "orig", exc))


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.05):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks), StaleDataError
    (optimistic locking conflicts) and IntegrityError from a document
    number taken by a concurrent writer. func must re-read everything it
    checks, so a retried attempt re-validates against the committed state
    and derives a fresh document number.
    """
    if attempts is None:
        attempts = current_app.config.get("CONCURRENCY_RETRY_ATTEMPTS", 3)
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError, IntegrityError) as exc:
            db.session.rollback()
            if isinstance(exc, IntegrityError) and not is_document_number_collision(exc):
                raise
            last_exc = exc
            current_app.logger.warning(
                "Concurrent update conflict (attempt %s/%s): %s", attempt + 1, attempts, exc
            )
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
