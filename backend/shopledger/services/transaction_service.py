# Overview: Unit-of-work coordinator; wraps ledger and document writes in one transaction.

"""
Transaction Coordinator

A sale, a sale cancellation, a purchase receipt and a product creation each
touch several rows (the business document plus one stock record per line).
run_in_transaction() makes them commit or roll back together.

CONTRACT:
- work(tx) runs with a TransactionContext; every participating write uses it.
- Commit on success, rollback on ANY exception, including business-rule
  rejections raised inside work (e.g. InsufficientStockError on line 3 of 5).
- The original exception is re-raised unchanged so callers handle a
  pre-check failure and a late ledger rejection the same way.
- Transient storage failures (locks, deadlocks, stale versions) replay the
  whole unit; once attempts are exhausted they surface as
  StorageUnavailableError.
- Unique constraint violations surface as DuplicateKeyError.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import DuplicateKeyError, StorageUnavailableError
from .concurrency import RETRYABLE_ERRORS, run_with_retry


class TransactionContext:
    """Handle over the session that owns the open transaction."""

    def __init__(self, session):
        self.session = session

    def add(self, obj) -> None:
        self.session.add(obj)

    def flush(self) -> None:
        self.session.flush()

    def execute(self, statement, *args, **kwargs):
        return self.session.execute(statement, *args, **kwargs)


def _is_unique_violation(exc: IntegrityError) -> bool:
    message = str(exc.orig).lower()
    return "unique" in message or "duplicate" in message


def run_in_transaction(work, *, tx: TransactionContext | None = None, attempts: int | None = None):
    """
    Run work(tx) as one atomic unit and return its result.

    If tx is given, work joins the caller's transaction and the caller stays
    responsible for commit/rollback.
    """
    if tx is not None:
        return work(tx)

    def _op():
        ctx = TransactionContext(db.session)
        try:
            result = work(ctx)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return result

    try:
        return run_with_retry(_op, attempts=attempts)
    except RETRYABLE_ERRORS as exc:
        current_app.logger.error("Transaction failed after retries: %s", exc)
        raise StorageUnavailableError(
            "Storage is temporarily unavailable. Retry the operation."
        ) from exc
    except IntegrityError as exc:
        if _is_unique_violation(exc):
            raise DuplicateKeyError("A record with the same unique value already exists.") from exc
        raise
