# Overview: Service-layer helpers for atomic writes, row locking, and retry on transient failures.

from __future__ import annotations

import time
from contextlib import contextmanager

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..validation import PersistenceError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


@contextmanager
def atomic():
    """
    Scoped write boundary for one logical ledger operation.

    - Commits when the block exits normally.
    - Rolls back on ANY exception, so a rejected operation leaves nothing behind
      (no orphaned items, no check pointing at a half-written transaction).
    - Transient OperationalError / StaleDataError propagate as-is so
      run_with_retry can retry them.
    - Any other SQLAlchemy failure surfaces as PersistenceError.
    """
    try:
        yield db.session
        db.session.commit()
    except (OperationalError, StaleDataError):
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise PersistenceError(f"database write failed: {exc.__class__.__name__}") from exc
    except BaseException:
        db.session.rollback()
        raise


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Business errors are never retried.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise PersistenceError("database is busy; operation was rolled back") from exc
            time.sleep(backoff_base * (2 ** attempt))
