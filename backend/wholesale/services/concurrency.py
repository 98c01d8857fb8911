# Overview: Service-layer operations for concurrency; transaction locking and retry around ledger writes.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def begin_immediate() -> None:
    """
    Take the SQLite write lock up front for a read-check-write sequence.

    SQLite ignores SELECT ... FOR UPDATE, so two writers could both read the
    same quantity before either writes. BEGIN IMMEDIATE serializes them at
    the database instead. Other dialects rely on lock_for_update row locks.

    No-op when the DBAPI connection is already inside a transaction (the
    caller already holds whatever lock it took).
    """
    if db.engine.dialect.name != "sqlite":
        return
    conn = db.session.connection()
    if conn.connection.dbapi_connection.in_transaction:
        return
    conn.exec_driver_sql("BEGIN IMMEDIATE")


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def _retry_settings(attempts, backoff_base):
    if attempts is None:
        attempts = current_app.config.get("LOCK_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("LOCK_RETRY_BACKOFF", 0.1)
    return int(attempts), float(backoff_base)


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (database locked, deadlocks) and StaleDataError
    (optimistic locking conflicts on version_id). Any other error rolls the
    session back and propagates on the first attempt; it is never retried.
    """
    attempts, backoff_base = _retry_settings(attempts, backoff_base)
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            current_app.logger.info(
                "Retrying after lock contention (attempt %s/%s): %s",
                attempt + 1, attempts, type(exc).__name__,
            )
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            # Domain errors: release the write lock, then propagate
            db.session.rollback()
            raise
    if last_exc:
        raise last_exc
