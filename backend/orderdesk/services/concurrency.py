# Overview: Transaction helpers for inventory-critical operations (locking, lock timeouts, retry).

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from orderdesk.errors import ContentionError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; write units on SQLite are
    serialized by begin_write_transaction() instead.
    """
    return query.with_for_update()


def begin_write_transaction() -> None:
    """
    Open the unit of work for a stock-mutating operation.

    SQLite: BEGIN IMMEDIATE takes the write lock up front, so validation and
    decrement can never interleave with another writer (waits up to the
    connection's busy timeout).
    PostgreSQL: bound how long row locks may be waited on.
    """
    dialect = db.engine.dialect.name
    if dialect == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))
    elif dialect == "postgresql":
        lock_ms = int(current_app.config["STOCK_LOCK_TIMEOUT_SECONDS"] * 1000)
        statement_ms = int(current_app.config["REQUEST_TIMEOUT_SECONDS"] * 1000)
        db.session.execute(text(f"SET LOCAL lock_timeout = {lock_ms}"))
        db.session.execute(text(f"SET LOCAL statement_timeout = {statement_ms}"))


def _is_sequence_collision(exc: IntegrityError) -> bool:
    message = str(exc.orig)
    return "order_number" in message or "order_sequences" in message


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB unit of work, retrying on concurrency-related failures.

    Retries on OperationalError (lock waits, deadlocks), StaleDataError and
    order-number collisions. Every failure rolls the session back, so no
    lock or partial write outlives the attempt. When retries are exhausted
    the caller gets a retryable ContentionError.
    """
    config = current_app.config
    if attempts is None:
        attempts = config.get("CONCURRENCY_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = config.get("CONCURRENCY_BACKOFF_BASE", 0.1)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError, IntegrityError) as exc:
            db.session.rollback()
            if isinstance(exc, IntegrityError) and not _is_sequence_collision(exc):
                raise
            if attempt >= attempts - 1:
                current_app.logger.warning("Stock contention not resolved after %s attempts: %s", attempts, exc)
                raise ContentionError(
                    "Stock is busy, please retry",
                    details={"attempts": attempts},
                ) from exc
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
