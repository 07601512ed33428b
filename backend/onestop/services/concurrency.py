# Overview: Transaction helpers for concurrency; every read-modify-write orchestrator runs through here.

"""
Atomic unit of work helpers.

Each orchestrator body is a closure run by run_with_retry:

    def _op():
        begin_write()
        row = lock_for_update(query).first()
        ... mutate ...
        db.session.commit()
        return row

    return run_with_retry(_op)

Guarantees:
- Any exception rolls the whole session back; no partial effects survive.
- Lock conflicts, deadlocks and optimistic version conflicts are retried
  with exponential backoff, then surface as ConcurrencyError (retryable).
- Other SQLAlchemy errors surface as DatastoreFault; ServiceErrors pass
  through unchanged.
- The scoped session (one pooled connection) is released at app-context
  teardown whatever the outcome.
"""

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConcurrencyError, DatastoreFault, ServiceError
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write() takes the
    database write lock up front instead.
    """
    return query.with_for_update()


def begin_write() -> None:
    """
    Open the write transaction with a bounded lock wait.

    PostgreSQL: SET LOCAL lock_timeout so a locking read that cannot get its
    row fails (and is retried) instead of hanging the request.
    SQLite: BEGIN IMMEDIATE takes the writer lock now, so two requests never
    both read a balance before either writes it; the driver's busy timeout
    bounds the wait.
    """
    dialect = db.session.get_bind().dialect.name
    if dialect == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))
    elif dialect == "postgresql":
        timeout_ms = int(current_app.config.get("LOCK_TIMEOUT_MS", 5000))
        db.session.execute(text(f"SET LOCAL lock_timeout = {timeout_ms}"))


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None, retry_on: tuple = ()):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, lock timeouts, SQLite busy),
    StaleDataError (optimistic locking conflicts) and any extra exception
    types in retry_on (e.g. IntegrityError for insert-or-update races).
    """
    if attempts is None:
        attempts = int(current_app.config.get("TX_RETRY_ATTEMPTS", 3))
    if backoff_base is None:
        backoff_base = float(current_app.config.get("TX_RETRY_BACKOFF", 0.1))
    attempts = max(attempts, 1)
    retryable = (OperationalError, StaleDataError) + tuple(retry_on)

    for attempt in range(attempts):
        try:
            return func()
        except ServiceError:
            db.session.rollback()
            raise
        except retryable as exc:
            db.session.rollback()
            if isinstance(exc, OperationalError) and exc.connection_invalidated:
                raise DatastoreFault("Database connection lost") from exc
            if attempt >= attempts - 1:
                raise ConcurrencyError(
                    "The record is being modified by another request; retry shortly",
                    details={"attempts": attempts},
                ) from exc
            current_app.logger.warning(
                "Retrying transaction after %s (attempt %d of %d)",
                type(exc).__name__, attempt + 1, attempts,
            )
            time.sleep(backoff_base * (2 ** attempt))
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise DatastoreFault("Database error") from exc
        except Exception:
            db.session.rollback()
            raise

