# Overview: Transaction helpers shared by the stock-moving services.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def begin_write_transaction() -> None:
    """
    Take the write lock up front on SQLite.

    SQLite has no row locks, so a writer that starts with BEGIN IMMEDIATE
    serializes against other writers instead of failing at commit time.

    A transaction the session auto-began for earlier reads is ended first,
    so the write lock is taken even after a lookup in the same request.
    When the session holds pending or flushed writes the caller's
    transaction is left alone.
    """
    if db.engine.dialect.name != "sqlite":
        return
    if db.session().in_transaction():
        if db.session.new or db.session.dirty or db.session.deleted:
            return
        if db.session.connection().connection.driver_connection.in_transaction:
            return
        # Read-only so far: nothing to lose by ending it
        db.session.commit()
    db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Any other exception rolls the session
    back before propagating, so a failed operation leaves nothing pending.
    """
    if attempts is None:
        attempts = current_app.config.get("DB_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("DB_RETRY_BACKOFF_SECONDS", 0.1)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Retrying after concurrency conflict (attempt %s/%s): %s",
                attempt + 1, attempts, exc,
            )
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
