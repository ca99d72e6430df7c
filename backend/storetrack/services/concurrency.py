# Overview: Unit-of-work and retry helpers; every multi-row write goes through run_in_transaction.

from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TransientStorageError(Exception):
    """
    The unit of work could not commit because of contention or an
    infrastructure hiccup. Nothing was persisted; the caller may retry.
    """
    retryable = True

    def __init__(self, message: str = "Storage temporarily unavailable, please retry"):
        super().__init__(message)


def _begin_unit_of_work() -> None:
    # SQLite: take the write lock up front so concurrent checkouts serialize
    # instead of failing mid-way on lock upgrade.
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def run_in_transaction(
    func: Callable[[], T],
    *,
    attempts: int | None = None,
    backoff_base: float | None = None,
) -> T:
    """
    Run ``func`` as one all-or-nothing unit of work.

    - Commits when ``func`` returns; its return value is passed through.
    - Rolls back on any exception. Business errors are re-raised unchanged
      and never retried.
    - OperationalError (locks, deadlocks) and StaleDataError (optimistic
      locking conflicts) are retried with exponential backoff; when attempts
      are exhausted TransientStorageError is raised from the last failure.
    """
    if attempts is None:
        attempts = current_app.config.get("CHECKOUT_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("CHECKOUT_RETRY_BACKOFF", 0.1)

    for attempt in range(attempts):
        try:
            _begin_unit_of_work()
            result = func()
            db.session.commit()
            return result
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            logger.warning(
                "Unit of work attempt %s/%s failed: %s", attempt + 1, attempts, exc.__class__.__name__
            )
            if attempt >= attempts - 1:
                raise TransientStorageError() from exc
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
    raise TransientStorageError()
