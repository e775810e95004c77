# Overview: Service-layer operations for concurrency; session commit, retry and error translation.

from __future__ import annotations

import logging
import time
from functools import wraps

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import PersistenceError, StockConflict
from ..extensions import db


logger = logging.getLogger("stockbook.db")


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    The version_id check still catches lost updates there.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on transient lock failures.

    Retries OperationalError (deadlocks, "database is locked"). Optimistic
    version conflicts are NOT retried here: the caller has to re-read and
    recompute, so StaleDataError propagates immediately.
    """
    for attempt in range(attempts):
        try:
            return func()
        except OperationalError:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            logger.info("Transient database lock; retry %d/%d", attempt + 1, attempts - 1)
            time.sleep(backoff_base * (2 ** attempt))


def commit_or_raise(operation: str, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Commit the current session and translate driver errors.

    Raises:
        StockConflict: optimistic version check failed, or a concurrent insert
            won a unique constraint on a stock row
        PersistenceError: anything else SQLAlchemy raised
    """
    try:
        run_with_retry(db.session.commit, attempts=attempts, backoff_base=backoff_base)
    except StaleDataError as exc:
        db.session.rollback()
        raise StockConflict(f"{operation}: record changed concurrently", details={"operation": operation}) from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("%s failed: %s", operation, exc)
        raise PersistenceError(f"{operation} failed", details={"operation": operation, "error": type(exc).__name__}) from exc


def translate_errors(operation: str):
    """Decorator: roll back and re-raise SQLAlchemyError as PersistenceError."""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except (PersistenceError, StockConflict):
                raise
            except StaleDataError as exc:
                db.session.rollback()
                raise StockConflict(f"{operation}: record changed concurrently", details={"operation": operation}) from exc
            except SQLAlchemyError as exc:
                db.session.rollback()
                logger.error("%s failed: %s", operation, exc)
                raise PersistenceError(
                    f"{operation} failed",
                    details={"operation": operation, "error": type(exc).__name__},
                ) from exc
        return wrapper
    return decorator


