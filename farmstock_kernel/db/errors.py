"""
Backend error classification.

PostgreSQL reports lock and serialization problems through SQLSTATE codes
(psycopg2 ``pgcode``).  SQLite has no SQLSTATE and reports a busy database
by message only.  These predicates let stores and the transaction runner
agree on which ``OperationalError`` is a concurrency outcome rather than a
persistence failure.
"""

from __future__ import annotations

from sqlalchemy.exc import OperationalError, SQLAlchemyError

LOCK_TIMEOUT_SQLSTATES = frozenset({"55P03"})
RETRYABLE_SQLSTATES = frozenset({"40001", "40P01"})
_LOCK_TIMEOUT_MESSAGES = ("database is locked", "lock timeout")
_SQLITE_BUSY_MESSAGE = "database is locked"


def sqlstate(exc: OperationalError) -> str | None:
    orig = exc.orig
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def is_lock_timeout(exc: OperationalError) -> bool:
    """True if the backend gave up waiting for a lock."""
    if sqlstate(exc) in LOCK_TIMEOUT_SQLSTATES:
        return True
    message = str(exc.orig).lower()
    return any(fragment in message for fragment in _LOCK_TIMEOUT_MESSAGES)


def is_retryable_conflict(exc: OperationalError) -> bool:
    """True for serialization failures and deadlocks."""
    return sqlstate(exc) in RETRYABLE_SQLSTATES


def is_sqlite_busy(exc: OperationalError) -> bool:
    """True for SQLite's busy error, which carries no SQLSTATE."""
    return sqlstate(exc) is None and _SQLITE_BUSY_MESSAGE in str(exc.orig).lower()


def is_concurrency_outcome(exc: SQLAlchemyError) -> bool:
    """Lock waits and serialization failures belong to the transaction runner."""
    return isinstance(exc, OperationalError) and (
        is_lock_timeout(exc) or is_retryable_conflict(exc)
    )
