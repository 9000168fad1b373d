"""
TransactionRunner -- commit/rollback boundary and bounded retry.

Responsibility:
    Runs one unit of work (validate, apply, log) against a session and
    commits it, or rolls all of it back.  Translates backend lock errors
    into kernel exceptions and retries units that lost an optimistic race.

Architecture position:
    Kernel > Services.  Owned by the InventoryCoordinator; the only place
    in the kernel that calls ``session.commit()``.

Retry policy:
    - OptimisticLockError (lost compare-and-swap) and backend serialization
      failures or deadlocks are retryable.  The unit is rolled back and run
      again from the start, so validation sees freshly read quantity.
    - At most ``max_retries`` retries; exhaustion raises
      ConcurrencyConflictError.
    - Every other exception is rolled back and propagated unchanged.

Lock errors:
    - PostgreSQL ``lock_timeout`` (SQLSTATE 55P03) -> LockTimeoutError under
      either strategy.
    - SQLite busy timeout ("database is locked") -> LockTimeoutError under
      the pessimistic strategy.  Under the optimistic strategy SQLite
      reports a lost read-to-write upgrade the same way, so it is retried.
"""

from __future__ import annotations

import time
from typing import Callable, TypeVar

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from farmstock_kernel.db.errors import is_lock_timeout, is_retryable_conflict, is_sqlite_busy
from farmstock_kernel.domain.dtos import LockingStrategy
from farmstock_kernel.exceptions import (
    ConcurrencyConflictError,
    LockTimeoutError,
    OptimisticLockError,
)
from farmstock_kernel.logging_config import get_logger

logger = get_logger("services.transaction_runner")

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 3


class TransactionRunner:
    """
    Executes units of work with all-or-nothing semantics.

    Contract:
        ``run(operation, work)`` calls ``work()``; on success commits and
        returns its result, on failure rolls back and raises.

    Non-goals:
        - Does NOT open sessions; the caller supplies one.
        - With ``auto_commit=False`` the caller owns the transaction, so
          nothing is committed, rolled back or retried here.
    """

    def __init__(
        self,
        session: Session,
        max_retries: int = DEFAULT_MAX_RETRIES,
        lock_timeout_seconds: float = 5.0,
        locking_strategy: LockingStrategy = LockingStrategy.PESSIMISTIC,
        auto_commit: bool = True,
    ):
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {max_retries}")
        self._session = session
        self._max_retries = max_retries
        self._lock_timeout_seconds = lock_timeout_seconds
        self._strategy = locking_strategy
        self._auto_commit = auto_commit

    @property
    def max_retries(self) -> int:
        return self._max_retries

    def run(
        self,
        operation: str,
        work: Callable[[], T],
        entity_id: str | None = None,
    ) -> T:
        """
        Run ``work`` as one atomic unit.

        Raises:
            ConcurrencyConflictError: Retries exhausted.
            LockTimeoutError: A lock wait exceeded the configured timeout.
            Exception: Anything raised by ``work``, after rollback.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                result = work()
                if self._auto_commit:
                    self._session.commit()
                return result
            except OptimisticLockError as exc:
                self._rollback()
                self._retry_or_give_up(operation, attempt, entity_id, exc)
            except OperationalError as exc:
                self._rollback()
                if is_retryable_conflict(exc) or (
                    is_sqlite_busy(exc) and self._strategy == LockingStrategy.OPTIMISTIC
                ):
                    self._retry_or_give_up(operation, attempt, entity_id, exc)
                elif is_lock_timeout(exc):
                    logger.warning(
                        "lock_timeout",
                        extra={
                            "operation": operation,
                            "timeout_seconds": self._lock_timeout_seconds,
                        },
                    )
                    raise LockTimeoutError(operation, self._lock_timeout_seconds) from exc
                else:
                    raise
            except Exception:
                self._rollback()
                raise

    def _rollback(self) -> None:
        if self._auto_commit:
            self._session.rollback()
            logger.debug("transaction_rolled_back")

    def _retry_or_give_up(
        self,
        operation: str,
        attempt: int,
        entity_id: str | None,
        exc: Exception,
    ) -> None:
        if not self._auto_commit or attempt > self._max_retries:
            logger.warning(
                "concurrency_conflict_exhausted",
                extra={"operation": operation, "attempts": attempt},
            )
            raise ConcurrencyConflictError(operation, attempt, entity_id) from exc

        logger.info(
            "concurrency_conflict_retry",
            extra={
                "operation": operation,
                "attempt": attempt,
                "max_retries": self._max_retries,
            },
        )
        # Short linear backoff so the competing writer can commit
        time.sleep(0.01 * attempt)
