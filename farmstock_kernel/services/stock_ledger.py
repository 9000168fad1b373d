"""
StockLedger -- the only writer of on-hand inventory quantity.

Responsibility:
    Applies signed deltas to inventory rows and refuses any result below
    zero.  Harvests contribute positive deltas, orders negative ones,
    cancellations and order reductions positive ones, and yield
    corrections the difference between new and old yield.

Architecture position:
    Kernel > Services.  Called by the InventoryCoordinator after the
    ValidationGate, inside the same transaction.

Invariants enforced:
    - quantity >= 0 after every write.  The gate already checked
      sufficiency; this is the last line before the CHECK constraint.
    - Every write bumps ``version``.  When the caller passes the version it
      validated against, the write is a compare-and-swap.
    - Batches apply net deltas in ascending inventory-id order.

Failure modes:
    - NegativeStockError if current + delta < 0.
    - UnknownInventoryIdError if the row does not exist.
    - OptimisticLockError (from the store) on a lost compare-and-swap.

Low stock:
    A result below ``low_stock_threshold`` is flagged, logged as a
    ``low_stock_advisory`` warning and handed to the optional advisory
    callback.  It is never an error and never aborts the transaction.
"""

from __future__ import annotations

from typing import Callable
from uuid import UUID

from sqlalchemy.orm import Session

from farmstock_kernel.domain.dtos import LedgerResult, YieldCorrection
from farmstock_kernel.domain.stock_batch import StockBatch
from farmstock_kernel.exceptions import NegativeStockError, UnknownInventoryIdError
from farmstock_kernel.logging_config import get_logger
from farmstock_kernel.services.base import BaseService
from farmstock_kernel.stores.base import InventoryStore

logger = get_logger("services.stock_ledger")

LowStockCallback = Callable[[LedgerResult], None]

DEFAULT_LOW_STOCK_THRESHOLD = 10


class StockLedger(BaseService):
    """Applies deltas to inventory rows."""

    def __init__(
        self,
        session: Session,
        inventory_store: InventoryStore,
        low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD,
        lock_rows: bool = True,
        on_low_stock: LowStockCallback | None = None,
    ):
        super().__init__(session)
        self._inventory = inventory_store
        self._low_stock_threshold = low_stock_threshold
        self._lock_rows = lock_rows
        self._on_low_stock = on_low_stock

    @property
    def low_stock_threshold(self) -> int:
        return self._low_stock_threshold

    def apply_delta(
        self,
        inventory_id: UUID,
        delta: int,
        actor_id: UUID | None = None,
        expected_version: int | None = None,
    ) -> LedgerResult:
        """
        Apply ``delta`` to one inventory row.

        Args:
            inventory_id: Row to mutate.
            delta: Signed change in units.
            actor_id: Recorded as the row's last updater.
            expected_version: Version the caller validated against.  When
                omitted, the version read here is used.

        Returns:
            LedgerResult with previous and new quantity.
        """
        snapshot = self._inventory.read_snapshot(inventory_id, lock=self._lock_rows)
        if snapshot is None:
            raise UnknownInventoryIdError(str(inventory_id))

        new_quantity = snapshot.quantity + delta
        if new_quantity < 0:
            logger.warning(
                "negative_stock_refused",
                extra={
                    "inventory_id": str(inventory_id),
                    "current_quantity": snapshot.quantity,
                    "delta": delta,
                },
            )
            raise NegativeStockError(str(inventory_id), snapshot.quantity, delta)

        if delta != 0:
            self._inventory.write_quantity(
                inventory_id,
                new_quantity,
                expected_version=(
                    expected_version if expected_version is not None else snapshot.version
                ),
                actor_id=actor_id,
            )

        result = LedgerResult(
            inventory_id=inventory_id,
            previous_quantity=snapshot.quantity,
            new_quantity=new_quantity,
            delta=delta,
            low_stock=new_quantity < self._low_stock_threshold,
        )

        logger.info(
            "stock_delta_applied",
            extra={
                "inventory_id": str(inventory_id),
                "previous_quantity": result.previous_quantity,
                "new_quantity": result.new_quantity,
                "delta": delta,
            },
        )

        if result.low_stock:
            self._advise_low_stock(result)
        return result

    def apply_correction(
        self,
        correction: YieldCorrection,
        actor_id: UUID | None = None,
        expected_version: int | None = None,
    ) -> LedgerResult:
        """Apply a yield correction as ``new_yield - old_yield``."""
        return self.apply_delta(
            correction.inventory_item_id,
            correction.delta,
            actor_id=actor_id,
            expected_version=expected_version,
        )

    def apply_batch(self, batch: StockBatch, actor_id: UUID | None = None) -> list[LedgerResult]:
        """Apply the net delta per inventory item in ascending id order."""
        results = [
            self.apply_delta(inventory_id, delta, actor_id=actor_id)
            for inventory_id, delta in batch.net_deltas()
        ]
        logger.info(
            "stock_batch_applied",
            extra={"entry_count": len(batch), "item_count": len(results)},
        )
        return results

    def _advise_low_stock(self, result: LedgerResult) -> None:
        logger.warning(
            "low_stock_advisory",
            extra={
                "inventory_id": str(result.inventory_id),
                "new_quantity": result.new_quantity,
                "threshold": self._low_stock_threshold,
            },
        )
        if self._on_low_stock is None:
            return
        try:
            self._on_low_stock(result)
        except Exception:
            # Advisory only: a failing subscriber must not abort the unit
            logger.error(
                "low_stock_callback_failed",
                extra={"inventory_id": str(result.inventory_id)},
                exc_info=True,
            )
