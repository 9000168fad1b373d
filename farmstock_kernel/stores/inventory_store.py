"""
SqlInventoryStore -- SQLAlchemy adapter for inventory rows.

Responsibility:
    Reads inventory snapshots (optionally under ``SELECT ... FOR UPDATE``)
    and writes new quantities with a version bump.  When the caller passes
    the version it read, the write is a compare-and-swap:
    ``UPDATE ... WHERE id = :id AND version = :expected``.

Architecture position:
    Kernel > Stores.  Used by the Validation Gate and the Stock Ledger.

Failure modes:
    - OptimisticLockError when a compare-and-swap matches no row.
    - UnknownInventoryIdError from read_quantity / write_quantity when the
      row does not exist.

Concurrency notes:
    Snapshots are read with Core column selects, so they always reflect the
    database and never a stale identity-map copy.  On SQLite ``FOR UPDATE``
    is not rendered; writer serialization comes from ``BEGIN IMMEDIATE``
    (see db/engine.py).
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from farmstock_kernel.domain.dtos import InventorySnapshot
from farmstock_kernel.exceptions import OptimisticLockError, UnknownInventoryIdError
from farmstock_kernel.logging_config import get_logger
from farmstock_kernel.models.inventory_item import InventoryItem
from farmstock_kernel.stores.base import InventoryStore

logger = get_logger("stores.inventory")


class SqlInventoryStore(InventoryStore):
    """Inventory store backed by the ``inventory_items`` table."""

    def __init__(self, session: Session):
        self.session = session

    def _snapshot_query(self):
        return select(
            InventoryItem.id,
            InventoryItem.crop_id,
            InventoryItem.quantity,
            InventoryItem.version,
        )

    def read_snapshot(self, inventory_id: UUID, lock: bool = False) -> InventorySnapshot | None:
        stmt = self._snapshot_query().where(InventoryItem.id == inventory_id)
        if lock:
            stmt = stmt.with_for_update()
        row = self.session.execute(stmt).one_or_none()
        if row is None:
            return None
        return InventorySnapshot(
            inventory_id=row.id,
            crop_id=row.crop_id,
            quantity=row.quantity,
            version=row.version,
        )

    def read_quantity(self, inventory_id: UUID) -> int:
        snapshot = self.read_snapshot(inventory_id)
        if snapshot is None:
            raise UnknownInventoryIdError(str(inventory_id))
        return snapshot.quantity

    def write_quantity(
        self,
        inventory_id: UUID,
        new_value: int,
        expected_version: int | None = None,
        actor_id: UUID | None = None,
    ) -> int:
        stmt = (
            update(InventoryItem)
            .where(InventoryItem.id == inventory_id)
            .values(
                quantity=new_value,
                version=InventoryItem.version + 1,
                updated_at=func.now(),
                updated_by_id=actor_id,
            )
            .execution_options(synchronize_session=False)
        )
        if expected_version is not None:
            stmt = stmt.where(InventoryItem.version == expected_version)

        result = self.session.execute(stmt)
        if result.rowcount == 0:
            if expected_version is not None and self.read_snapshot(inventory_id) is not None:
                logger.info(
                    "inventory_version_conflict",
                    extra={
                        "inventory_id": str(inventory_id),
                        "expected_version": expected_version,
                    },
                )
                raise OptimisticLockError("InventoryItem", str(inventory_id))
            raise UnknownInventoryIdError(str(inventory_id))

        # Refresh any identity-map copy so ORM readers in this session agree
        item = self.session.execute(
            select(InventoryItem)
            .where(InventoryItem.id == inventory_id)
            .execution_options(populate_existing=True)
        ).scalar_one()
        return item.version

    def items_for_crop(self, crop_id: UUID) -> list[InventorySnapshot]:
        rows = self.session.execute(
            self._snapshot_query()
            .where(InventoryItem.crop_id == crop_id)
            .order_by(InventoryItem.id)
        ).all()
        return [
            InventorySnapshot(
                inventory_id=row.id,
                crop_id=row.crop_id,
                quantity=row.quantity,
                version=row.version,
            )
            for row in rows
        ]
