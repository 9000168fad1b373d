"""
Module: farmstock_kernel.models.inventory_item
Responsibility: ORM persistence for on-hand stock per inventory item.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - quantity >= 0 at all times.  The Stock Ledger refuses negative results
      (NegativeStockError) and the CHECK constraint rejects them at the
      database level as a second layer.
    - version starts at 1 and increments on every ledger write.  The
      optimistic strategy writes with ``WHERE version = :expected``.

Failure modes:
    - IntegrityError if a raw write bypasses the ledger with a negative value.
"""

from enum import Enum
from uuid import UUID

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from farmstock_kernel.db.base import TrackedBase, UUIDString


class FreshnessStatus(str, Enum):
    """Shelf condition of the stock held in an inventory item."""

    FRESH = "fresh"
    AGING = "aging"
    SPOILED = "spoiled"


class InventoryItem(TrackedBase):
    """
    On-hand quantity of one crop at one storage location.

    Contract:
        Mutated only by the Stock Ledger (through the inventory store).
        Readers use selectors.
    """

    __tablename__ = "inventory_items"

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_inventory_quantity_non_negative"),
        CheckConstraint("version >= 1", name="ck_inventory_version_positive"),
        Index("idx_inventory_crop", "crop_id"),
    )

    crop_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("crops.id"),
        nullable=False,
    )

    quantity: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )

    freshness_status: Mapped[FreshnessStatus] = mapped_column(
        String(20),
        nullable=False,
        default=FreshnessStatus.FRESH.value,
    )

    location: Mapped[str | None] = mapped_column(String(200), nullable=True)

    version: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=1,
    )

    def __repr__(self) -> str:
        return f"<InventoryItem {self.id} qty={self.quantity} v{self.version}>"
