"""
Module: farmstock_kernel.models.harvest_event
Responsibility: ORM persistence for recorded harvests.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - yield_amount >= 0 (CHECK constraint and Validation Gate).
    - Immutable once recorded EXCEPT yield_amount (yield correction).
      Enforced by ORM listeners (db/immutability.py) and, on PostgreSQL,
      by a trigger (db/triggers.py).
    - inventory_item_id pins the row the yield flowed into, so a later
      correction applies its difference to the same inventory item.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import BigInteger, CheckConstraint, Date, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from farmstock_kernel.db.base import TrackedBase, UUIDString

# Fields that a yield correction is allowed to change
HARVEST_MUTABLE_FIELDS = frozenset({"yield_amount"})


class HarvestEvent(TrackedBase):
    """A harvest of one crop at one farm, propagated into inventory."""

    __tablename__ = "harvest_events"

    __table_args__ = (
        CheckConstraint("yield_amount >= 0", name="ck_harvest_yield_non_negative"),
        Index("idx_harvest_crop", "crop_id"),
        Index("idx_harvest_farm", "farm_id"),
    )

    crop_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("crops.id"),
        nullable=False,
    )

    farm_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("farms.id"),
        nullable=False,
    )

    inventory_item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inventory_items.id"),
        nullable=False,
    )

    harvest_date: Mapped[date] = mapped_column(Date, nullable=False)

    yield_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)

    quality_rating: Mapped[str | None] = mapped_column(String(20), nullable=True)

    def __repr__(self) -> str:
        return f"<HarvestEvent {self.id} yield={self.yield_amount}>"
