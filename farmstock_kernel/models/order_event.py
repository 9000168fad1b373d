"""
Module: farmstock_kernel.models.order_event
Responsibility: ORM persistence for client orders placed against inventory.
Architecture position: Kernel > Models.  May import from db/base.py only.

Lifecycle:
    created (INSERT, revision 1) -> amended (UPDATE, revision + 1)
    -> cancelled (DELETE, revision + 1; the row is removed).

    Each transition produces exactly one AuditRecord keyed by
    (entity_name, entity_id, revision), which makes double-logging a
    transition impossible.
"""

from datetime import date
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import BigInteger, CheckConstraint, Date, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from farmstock_kernel.db.base import TrackedBase, UUIDString


class DeliveryStatus(str, Enum):
    """Delivery progress of an order."""

    PENDING = "pending"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"


class OrderEvent(TrackedBase):
    """A client order for a quantity of one inventory item."""

    __tablename__ = "order_events"

    __table_args__ = (
        CheckConstraint("quantity_ordered > 0", name="ck_order_quantity_positive"),
        CheckConstraint("revision >= 1", name="ck_order_revision_positive"),
        Index("idx_order_inventory", "inventory_item_id"),
        Index("idx_order_client", "client_id"),
    )

    client_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("clients.id"),
        nullable=False,
    )

    inventory_item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inventory_items.id"),
        nullable=False,
    )

    order_date: Mapped[date] = mapped_column(Date, nullable=False)

    quantity_ordered: Mapped[int] = mapped_column(BigInteger, nullable=False)

    delivery_status: Mapped[DeliveryStatus] = mapped_column(
        String(20),
        nullable=False,
        default=DeliveryStatus.PENDING.value,
    )

    revision: Mapped[int] = mapped_column(BigInteger, nullable=False, default=1)

    def audit_state(self) -> dict[str, Any]:
        """The subset of order state captured in audit records."""
        status = self.delivery_status
        return {
            "id": str(self.id),
            "inventory_item_id": str(self.inventory_item_id),
            "quantity_ordered": self.quantity_ordered,
            "delivery_status": status.value if isinstance(status, Enum) else status,
        }

    def __repr__(self) -> str:
        return f"<OrderEvent {self.id} qty={self.quantity_ordered} r{self.revision}>"
