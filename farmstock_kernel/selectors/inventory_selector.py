"""
Inventory selector -- read-side views of on-hand stock.

DTOs are defined inline, one selector per file.
"""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import func, select

from farmstock_kernel.exceptions import ReferenceNotFoundError
from farmstock_kernel.models.inventory_item import InventoryItem
from farmstock_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class InventoryItemView:
    """One inventory row. Source: inventory_items table."""

    inventory_id: UUID
    crop_id: UUID
    quantity: int
    freshness_status: str
    location: str | None
    version: int


class InventorySelector(BaseSelector):
    """Queries over ``inventory_items``."""

    def _columns(self):
        return select(
            InventoryItem.id,
            InventoryItem.crop_id,
            InventoryItem.quantity,
            InventoryItem.freshness_status,
            InventoryItem.location,
            InventoryItem.version,
        )

    @staticmethod
    def _to_view(row) -> InventoryItemView:
        status = row.freshness_status
        return InventoryItemView(
            inventory_id=row.id,
            crop_id=row.crop_id,
            quantity=row.quantity,
            freshness_status=getattr(status, "value", status),
            location=row.location,
            version=row.version,
        )

    def get_quantity(self, inventory_id: UUID) -> int:
        """On-hand quantity.  Raises ReferenceNotFoundError if absent."""
        quantity = self.session.execute(
            select(InventoryItem.quantity).where(InventoryItem.id == inventory_id)
        ).scalar_one_or_none()
        if quantity is None:
            raise ReferenceNotFoundError("InventoryItem", str(inventory_id))
        return quantity

    def get_item(self, inventory_id: UUID) -> InventoryItemView | None:
        row = self.session.execute(
            self._columns().where(InventoryItem.id == inventory_id)
        ).one_or_none()
        return self._to_view(row) if row is not None else None

    def low_stock_items(self, threshold: int) -> list[InventoryItemView]:
        """Items holding fewer than ``threshold`` units, lowest first."""
        rows = self.session.execute(
            self._columns()
            .where(InventoryItem.quantity < threshold)
            .order_by(InventoryItem.quantity, InventoryItem.id)
        ).all()
        return [self._to_view(row) for row in rows]

    def total_quantity(self) -> int:
        """Sum of on-hand quantity across all items."""
        return self.session.execute(
            select(func.coalesce(func.sum(InventoryItem.quantity), 0))
        ).scalar_one()
