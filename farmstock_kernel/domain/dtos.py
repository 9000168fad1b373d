"""
Domain DTOs -- immutable values passed across the kernel's seams.

Responsibility:
    Inbound payloads (orders, harvests), snapshots read from the inventory
    store, and results returned to callers.  All are frozen dataclasses;
    none are ORM instances, so a retried unit of work can reuse them safely.

Architecture position:
    Kernel > Domain -- pure, no I/O, no SQLAlchemy imports.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from uuid import UUID


class OperationKind(str, Enum):
    """Mutation being validated by the Validation Gate."""

    HARVEST_INSERT = "harvest_insert"
    HARVEST_UPDATE = "harvest_update"
    ORDER_INSERT = "order_insert"
    ORDER_UPDATE = "order_update"
    ORDER_DELETE = "order_delete"


class LockingStrategy(str, Enum):
    """How concurrent writers to one inventory row are kept apart."""

    PESSIMISTIC = "pessimistic"
    OPTIMISTIC = "optimistic"


@dataclass(frozen=True)
class OrderPayload:
    """A client order as submitted for placement."""

    client_id: UUID
    inventory_item_id: UUID
    quantity_ordered: int
    order_date: date | None = None
    order_id: UUID | None = None


@dataclass(frozen=True)
class OrderAmendment:
    """Before/after quantities of an order amendment (delta policy)."""

    order_id: UUID
    inventory_item_id: UUID
    old_quantity: int
    new_quantity: int

    @property
    def additional_quantity(self) -> int:
        """Extra stock the amendment consumes (negative when it gives stock back)."""
        return self.new_quantity - self.old_quantity


@dataclass(frozen=True)
class OrderCancellation:
    """An order being cancelled; its quantity returns to stock."""

    order_id: UUID
    inventory_item_id: UUID
    quantity: int


@dataclass(frozen=True)
class HarvestPayload:
    """A harvest as recorded by a farm."""

    crop_id: UUID
    farm_id: UUID
    yield_amount: int
    harvest_date: date | None = None
    quality_rating: str | None = None
    inventory_item_id: UUID | None = None
    harvest_id: UUID | None = None


@dataclass(frozen=True)
class YieldCorrection:
    """
    Explicit before/after diff of a harvest yield correction.

    Captured at the call site before the harvest row is changed, so the
    ledger applies ``new_yield - old_yield`` and never the raw new value.
    """

    harvest_id: UUID
    crop_id: UUID
    inventory_item_id: UUID
    old_yield: int
    new_yield: int

    @property
    def delta(self) -> int:
        return self.new_yield - self.old_yield


@dataclass(frozen=True)
class InventorySnapshot:
    """Quantity and version of an inventory row as read inside a transaction."""

    inventory_id: UUID
    crop_id: UUID
    quantity: int
    version: int


@dataclass(frozen=True)
class LedgerResult:
    """Outcome of applying one delta to one inventory row."""

    inventory_id: UUID
    previous_quantity: int
    new_quantity: int
    delta: int
    low_stock: bool = False


@dataclass(frozen=True)
class OrderResult:
    """Outcome of an order transition (placement, amendment or cancellation)."""

    order_id: UUID
    inventory_id: UUID
    state: str
    ledger: LedgerResult
    audit_record_id: UUID
    audit_seq: int
    revision: int
    history: tuple[str, ...] = ()

    @property
    def new_quantity(self) -> int:
        return self.ledger.new_quantity

    @property
    def low_stock(self) -> bool:
        return self.ledger.low_stock


@dataclass(frozen=True)
class HarvestResult:
    """Outcome of recording or correcting a harvest."""

    harvest_id: UUID
    inventory_id: UUID
    yield_amount: int
    ledger: LedgerResult | None

    @property
    def new_quantity(self) -> int | None:
        return self.ledger.new_quantity if self.ledger else None
