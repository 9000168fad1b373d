"""
ValidationGate -- referential and sufficiency checks before any mutation.

Responsibility:
    Decides whether a harvest or order mutation may proceed, given the
    current inventory quantity.  Runs inside the same transaction as the
    ledger write that follows it.  Under the pessimistic strategy the
    inventory row is read with ``SELECT ... FOR UPDATE``, so the quantity
    the gate approved is the quantity the ledger mutates.

Architecture position:
    Kernel > Services.  Called by the InventoryCoordinator before the
    StockLedger.  Reads only; never writes.

Rules by operation kind:
    HARVEST_INSERT  yield_amount >= 0; crop and farm exist; target inventory
                    item resolved (explicit id, else the single item holding
                    the crop).  No sufficiency check: harvests add stock.
    HARVEST_UPDATE  new yield >= 0; crop exists; the pinned inventory item
                    exists.  A reduction is checked by the ledger's
                    non-negativity guard.
    ORDER_INSERT    quantity_ordered > 0; client and inventory item exist;
                    quantity - quantity_ordered >= 0.
    ORDER_UPDATE    new quantity > 0; quantity - (new - old) >= 0.  Reductions
                    always pass.
    ORDER_DELETE    inventory item exists.  Always sufficient (stock returns).

Failure modes:
    - InvalidQuantityError, ReferenceNotFoundError, InsufficientStockError,
      AmbiguousInventoryError, InventoryCropMismatchError.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from farmstock_kernel.domain.dtos import (
    HarvestPayload,
    InventorySnapshot,
    OperationKind,
    OrderAmendment,
    OrderCancellation,
    OrderPayload,
    YieldCorrection,
)
from farmstock_kernel.exceptions import (
    AmbiguousInventoryError,
    InsufficientStockError,
    InvalidQuantityError,
    InventoryCropMismatchError,
    ReferenceNotFoundError,
)
from farmstock_kernel.logging_config import get_logger
from farmstock_kernel.models.reference import Client, Crop, Farm
from farmstock_kernel.services.base import BaseService
from farmstock_kernel.stores.base import InventoryStore

logger = get_logger("services.validation_gate")

_PAYLOAD_TYPES: dict[OperationKind, type] = {
    OperationKind.HARVEST_INSERT: HarvestPayload,
    OperationKind.HARVEST_UPDATE: YieldCorrection,
    OperationKind.ORDER_INSERT: OrderPayload,
    OperationKind.ORDER_UPDATE: OrderAmendment,
    OperationKind.ORDER_DELETE: OrderCancellation,
}


class ValidationGate(BaseService):
    """
    Pre-mutation checks for harvests and orders.

    Contract:
        ``validate()`` either raises a ValidationError subclass or returns
        the inventory snapshot it validated against.  It has no side
        effects beyond the row lock it may take.
    """

    def __init__(self, session: Session, inventory_store: InventoryStore, lock_rows: bool = True):
        super().__init__(session)
        self._inventory = inventory_store
        self._lock_rows = lock_rows

    # -----------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------

    def validate(
        self,
        operation_kind: OperationKind,
        payload: Any,
        current_state: InventorySnapshot | None = None,
    ) -> InventorySnapshot:
        """
        Validate one mutation.

        Args:
            operation_kind: Which mutation is being attempted.
            payload: The DTO matching ``operation_kind``.
            current_state: Inventory snapshot already read in this
                transaction; when omitted the gate reads it.

        Returns:
            The snapshot of the target inventory row.
        """
        expected = _PAYLOAD_TYPES[operation_kind]
        if not isinstance(payload, expected):
            raise TypeError(
                f"{operation_kind.value} expects {expected.__name__}, "
                f"got {type(payload).__name__}"
            )

        if operation_kind == OperationKind.HARVEST_INSERT:
            snapshot = self._validate_harvest_insert(payload, current_state)
        elif operation_kind == OperationKind.HARVEST_UPDATE:
            snapshot = self._validate_harvest_update(payload, current_state)
        elif operation_kind == OperationKind.ORDER_INSERT:
            snapshot = self._validate_order_insert(payload, current_state)
        elif operation_kind == OperationKind.ORDER_UPDATE:
            snapshot = self._validate_order_update(payload, current_state)
        else:
            snapshot = self._snapshot_or_raise(payload.inventory_item_id, current_state)

        logger.debug(
            "validation_passed",
            extra={
                "operation_kind": operation_kind.value,
                "inventory_id": str(snapshot.inventory_id),
                "quantity": snapshot.quantity,
            },
        )
        return snapshot

    def resolve_harvest_inventory(self, payload: HarvestPayload) -> UUID:
        """
        Inventory item a harvest's yield flows into.

        An explicit ``inventory_item_id`` wins; otherwise the crop must be
        stocked in exactly one inventory item.
        """
        if payload.inventory_item_id is not None:
            return payload.inventory_item_id

        candidates = self._inventory.items_for_crop(payload.crop_id)
        if not candidates:
            raise ReferenceNotFoundError("InventoryItem", f"crop={payload.crop_id}")
        if len(candidates) > 1:
            raise AmbiguousInventoryError(
                str(payload.crop_id),
                [str(c.inventory_id) for c in candidates],
            )
        return candidates[0].inventory_id

    # -----------------------------------------------------------------
    # Rules
    # -----------------------------------------------------------------

    def _validate_harvest_insert(
        self, payload: HarvestPayload, current_state: InventorySnapshot | None,
    ) -> InventorySnapshot:
        if payload.yield_amount < 0:
            raise InvalidQuantityError("yield_amount", payload.yield_amount, "must be >= 0")
        self._require(Crop, payload.crop_id)
        self._require(Farm, payload.farm_id)

        inventory_id = self.resolve_harvest_inventory(payload)
        snapshot = self._snapshot_or_raise(inventory_id, current_state)
        if snapshot.crop_id != payload.crop_id:
            raise InventoryCropMismatchError(
                str(inventory_id), str(payload.crop_id), str(snapshot.crop_id),
            )
        return snapshot

    def _validate_harvest_update(
        self, payload: YieldCorrection, current_state: InventorySnapshot | None,
    ) -> InventorySnapshot:
        if payload.new_yield < 0:
            raise InvalidQuantityError("yield_amount", payload.new_yield, "must be >= 0")
        self._require(Crop, payload.crop_id)
        return self._snapshot_or_raise(payload.inventory_item_id, current_state)

    def _validate_order_insert(
        self, payload: OrderPayload, current_state: InventorySnapshot | None,
    ) -> InventorySnapshot:
        if payload.quantity_ordered <= 0:
            raise InvalidQuantityError(
                "quantity_ordered", payload.quantity_ordered, "must be > 0",
            )
        self._require(Client, payload.client_id)
        snapshot = self._snapshot_or_raise(payload.inventory_item_id, current_state)
        if snapshot.quantity - payload.quantity_ordered < 0:
            self._reject_insufficient(snapshot, payload.quantity_ordered)
        return snapshot

    def _validate_order_update(
        self, payload: OrderAmendment, current_state: InventorySnapshot | None,
    ) -> InventorySnapshot:
        if payload.new_quantity <= 0:
            raise InvalidQuantityError(
                "quantity_ordered", payload.new_quantity, "must be > 0",
            )
        snapshot = self._snapshot_or_raise(payload.inventory_item_id, current_state)
        if snapshot.quantity - payload.additional_quantity < 0:
            self._reject_insufficient(snapshot, payload.additional_quantity)
        return snapshot

    # -----------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------

    def _require(self, model, entity_id: UUID) -> None:
        found = self.session.execute(
            select(model.id).where(model.id == entity_id)
        ).first()
        if found is None:
            raise ReferenceNotFoundError(model.__name__, str(entity_id))

    def _snapshot_or_raise(
        self, inventory_id: UUID, current_state: InventorySnapshot | None,
    ) -> InventorySnapshot:
        if current_state is not None and current_state.inventory_id == inventory_id:
            return current_state
        snapshot = self._inventory.read_snapshot(inventory_id, lock=self._lock_rows)
        if snapshot is None:
            raise ReferenceNotFoundError("InventoryItem", str(inventory_id))
        return snapshot

    def _reject_insufficient(self, snapshot: InventorySnapshot, requested: int) -> None:
        logger.info(
            "insufficient_stock_rejected",
            extra={
                "inventory_id": str(snapshot.inventory_id),
                "available": snapshot.quantity,
                "requested": requested,
            },
        )
        raise InsufficientStockError(str(snapshot.inventory_id), snapshot.quantity, requested)
