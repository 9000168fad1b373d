"""
InventoryCoordinator -- the kernel's single entry point for mutations.

Responsibility:
    Drives order transitions and harvest flows through
    ValidationGate -> StockLedger -> AuditRecorder -> commit as one atomic
    unit.  Any failure rolls back every step.

Architecture position:
    Kernel > Services -- imperative shell.  Composes the gate, ledger,
    recorder and stores around one session; the TransactionRunner owns
    commit, rollback and the optimistic retry loop.

Invariants enforced:
    - On-hand quantity never goes negative (gate, then ledger, then the
      CHECK constraint).
    - Every order transition (create, amend, cancel) appends exactly one
      audit record in the same transaction as its stock mutation.
    - Harvest yield flows into inventory; a yield correction applies
      ``new_yield - old_yield`` to the inventory item the harvest is pinned
      to.
    - Each order transition walks PENDING -> VALIDATED -> APPLIED -> LOGGED,
      or ends in REJECTED.

Failure modes:
    - ValidationError subclasses from the gate.
    - NegativeStockError / UnknownInventoryIdError from the ledger.
    - AuditWriteError / AuditRecordAlreadyExistsError from the recorder.
    - ConcurrencyConflictError / LockTimeoutError from the runner.

Usage:
    coordinator = InventoryCoordinator(session, clock=SystemClock())
    result = coordinator.place_order(
        OrderPayload(client_id=client.id, inventory_item_id=item.id, quantity_ordered=45),
        actor_id=staff_id,
    )
    assert result.state == "logged"
"""

from __future__ import annotations

import time
from typing import Callable, TypeVar
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from farmstock_kernel.domain.clock import Clock, SystemClock
from farmstock_kernel.domain.dtos import (
    HarvestPayload,
    HarvestResult,
    LedgerResult,
    LockingStrategy,
    OperationKind,
    OrderAmendment,
    OrderCancellation,
    OrderPayload,
    OrderResult,
    YieldCorrection,
)
from farmstock_kernel.domain.placement import OrderPlacement
from farmstock_kernel.domain.stock_batch import StockBatch
from farmstock_kernel.exceptions import (
    DuplicateHarvestError,
    FarmstockError,
    ReferenceNotFoundError,
)
from farmstock_kernel.logging_config import LogContext, get_logger
from farmstock_kernel.models.harvest_event import HarvestEvent
from farmstock_kernel.models.order_event import DeliveryStatus, OrderEvent
from farmstock_kernel.services.audit_recorder import AuditRecorder
from farmstock_kernel.services.stock_ledger import (
    DEFAULT_LOW_STOCK_THRESHOLD,
    LowStockCallback,
    StockLedger,
)
from farmstock_kernel.services.transaction_runner import (
    DEFAULT_MAX_RETRIES,
    TransactionRunner,
)
from farmstock_kernel.services.validation_gate import ValidationGate
from farmstock_kernel.stores.audit_store import SqlAuditStore
from farmstock_kernel.stores.base import AuditStore, InventoryStore
from farmstock_kernel.stores.inventory_store import SqlInventoryStore

logger = get_logger("services.inventory_coordinator")

T = TypeVar("T")


class InventoryCoordinator:
    """
    Orchestrates validated, audited inventory mutations.

    Contract:
        Every public method takes an explicit ``actor_id``, runs as one
        transaction and returns a frozen result DTO, or raises after a full
        rollback.

    Non-goals:
        - Does NOT manage reference data (crops, farms, clients).
        - Does NOT audit harvests; only order transitions are logged.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        *,
        low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD,
        locking_strategy: LockingStrategy = LockingStrategy.PESSIMISTIC,
        max_retries: int = DEFAULT_MAX_RETRIES,
        lock_timeout_seconds: float = 5.0,
        on_low_stock: LowStockCallback | None = None,
        auto_commit: bool = True,
        inventory_store: InventoryStore | None = None,
        audit_store: AuditStore | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._strategy = LockingStrategy(locking_strategy)

        lock_rows = self._strategy == LockingStrategy.PESSIMISTIC
        self._inventory = inventory_store or SqlInventoryStore(session)
        self._gate = ValidationGate(session, self._inventory, lock_rows=lock_rows)
        # Harvest batches only add stock; rows are locked by the ledger in id order
        self._batch_gate = ValidationGate(session, self._inventory, lock_rows=False)
        self._ledger = StockLedger(
            session,
            self._inventory,
            low_stock_threshold=low_stock_threshold,
            lock_rows=lock_rows,
            on_low_stock=on_low_stock,
        )
        self._recorder = AuditRecorder(
            session,
            clock=self._clock,
            audit_store=audit_store or SqlAuditStore(session),
        )
        self._runner = TransactionRunner(
            session,
            max_retries=max_retries,
            lock_timeout_seconds=lock_timeout_seconds,
            locking_strategy=self._strategy,
            auto_commit=auto_commit,
        )

    @property
    def session(self) -> Session:
        return self._session

    @property
    def locking_strategy(self) -> LockingStrategy:
        return self._strategy

    @property
    def ledger(self) -> StockLedger:
        return self._ledger

    @property
    def recorder(self) -> AuditRecorder:
        return self._recorder

    # -----------------------------------------------------------------
    # Orders
    # -----------------------------------------------------------------

    def place_order(self, payload: OrderPayload, actor_id: UUID) -> OrderResult:
        """
        Validate, reserve stock for, persist and audit a new order.

        Postconditions:
            - quantity of the inventory item drops by quantity_ordered.
            - One OrderEvent row (revision 1) and one INSERT audit record.
        """
        order_id = payload.order_id or uuid4()
        return self._execute(
            "place_order",
            actor_id,
            order_id,
            lambda: self._do_place_order(payload, order_id, actor_id),
        )

    def amend_order(self, order_id: UUID, new_quantity: int, actor_id: UUID) -> OrderResult:
        """
        Change the quantity of an existing order.

        Sufficiency uses the delta policy: only ``new - old`` additional
        units must be on hand.  Reductions return stock.
        """
        return self._execute(
            "amend_order",
            actor_id,
            order_id,
            lambda: self._do_amend_order(order_id, new_quantity, actor_id),
        )

    def cancel_order(self, order_id: UUID, actor_id: UUID) -> OrderResult:
        """Delete an order, return its quantity to stock and log a DELETE record."""
        return self._execute(
            "cancel_order",
            actor_id,
            order_id,
            lambda: self._do_cancel_order(order_id, actor_id),
        )

    def _do_place_order(
        self, payload: OrderPayload, order_id: UUID, actor_id: UUID,
    ) -> OrderResult:
        placement = OrderPlacement()
        try:
            snapshot = self._gate.validate(OperationKind.ORDER_INSERT, payload)
            placement.mark_validated()

            ledger_result = self._ledger.apply_delta(
                payload.inventory_item_id,
                -payload.quantity_ordered,
                actor_id=actor_id,
                expected_version=snapshot.version,
            )
            order = OrderEvent(
                id=order_id,
                client_id=payload.client_id,
                inventory_item_id=payload.inventory_item_id,
                order_date=payload.order_date or self._clock.today(),
                quantity_ordered=payload.quantity_ordered,
                delivery_status=DeliveryStatus.PENDING.value,
                revision=1,
                created_by_id=actor_id,
            )
            self._session.add(order)
            self._session.flush()
            placement.mark_applied()

            record = self._recorder.record_order_created(order, actor_id)
            placement.mark_logged()
        except Exception:
            self._reject(placement, order_id)
            raise

        return self._order_result(order_id, ledger_result, record, placement)

    def _do_amend_order(self, order_id: UUID, new_quantity: int, actor_id: UUID) -> OrderResult:
        placement = OrderPlacement()
        try:
            order = self._locked_order(order_id)
            old_state = order.audit_state()
            amendment = OrderAmendment(
                order_id=order.id,
                inventory_item_id=order.inventory_item_id,
                old_quantity=order.quantity_ordered,
                new_quantity=new_quantity,
            )
            snapshot = self._gate.validate(OperationKind.ORDER_UPDATE, amendment)
            placement.mark_validated()

            ledger_result = self._ledger.apply_delta(
                amendment.inventory_item_id,
                -amendment.additional_quantity,
                actor_id=actor_id,
                expected_version=snapshot.version,
            )
            order.quantity_ordered = new_quantity
            order.revision = order.revision + 1
            order.updated_by_id = actor_id
            self._session.flush()
            placement.mark_applied()

            record = self._recorder.record_order_amended(order, old_state, actor_id)
            placement.mark_logged()
        except Exception:
            self._reject(placement, order_id)
            raise

        return self._order_result(order_id, ledger_result, record, placement)

    def _do_cancel_order(self, order_id: UUID, actor_id: UUID) -> OrderResult:
        placement = OrderPlacement()
        try:
            order = self._locked_order(order_id)
            old_state = order.audit_state()
            revision = order.revision + 1
            cancellation = OrderCancellation(
                order_id=order.id,
                inventory_item_id=order.inventory_item_id,
                quantity=order.quantity_ordered,
            )
            snapshot = self._gate.validate(OperationKind.ORDER_DELETE, cancellation)
            placement.mark_validated()

            ledger_result = self._ledger.apply_delta(
                cancellation.inventory_item_id,
                cancellation.quantity,
                actor_id=actor_id,
                expected_version=snapshot.version,
            )
            self._session.delete(order)
            self._session.flush()
            placement.mark_applied()

            record = self._recorder.record_order_cancelled(
                order_id, old_state, revision, actor_id,
            )
            placement.mark_logged()
        except Exception:
            self._reject(placement, order_id)
            raise

        return self._order_result(order_id, ledger_result, record, placement)

    def _locked_order(self, order_id: UUID) -> OrderEvent:
        order = self._session.execute(
            select(OrderEvent)
            .where(OrderEvent.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if order is None:
            raise ReferenceNotFoundError("OrderEvent", str(order_id))
        return order

    def _reject(self, placement: OrderPlacement, order_id: UUID) -> None:
        from_state = placement.state.value
        placement.reject()
        logger.info(
            "order_transition_rejected",
            extra={
                "order_id": str(order_id),
                "from_state": from_state,
                "history": list(placement.history),
            },
        )

    @staticmethod
    def _order_result(order_id, ledger_result, record, placement) -> OrderResult:
        return OrderResult(
            order_id=order_id,
            inventory_id=ledger_result.inventory_id,
            state=placement.state.value,
            ledger=ledger_result,
            audit_record_id=record.id,
            audit_seq=record.seq,
            revision=record.revision,
            history=placement.history,
        )

    # -----------------------------------------------------------------
    # Harvests
    # -----------------------------------------------------------------

    def record_harvest(self, payload: HarvestPayload, actor_id: UUID) -> HarvestResult:
        """Record a harvest and add its yield to the target inventory item."""
        harvest_id = payload.harvest_id or uuid4()
        return self._execute(
            "record_harvest",
            actor_id,
            harvest_id,
            lambda: self._do_record_harvest(payload, harvest_id, actor_id),
        )

    def record_harvests(
        self, payloads: list[HarvestPayload], actor_id: UUID,
    ) -> list[HarvestResult]:
        """
        Record several harvests as one statement.

        Rows are validated and inserted individually; their yields are
        collected into one StockBatch and applied once, net per inventory
        item.  Each result carries the ledger outcome of its item.
        """
        if not payloads:
            return []
        harvest_ids = [p.harvest_id or uuid4() for p in payloads]
        return self._execute(
            "record_harvests",
            actor_id,
            None,
            lambda: self._do_record_harvests(payloads, harvest_ids, actor_id),
        )

    def amend_harvest_yield(
        self, harvest_id: UUID, new_yield: int, actor_id: UUID,
    ) -> HarvestResult:
        """Correct a harvest's yield; inventory moves by ``new - old``."""
        return self._execute(
            "amend_harvest_yield",
            actor_id,
            harvest_id,
            lambda: self._do_amend_harvest_yield(harvest_id, new_yield, actor_id),
        )

    def _do_record_harvest(
        self, payload: HarvestPayload, harvest_id: UUID, actor_id: UUID,
    ) -> HarvestResult:
        snapshot = self._gate.validate(OperationKind.HARVEST_INSERT, payload)
        harvest = self._insert_harvest(payload, harvest_id, snapshot.inventory_id, actor_id)
        ledger_result = self._ledger.apply_delta(
            snapshot.inventory_id,
            payload.yield_amount,
            actor_id=actor_id,
            expected_version=snapshot.version,
        )
        return HarvestResult(
            harvest_id=harvest.id,
            inventory_id=snapshot.inventory_id,
            yield_amount=harvest.yield_amount,
            ledger=ledger_result,
        )

    def _do_record_harvests(
        self,
        payloads: list[HarvestPayload],
        harvest_ids: list[UUID],
        actor_id: UUID,
    ) -> list[HarvestResult]:
        batch = StockBatch()
        inserted: list[HarvestEvent] = []
        for payload, harvest_id in zip(payloads, harvest_ids):
            snapshot = self._batch_gate.validate(OperationKind.HARVEST_INSERT, payload)
            harvest = self._insert_harvest(payload, harvest_id, snapshot.inventory_id, actor_id)
            batch.add(snapshot.inventory_id, payload.yield_amount, source=str(harvest_id))
            inserted.append(harvest)

        by_item = {r.inventory_id: r for r in self._ledger.apply_batch(batch, actor_id)}
        return [
            HarvestResult(
                harvest_id=harvest.id,
                inventory_id=harvest.inventory_item_id,
                yield_amount=harvest.yield_amount,
                ledger=by_item.get(harvest.inventory_item_id),
            )
            for harvest in inserted
        ]

    def _do_amend_harvest_yield(
        self, harvest_id: UUID, new_yield: int, actor_id: UUID,
    ) -> HarvestResult:
        harvest = self._session.execute(
            select(HarvestEvent)
            .where(HarvestEvent.id == harvest_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if harvest is None:
            raise ReferenceNotFoundError("HarvestEvent", str(harvest_id))

        # Capture the diff before touching the row
        correction = YieldCorrection(
            harvest_id=harvest.id,
            crop_id=harvest.crop_id,
            inventory_item_id=harvest.inventory_item_id,
            old_yield=harvest.yield_amount,
            new_yield=new_yield,
        )
        snapshot = self._gate.validate(OperationKind.HARVEST_UPDATE, correction)

        harvest.yield_amount = new_yield
        harvest.updated_by_id = actor_id
        self._session.flush()

        ledger_result = self._ledger.apply_correction(
            correction, actor_id=actor_id, expected_version=snapshot.version,
        )
        logger.info(
            "harvest_yield_corrected",
            extra={
                "harvest_id": str(harvest_id),
                "old_yield": correction.old_yield,
                "new_yield": correction.new_yield,
                "delta": correction.delta,
            },
        )
        return HarvestResult(
            harvest_id=harvest.id,
            inventory_id=correction.inventory_item_id,
            yield_amount=new_yield,
            ledger=ledger_result,
        )

    def _insert_harvest(
        self,
        payload: HarvestPayload,
        harvest_id: UUID,
        inventory_id: UUID,
        actor_id: UUID,
    ) -> HarvestEvent:
        if self._session.get(HarvestEvent, harvest_id) is not None:
            raise DuplicateHarvestError(str(harvest_id))
        harvest = HarvestEvent(
            id=harvest_id,
            crop_id=payload.crop_id,
            farm_id=payload.farm_id,
            inventory_item_id=inventory_id,
            harvest_date=payload.harvest_date or self._clock.today(),
            yield_amount=payload.yield_amount,
            quality_rating=payload.quality_rating,
            created_by_id=actor_id,
        )
        self._session.add(harvest)
        self._session.flush()
        return harvest

    # -----------------------------------------------------------------
    # Raw batches
    # -----------------------------------------------------------------

    def apply_batch(self, batch: StockBatch, actor_id: UUID) -> list[LedgerResult]:
        """Apply pre-collected deltas in one transaction, in inventory-id order."""
        return self._execute(
            "apply_batch",
            actor_id,
            None,
            lambda: self._ledger.apply_batch(batch, actor_id),
        )

    # -----------------------------------------------------------------
    # Execution
    # -----------------------------------------------------------------

    def _execute(
        self,
        operation: str,
        actor_id: UUID,
        entity_id: UUID | None,
        work: Callable[[], T],
    ) -> T:
        correlation_id = str(uuid4())
        entity = str(entity_id) if entity_id is not None else None
        with LogContext.bind(
            correlation_id=correlation_id,
            actor_id=str(actor_id),
            operation=operation,
            entity_id=entity,
        ):
            logger.info(f"{operation}_started")
            t0 = time.monotonic()
            try:
                result = self._runner.run(operation, work, entity_id=entity)
            except Exception as exc:
                duration_ms = round((time.monotonic() - t0) * 1000, 2)
                logger.error(
                    f"{operation}_failed",
                    extra={
                        "duration_ms": duration_ms,
                        "error_code": exc.code if isinstance(exc, FarmstockError) else None,
                    },
                    exc_info=True,
                )
                raise

            duration_ms = round((time.monotonic() - t0) * 1000, 2)
            logger.info(
                f"{operation}_completed",
                extra={"duration_ms": duration_ms},
            )
            return result
