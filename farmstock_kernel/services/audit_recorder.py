"""
AuditRecorder -- append-only, hash-chained log of order transitions.

Responsibility:
    Appends exactly one AuditRecord per mutating OrderEvent transition
    (create, amend, cancel), in the same transaction as the stock mutation,
    and validates the hash chain on demand.

Architecture position:
    Kernel > Services.  Called by the InventoryCoordinator after the
    StockLedger.  Writes through the AuditStore; allocates ``seq`` from the
    SequenceService.

Invariants enforced:
    - Append-only: records are never updated or deleted (ORM listeners in
      db/immutability.py; PostgreSQL triggers in db/triggers.py).
    - One record per transition: (entity_name, entity_id, revision) is
      unique, so a transition cannot be logged twice.
    - Hash chain: hash = H(entity_name | entity_id | operation |
      payload_hash | prev_hash); the genesis record has prev_hash None.
    - Fail-closed: any store failure raises and the caller's transaction
      rolls back, stock mutation included.

Failure modes:
    - AuditRecordAlreadyExistsError on a duplicate transition.
    - AuditWriteError on any other store failure.
    - AuditChainBrokenError from validate_chain() on tampering.

Audit state for orders:
    ``{id, inventory_item_id, quantity_ordered, delivery_status}``.
    INSERT records carry ``old_state=None``; DELETE records carry
    ``new_state=None``.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from farmstock_kernel.db.errors import is_concurrency_outcome
from farmstock_kernel.domain.clock import Clock, SystemClock
from farmstock_kernel.exceptions import AuditChainBrokenError, AuditWriteError
from farmstock_kernel.logging_config import get_logger
from farmstock_kernel.models.audit_record import AuditOperation, AuditRecord
from farmstock_kernel.models.order_event import OrderEvent
from farmstock_kernel.services.base import BaseService
from farmstock_kernel.services.sequence_service import SequenceService
from farmstock_kernel.stores.audit_store import SqlAuditStore
from farmstock_kernel.stores.base import AuditStore
from farmstock_kernel.utils.hashing import hash_audit_record, hash_payload

logger = get_logger("services.audit_recorder")

ORDER_ENTITY = "OrderEvent"


def audit_payload(
    actor_id: UUID,
    old_state: dict[str, Any] | None,
    new_state: dict[str, Any] | None,
    revision: int,
) -> dict[str, Any]:
    """The content covered by a record's payload_hash."""
    return {
        "actor_id": str(actor_id),
        "old_state": old_state,
        "new_state": new_state,
        "revision": revision,
    }


class AuditRecorder(BaseService):
    """
    Records order transitions and verifies the audit chain.

    Non-goals:
        - Does NOT commit; the coordinator owns the transaction.
        - Does NOT audit harvests or inventory rows; only order
          transitions are logged.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit_store: AuditStore | None = None,
        sequence_service: SequenceService | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._store = audit_store or SqlAuditStore(session)
        self._sequences = sequence_service or SequenceService(session)

    def record(
        self,
        entity_name: str,
        entity_id: UUID,
        operation: AuditOperation,
        actor_id: UUID,
        old_state: dict[str, Any] | None,
        new_state: dict[str, Any] | None,
        revision: int,
    ) -> AuditRecord:
        """
        Append one audit record.

        Postconditions:
            - The record is flushed in the caller's transaction with a
              fresh ``seq`` and a hash linked to the previous record.
        """
        try:
            record = self._append(
                entity_name, entity_id, operation, actor_id, old_state, new_state, revision,
            )
        except SQLAlchemyError as exc:
            if is_concurrency_outcome(exc):
                raise
            logger.error(
                "audit_append_failed",
                extra={"entity_name": entity_name, "entity_id": str(entity_id)},
                exc_info=True,
            )
            raise AuditWriteError(
                entity_name, str(entity_id), str(getattr(exc, "orig", None) or exc),
            ) from exc
        seq = record.seq

        logger.info(
            "audit_record_created",
            extra={
                "entity_name": entity_name,
                "entity_id": str(entity_id),
                "audit_operation": operation.value,
                "revision": revision,
                "seq": seq,
            },
        )
        return record

    def _append(
        self,
        entity_name: str,
        entity_id: UUID,
        operation: AuditOperation,
        actor_id: UUID,
        old_state: dict[str, Any] | None,
        new_state: dict[str, Any] | None,
        revision: int,
    ) -> AuditRecord:
        # Locking the counter row first serializes chain appends
        seq = self._sequences.next_value(SequenceService.AUDIT_RECORD)

        last = self._store.last_record()
        prev_hash = last.hash if last is not None else None

        payload_hash = hash_payload(audit_payload(actor_id, old_state, new_state, revision))
        record_hash = hash_audit_record(
            entity_name=entity_name,
            entity_id=str(entity_id),
            operation=operation.value,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
        )

        record = AuditRecord(
            seq=seq,
            entity_name=entity_name,
            entity_id=entity_id,
            operation=operation.value,
            actor_id=actor_id,
            occurred_at=self._clock.now(),
            old_state=old_state,
            new_state=new_state,
            revision=revision,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
            hash=record_hash,
        )

        return self._store.append_record(record)

    # Order transitions

    def record_order_created(self, order: OrderEvent, actor_id: UUID) -> AuditRecord:
        return self.record(
            ORDER_ENTITY, order.id, AuditOperation.INSERT, actor_id,
            old_state=None,
            new_state=order.audit_state(),
            revision=order.revision,
        )

    def record_order_amended(
        self, order: OrderEvent, old_state: dict[str, Any], actor_id: UUID,
    ) -> AuditRecord:
        return self.record(
            ORDER_ENTITY, order.id, AuditOperation.UPDATE, actor_id,
            old_state=old_state,
            new_state=order.audit_state(),
            revision=order.revision,
        )

    def record_order_cancelled(
        self, order_id: UUID, old_state: dict[str, Any], revision: int, actor_id: UUID,
    ) -> AuditRecord:
        return self.record(
            ORDER_ENTITY, order_id, AuditOperation.DELETE, actor_id,
            old_state=old_state,
            new_state=None,
            revision=revision,
        )

    # Chain validation

    def validate_chain(self) -> bool:
        """
        Walk every record in seq order and recompute its hashes.

        Raises:
            AuditChainBrokenError: At the first record whose payload hash,
                record hash or back-link does not match.
        """
        records = self._store.records()
        previous: AuditRecord | None = None

        for record in records:
            expected_prev = previous.hash if previous is not None else None
            if record.prev_hash != expected_prev:
                self._broken(record, expected_prev or "None", record.prev_hash or "None")

            expected_payload_hash = hash_payload(
                audit_payload(record.actor_id, record.old_state, record.new_state, record.revision)
            )
            if record.payload_hash != expected_payload_hash:
                self._broken(record, expected_payload_hash, record.payload_hash)

            expected_hash = hash_audit_record(
                entity_name=record.entity_name,
                entity_id=str(record.entity_id),
                operation=record.operation_value,
                payload_hash=record.payload_hash,
                prev_hash=record.prev_hash,
            )
            if record.hash != expected_hash:
                self._broken(record, expected_hash, record.hash)
            previous = record

        logger.info("audit_chain_valid", extra={"record_count": len(records)})
        return True

    def _broken(self, record: AuditRecord, expected: str, actual: str) -> None:
        logger.critical(
            "audit_chain_broken",
            extra={"audit_record_id": str(record.id), "seq": record.seq},
        )
        raise AuditChainBrokenError(str(record.id), expected, actual)
