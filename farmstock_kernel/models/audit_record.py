"""
Module: farmstock_kernel.models.audit_record
Responsibility: ORM persistence for the append-only, hash-chained change log
    of order transitions.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only; no UPDATE or DELETE (ORM listener + PostgreSQL trigger).
    - seq is unique and monotonically increasing, allocated from a locked
      counter row by SequenceService.
    - (entity_name, entity_id, revision) is unique: one record per
      transition, and a transition cannot be logged twice.
    - hash = H(entity_name | entity_id | operation | payload_hash | prev_hash).
      Validated by AuditRecorder.validate_chain().

Failure modes:
    - ImmutabilityViolationError on any UPDATE/DELETE attempt.
    - IntegrityError on a duplicate transition (surfaced by the audit store
      as AuditRecordAlreadyExistsError).
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, BigInteger, DateTime, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from farmstock_kernel.db.base import Base, UUIDString


class AuditOperation(str, Enum):
    """Row-level operation being recorded."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class AuditRecord(Base):
    """
    Audit record with hash chain for tamper evidence.

    Contract:
        Produced solely by the AuditRecorder, consumed only by read-side
        reporting.  Rows are never updated or deleted.

    Non-goals:
        - This model does NOT enforce hash correctness at INSERT time;
          that is the responsibility of AuditRecorder.
    """

    __tablename__ = "audit_records"

    __table_args__ = (
        UniqueConstraint(
            "entity_name", "entity_id", "revision",
            name="uq_audit_transition",
        ),
        Index("idx_audit_entity", "entity_name", "entity_id"),
        Index("idx_audit_occurred", "occurred_at"),
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)

    # Audited entity (e.g. "OrderEvent")
    entity_name: Mapped[str] = mapped_column(String(50), nullable=False)

    entity_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    operation: Mapped[AuditOperation] = mapped_column(String(10), nullable=False)

    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    old_state: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    new_state: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    # Entity revision this record belongs to
    revision: Mapped[int] = mapped_column(BigInteger, nullable=False)

    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    # Null only for the genesis record
    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    hash: Mapped[str] = mapped_column(String(64), nullable=False)

    @property
    def operation_value(self) -> str:
        op = self.operation
        return op.value if isinstance(op, AuditOperation) else op

    @property
    def is_genesis(self) -> bool:
        return self.prev_hash is None

    def __repr__(self) -> str:
        return f"<AuditRecord #{self.seq} {self.operation_value} {self.entity_name}:{self.entity_id}>"
