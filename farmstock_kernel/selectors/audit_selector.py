"""
Audit selector -- read-side access to the audit trail.

DTOs are defined inline, one selector per file.
"""

from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from sqlalchemy import func, select

from farmstock_kernel.models.audit_record import AuditRecord
from farmstock_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class AuditTraceEntry:
    """A single entry in an audit trail. Source: audit_records table."""

    seq: int
    operation: str
    revision: int
    actor_id: UUID
    old_state: dict[str, Any] | None
    new_state: dict[str, Any] | None
    hash: str


@dataclass(frozen=True)
class AuditTrail:
    """All audit records of one entity, in seq order."""

    entity_name: str
    entity_id: UUID
    entries: tuple[AuditTraceEntry, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return len(self.entries) == 0

    @property
    def operations(self) -> list[str]:
        return [entry.operation for entry in self.entries]

    @property
    def last_operation(self) -> str | None:
        return self.entries[-1].operation if self.entries else None


def _entry(record: AuditRecord) -> AuditTraceEntry:
    return AuditTraceEntry(
        seq=record.seq,
        operation=record.operation_value,
        revision=record.revision,
        actor_id=record.actor_id,
        old_state=record.old_state,
        new_state=record.new_state,
        hash=record.hash,
    )


class AuditSelector(BaseSelector):
    """Queries over ``audit_records``."""

    def trail_for(self, entity_name: str, entity_id: UUID) -> AuditTrail:
        records = self.session.execute(
            select(AuditRecord)
            .where(
                AuditRecord.entity_name == entity_name,
                AuditRecord.entity_id == entity_id,
            )
            .order_by(AuditRecord.seq)
            .execution_options(populate_existing=True)
        ).scalars().all()
        return AuditTrail(
            entity_name=entity_name,
            entity_id=entity_id,
            entries=tuple(_entry(r) for r in records),
        )

    def recent(self, limit: int = 100) -> list[AuditTraceEntry]:
        """Most recent records first."""
        records = self.session.execute(
            select(AuditRecord)
            .order_by(AuditRecord.seq.desc())
            .limit(limit)
            .execution_options(populate_existing=True)
        ).scalars().all()
        return [_entry(r) for r in records]

    def count_for(self, entity_name: str, entity_id: UUID | None = None) -> int:
        stmt = select(func.count()).select_from(AuditRecord).where(
            AuditRecord.entity_name == entity_name,
        )
        if entity_id is not None:
            stmt = stmt.where(AuditRecord.entity_id == entity_id)
        return self.session.execute(stmt).scalar_one()
