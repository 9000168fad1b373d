"""
SqlAuditStore -- SQLAlchemy adapter for the append-only audit log.

Responsibility:
    Inserts AuditRecord rows inside a savepoint and translates persistence
    failures into the kernel's audit exceptions.  The savepoint keeps a
    failed append from poisoning the caller's session; the caller still
    receives the exception and aborts its transaction.

Architecture position:
    Kernel > Stores.  Used only by the AuditRecorder.

Failure modes:
    - AuditRecordAlreadyExistsError if (entity_name, entity_id, revision)
      is already present.
    - AuditWriteError for any other SQLAlchemyError during the append.
      Lock timeouts and serialization failures propagate unchanged for the
      transaction runner to classify.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from farmstock_kernel.db.errors import is_concurrency_outcome
from farmstock_kernel.exceptions import AuditRecordAlreadyExistsError, AuditWriteError
from farmstock_kernel.logging_config import get_logger
from farmstock_kernel.models.audit_record import AuditRecord
from farmstock_kernel.stores.base import AuditStore

logger = get_logger("stores.audit")


class SqlAuditStore(AuditStore):
    """Audit store backed by the ``audit_records`` table."""

    def __init__(self, session: Session):
        self.session = session

    def _transition_exists(self, entity_name: str, entity_id: UUID, revision: int) -> bool:
        found = self.session.execute(
            select(AuditRecord.id).where(
                AuditRecord.entity_name == entity_name,
                AuditRecord.entity_id == entity_id,
                AuditRecord.revision == revision,
            )
        ).first()
        return found is not None

    def append_record(self, record: AuditRecord) -> AuditRecord:
        if self._transition_exists(record.entity_name, record.entity_id, record.revision):
            raise AuditRecordAlreadyExistsError(
                record.entity_name, str(record.entity_id), record.revision,
            )

        savepoint = self.session.begin_nested()
        try:
            self.session.add(record)
            self.session.flush()
            savepoint.commit()
        except IntegrityError as exc:
            savepoint.rollback()
            # A concurrent writer may have logged the same transition first
            if self._transition_exists(record.entity_name, record.entity_id, record.revision):
                raise AuditRecordAlreadyExistsError(
                    record.entity_name, str(record.entity_id), record.revision,
                ) from exc
            raise AuditWriteError(
                record.entity_name, str(record.entity_id), str(exc.orig),
            ) from exc
        except SQLAlchemyError as exc:
            if savepoint.is_active:
                savepoint.rollback()
            if is_concurrency_outcome(exc):
                raise
            logger.error(
                "audit_append_failed",
                extra={
                    "entity_name": record.entity_name,
                    "entity_id": str(record.entity_id),
                },
                exc_info=True,
            )
            raise AuditWriteError(
                record.entity_name, str(record.entity_id), str(getattr(exc, "orig", None) or exc),
            ) from exc

        return record

    def last_record(self) -> AuditRecord | None:
        return self.session.execute(
            select(AuditRecord).order_by(AuditRecord.seq.desc()).limit(1)
        ).scalar_one_or_none()

    def records(
        self,
        entity_name: str | None = None,
        entity_id: UUID | None = None,
    ) -> list[AuditRecord]:
        stmt = select(AuditRecord)
        if entity_name is not None:
            stmt = stmt.where(AuditRecord.entity_name == entity_name)
        if entity_id is not None:
            stmt = stmt.where(AuditRecord.entity_id == entity_id)
        stmt = stmt.order_by(AuditRecord.seq).execution_options(populate_existing=True)
        return list(self.session.execute(stmt).scalars().all())
