"""
Module: farmstock_kernel.stores.base
Responsibility: Abstract contracts for the two external collaborators the
    kernel writes to: the inventory store (atomic read-modify-write of
    on-hand quantity) and the audit store (append-only persistence).
Architecture position: Kernel > Stores.  Services depend on these contracts;
    the SQLAlchemy adapters in this package implement them.

Invariants enforced:
    - Every store operation runs in the caller's session and transaction.
      Stores flush; they never commit or roll back.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from uuid import UUID

from farmstock_kernel.domain.dtos import InventorySnapshot
from farmstock_kernel.models.audit_record import AuditRecord


class InventoryStore(ABC):
    """Row-level access to on-hand inventory quantity."""

    @abstractmethod
    def read_snapshot(self, inventory_id: UUID, lock: bool = False) -> InventorySnapshot | None:
        """
        Read quantity and version of one inventory row.

        Args:
            inventory_id: Row to read.
            lock: If True, hold a row lock until the transaction ends.

        Returns:
            The snapshot, or None if no such row exists.
        """

    @abstractmethod
    def read_quantity(self, inventory_id: UUID) -> int:
        """Current on-hand quantity.  Raises UnknownInventoryIdError if absent."""

    @abstractmethod
    def write_quantity(
        self,
        inventory_id: UUID,
        new_value: int,
        expected_version: int | None = None,
        actor_id: UUID | None = None,
    ) -> int:
        """
        Persist a new quantity and bump the row version.

        With ``expected_version`` the write is a compare-and-swap and raises
        OptimisticLockError when the stored version differs.

        Returns:
            The row's new version.
        """

    @abstractmethod
    def items_for_crop(self, crop_id: UUID) -> list[InventorySnapshot]:
        """All inventory rows holding ``crop_id``, ordered by id."""


class AuditStore(ABC):
    """Append-only persistence of audit records."""

    @abstractmethod
    def append_record(self, record: AuditRecord) -> AuditRecord:
        """
        Append one record.

        Raises:
            AuditRecordAlreadyExistsError: The transition is already logged.
            AuditWriteError: Any other persistence failure.
        """

    @abstractmethod
    def last_record(self) -> AuditRecord | None:
        """The record with the highest seq, or None for an empty log."""

    @abstractmethod
    def records(
        self,
        entity_name: str | None = None,
        entity_id: UUID | None = None,
    ) -> list[AuditRecord]:
        """Records in seq order, optionally restricted to one entity."""
