"""
BaseService -- abstract base for kernel services that write.

Responsibility:
    Common constructor and session-handling contract.  Concrete services
    receive a SQLAlchemy ``Session`` and persist with ``session.flush()``,
    never ``session.commit()``.

Architecture position:
    Kernel > Services.  The InventoryCoordinator (through the
    TransactionRunner) owns commit and rollback, which is what makes
    validate, apply, log and commit one atomic unit.

Failure modes:
    - A subclass that commits on its own breaks the all-or-nothing
      guarantee of the order and harvest flows.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseService(ABC):
    """
    Abstract base class for kernel services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide read-only reporting; that belongs in
          ``farmstock_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
