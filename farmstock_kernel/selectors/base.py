"""
Module: farmstock_kernel.selectors.base
Responsibility: Abstract base class for read-only query selectors.  Selectors
    are the read side of the kernel: callers and tests inspect stock and the
    audit trail through them without touching ORM rows directly.
Architecture position: Kernel > Selectors.  May import from db/ and models/.
    MUST NOT import from services/ or stores/.

Invariants enforced:
    - Read-only access: selectors never add, delete, flush or commit.
    - DTO return convention: selectors return frozen dataclasses, not ORM
      instances.
    - Fresh reads: queries use ``populate_existing`` or column selects, so a
      selector sharing a session with the coordinator sees committed ledger
      writes rather than stale identity-map copies.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only
        queries, and return DTOs.  The caller owns the session.
    """

    def __init__(self, session: Session):
        self.session = session
