"""
Module: farmstock_kernel.models.sequence_counter
Responsibility: Named counter rows backing monotonic sequences.  Each row is
    locked (SELECT ... FOR UPDATE) while its value is incremented.
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from farmstock_kernel.db.base import Base


class SequenceCounter(Base):
    """Sequence counter table: one row per named sequence."""

    __tablename__ = "sequence_counters"

    # Sequence name (e.g., "audit_record")
    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)

    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
