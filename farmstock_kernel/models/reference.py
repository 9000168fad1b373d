"""
Module: farmstock_kernel.models.reference
Responsibility: Reference entities the kernel validates against but never
    mutates: crops, farms and clients.  Their CRUD lives outside the kernel.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from farmstock_kernel.db.base import TrackedBase


class Crop(TrackedBase):
    """A crop variety grown by the farms (e.g. "Basil", "Genovese")."""

    __tablename__ = "crops"

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    variety: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        return f"<Crop {self.name}>"


class Farm(TrackedBase):
    """An urban farm site that records harvests."""

    __tablename__ = "farms"

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    location: Mapped[str | None] = mapped_column(String(200), nullable=True)

    def __repr__(self) -> str:
        return f"<Farm {self.name}>"


class Client(TrackedBase):
    """A customer that places orders against inventory."""

    __tablename__ = "clients"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    contact_email: Mapped[str | None] = mapped_column(String(200), nullable=True)

    def __repr__(self) -> str:
        return f"<Client {self.name}>"
