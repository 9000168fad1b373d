"""
StockBatch -- deltas collected from a multi-row statement, applied once.

A multi-row harvest import produces one delta per row.  Rather than
mutating inventory row by row, the coordinator collects the deltas here and
the Stock Ledger applies the net delta per inventory item in ascending
inventory-id order, so every batch acquires row locks in the same order.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class BatchEntry:
    inventory_id: UUID
    delta: int
    source: str | None = None


class StockBatch:
    """Ordered collection of signed stock deltas."""

    def __init__(self) -> None:
        self._entries: list[BatchEntry] = []

    def add(self, inventory_id: UUID, delta: int, source: str | None = None) -> None:
        if not isinstance(delta, int) or isinstance(delta, bool):
            raise TypeError(f"delta must be an int, got {type(delta).__name__}")
        self._entries.append(BatchEntry(inventory_id, delta, source))

    @property
    def entries(self) -> tuple[BatchEntry, ...]:
        return tuple(self._entries)

    def net_deltas(self) -> list[tuple[UUID, int]]:
        """Net delta per inventory item, sorted by inventory id."""
        totals: dict[UUID, int] = OrderedDict()
        for entry in self._entries:
            totals[entry.inventory_id] = totals.get(entry.inventory_id, 0) + entry.delta
        return sorted(totals.items(), key=lambda item: str(item[0]))

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)
