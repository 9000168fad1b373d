"""
Pure domain layer.

This module contains data transfer objects and domain logic with NO
dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

Everything except the placement tracker and the stock batch builder is
immutable.
"""

from farmstock_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from farmstock_kernel.domain.dtos import (
    HarvestPayload,
    HarvestResult,
    InventorySnapshot,
    LedgerResult,
    LockingStrategy,
    OperationKind,
    OrderAmendment,
    OrderCancellation,
    OrderPayload,
    OrderResult,
    YieldCorrection,
)
from farmstock_kernel.domain.placement import (
    PLACEMENT_TRANSITIONS,
    OrderPlacement,
    PlacementState,
)
from farmstock_kernel.domain.stock_batch import BatchEntry, StockBatch

__all__ = [
    "BatchEntry",
    "Clock",
    "DeterministicClock",
    "HarvestPayload",
    "HarvestResult",
    "InventorySnapshot",
    "LedgerResult",
    "LockingStrategy",
    "OperationKind",
    "OrderAmendment",
    "OrderCancellation",
    "OrderPayload",
    "OrderPlacement",
    "OrderResult",
    "PLACEMENT_TRANSITIONS",
    "PlacementState",
    "StockBatch",
    "SystemClock",
    "YieldCorrection",
]
