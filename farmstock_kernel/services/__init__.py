"""Kernel services: validation, ledger, audit and orchestration."""

from farmstock_kernel.services.audit_recorder import AuditRecorder
from farmstock_kernel.services.base import BaseService
from farmstock_kernel.services.inventory_coordinator import InventoryCoordinator
from farmstock_kernel.services.sequence_service import SequenceService
from farmstock_kernel.services.stock_ledger import StockLedger
from farmstock_kernel.services.transaction_runner import TransactionRunner
from farmstock_kernel.services.validation_gate import ValidationGate

__all__ = [
    "AuditRecorder",
    "BaseService",
    "InventoryCoordinator",
    "SequenceService",
    "StockLedger",
    "TransactionRunner",
    "ValidationGate",
]
