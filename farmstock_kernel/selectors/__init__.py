"""Read-only selectors over inventory and the audit trail."""

from farmstock_kernel.selectors.audit_selector import (
    AuditSelector,
    AuditTraceEntry,
    AuditTrail,
)
from farmstock_kernel.selectors.base import BaseSelector
from farmstock_kernel.selectors.inventory_selector import (
    InventoryItemView,
    InventorySelector,
)

__all__ = [
    "AuditSelector",
    "AuditTraceEntry",
    "AuditTrail",
    "BaseSelector",
    "InventoryItemView",
    "InventorySelector",
]
