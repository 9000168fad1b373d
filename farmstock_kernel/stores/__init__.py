"""Store adapters: the kernel's outbound persistence seams."""

from farmstock_kernel.stores.audit_store import SqlAuditStore
from farmstock_kernel.stores.base import AuditStore, InventoryStore
from farmstock_kernel.stores.inventory_store import SqlInventoryStore

__all__ = [
    "AuditStore",
    "InventoryStore",
    "SqlAuditStore",
    "SqlInventoryStore",
]
