"""Domain models for the farmstock kernel."""

from farmstock_kernel.models.audit_record import AuditOperation, AuditRecord
from farmstock_kernel.models.harvest_event import HARVEST_MUTABLE_FIELDS, HarvestEvent
from farmstock_kernel.models.inventory_item import FreshnessStatus, InventoryItem
from farmstock_kernel.models.order_event import DeliveryStatus, OrderEvent
from farmstock_kernel.models.reference import Client, Crop, Farm
from farmstock_kernel.models.sequence_counter import SequenceCounter

__all__ = [
    "AuditOperation",
    "AuditRecord",
    "Client",
    "Crop",
    "DeliveryStatus",
    "Farm",
    "FreshnessStatus",
    "HARVEST_MUTABLE_FIELDS",
    "HarvestEvent",
    "InventoryItem",
    "OrderEvent",
    "SequenceCounter",
]
