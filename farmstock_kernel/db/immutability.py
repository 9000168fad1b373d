"""
ORM-Level Immutability Enforcement (Layer 1 of 2).

===============================================================================
WHY THIS EXISTS
===============================================================================

The audit trail is only worth something if it cannot be rewritten, and a
harvest's provenance (crop, farm, date, target inventory item) must not drift
after its yield has been propagated into stock.

  Layer 1: THIS FILE (ORM event listeners)
    - Catches modifications through Python/SQLAlchemy code
    - Fires BEFORE the SQL is sent to the database

  Layer 2: db/triggers.py (PostgreSQL triggers)
    - Catches raw SQL, bulk UPDATE statements, direct psql access

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity        | When Immutable            | Allowed changes
--------------|---------------------------|---------------------------------
AuditRecord   | ALWAYS (from creation)    | none; no delete either
HarvestEvent  | ALWAYS (from creation)    | yield_amount (yield correction),
              |                           | updated_at / updated_by_id

===============================================================================
USAGE
===============================================================================

    from farmstock_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect

from farmstock_kernel.db.base import AUDIT_METADATA_FIELDS
from farmstock_kernel.exceptions import ImmutabilityViolationError
from farmstock_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _changed_fields(target) -> set[str]:
    """Column attributes with pending changes on ``target``."""
    state = inspect(target)
    changed = set()
    for attr in state.mapper.column_attrs:
        if state.attrs[attr.key].history.has_changes():
            changed.add(attr.key)
    return changed


def _block(entity_type: str, entity_id: str, operation: str, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": entity_id,
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=entity_id,
        reason=reason,
    )


def _check_audit_record_immutability(mapper, connection, target):
    """Prevent any updates to AuditRecord rows."""
    _block(
        "AuditRecord",
        str(target.id),
        "UPDATE",
        "Audit records are immutable and cannot be modified",
    )


def _check_audit_record_delete(mapper, connection, target):
    """Prevent deletion of AuditRecord rows."""
    _block(
        "AuditRecord",
        str(target.id),
        "DELETE",
        "Audit records cannot be deleted",
    )


def _check_harvest_event_immutability(mapper, connection, target):
    """Allow yield corrections only; every other field is frozen."""
    from farmstock_kernel.models.harvest_event import HARVEST_MUTABLE_FIELDS

    forbidden = _changed_fields(target) - HARVEST_MUTABLE_FIELDS - AUDIT_METADATA_FIELDS
    if forbidden:
        _block(
            "HarvestEvent",
            str(target.id),
            "UPDATE",
            f"Only yield_amount may be corrected; attempted to change {sorted(forbidden)}",
        )


def _check_harvest_event_delete(mapper, connection, target):
    """Harvests are never deleted; their yield is already in stock."""
    _block(
        "HarvestEvent",
        str(target.id),
        "DELETE",
        "Recorded harvests cannot be deleted",
    )


def _listeners():
    from farmstock_kernel.models.audit_record import AuditRecord
    from farmstock_kernel.models.harvest_event import HarvestEvent

    return [
        (AuditRecord, "before_update", _check_audit_record_immutability),
        (AuditRecord, "before_delete", _check_audit_record_delete),
        (HarvestEvent, "before_update", _check_harvest_event_immutability),
        (HarvestEvent, "before_delete", _check_harvest_event_delete),
    ]


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Call this after all models are imported but before any database
    operations begin.  Safe to call more than once.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules to verify detection.
    """
    for target, event_name, listener_fn in _listeners():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
