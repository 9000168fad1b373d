"""
Typed Exception Hierarchy for the Farmstock Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Stock mutations must fail loudly and precisely.  A caller placing an order
needs to tell "not enough stock" apart from "the row was locked too long"
without parsing message strings.  Every exception here therefore:

  1. Has its own class (catch by type, not message)
  2. Carries a CODE attribute (machine-readable, API-safe)
  3. Carries structured DATA (inventory id, quantities, timeouts, ...)

Example - WRONG way to handle errors:
    try:
        coordinator.place_order(payload, actor_id)
    except Exception as e:
        if "insufficient" in str(e):      # FRAGILE
            ...

Example - RIGHT way:
    try:
        coordinator.place_order(payload, actor_id)
    except InsufficientStockError as e:
        api_response(code=e.code, available=e.available, requested=e.requested)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    FarmstockError (base)
    |
    +-- ValidationError
    |   +-- ReferenceNotFoundError
    |   +-- InsufficientStockError
    |   +-- InvalidQuantityError
    |   +-- AmbiguousInventoryError
    |   +-- InventoryCropMismatchError
    |   +-- DuplicateHarvestError
    |
    +-- LedgerError
    |   +-- NegativeStockError
    |   +-- UnknownInventoryIdError
    |
    +-- AuditError
    |   +-- AuditWriteError
    |   |   +-- AuditRecordAlreadyExistsError
    |   +-- AuditChainBrokenError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |   +-- ConcurrencyConflictError
    |   +-- LockTimeoutError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- LifecycleError
        +-- InvalidPlacementTransitionError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                          | When Raised
-------------|-------------------------------|-----------------------------------
Validation   | REFERENCE_NOT_FOUND           | Crop/farm/client/item/order missing
             | INSUFFICIENT_STOCK            | Requested quantity exceeds stock
             | INVALID_QUANTITY              | Non-positive order, negative yield
             | AMBIGUOUS_INVENTORY           | Crop stocked in several items
             | INVENTORY_CROP_MISMATCH       | Item holds a different crop
-------------|-------------------------------|-----------------------------------
Ledger       | NEGATIVE_STOCK                | Post-apply quantity would be < 0
             | UNKNOWN_INVENTORY_ID          | Ledger target row does not exist
-------------|-------------------------------|-----------------------------------
Audit        | AUDIT_WRITE_FAILED            | Audit store rejected the append
             | AUDIT_RECORD_EXISTS           | Transition already logged
             | AUDIT_CHAIN_BROKEN            | Hash chain validation failed
-------------|-------------------------------|-----------------------------------
Concurrency  | OPTIMISTIC_LOCK_CONFLICT      | Version changed under us (retried)
             | CONCURRENCY_CONFLICT          | Retries exhausted
             | LOCK_TIMEOUT                  | Row lock not granted in time
-------------|-------------------------------|-----------------------------------
Immutability | IMMUTABILITY_VIOLATION        | Audit/harvest row modified
-------------|-------------------------------|-----------------------------------
Lifecycle    | INVALID_PLACEMENT_TRANSITION  | Illegal state machine step

===============================================================================
PROPAGATION POLICY
===============================================================================

Every error aborts the enclosing transaction and reaches the caller.  Only
OptimisticLockError is retried (by the transaction runner, up to the
configured bound); when the bound is exhausted the caller receives
ConcurrencyConflictError.  Low stock is an advisory, never an exception.
"""


class FarmstockError(Exception):
    """
    Base exception for all farmstock kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "FARMSTOCK_ERROR"


# Validation-related exceptions


class ValidationError(FarmstockError):
    """Base exception for Validation Gate rejections."""

    code: str = "VALIDATION_ERROR"


class ReferenceNotFoundError(ValidationError):
    """A referenced crop, farm, client, inventory item or order does not exist."""

    code: str = "REFERENCE_NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


class InsufficientStockError(ValidationError):
    """Requested quantity exceeds the stock currently on hand."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, inventory_id: str, available: int, requested: int):
        self.inventory_id = inventory_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for inventory item {inventory_id}: "
            f"available {available}, requested {requested}"
        )


class InvalidQuantityError(ValidationError):
    """A quantity field is outside its allowed range."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, field: str, value: int, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field} {value!r}: {reason}")


class AmbiguousInventoryError(ValidationError):
    """A harvest names no inventory item and its crop is stocked in several."""

    code: str = "AMBIGUOUS_INVENTORY"

    def __init__(self, crop_id: str, candidate_ids: list[str]):
        self.crop_id = crop_id
        self.candidate_ids = candidate_ids
        super().__init__(
            f"Crop {crop_id} is stocked in {len(candidate_ids)} inventory items; "
            "an explicit inventory_item_id is required"
        )


class InventoryCropMismatchError(ValidationError):
    """The target inventory item holds a different crop than the harvest."""

    code: str = "INVENTORY_CROP_MISMATCH"

    def __init__(self, inventory_id: str, expected_crop_id: str, actual_crop_id: str):
        self.inventory_id = inventory_id
        self.expected_crop_id = expected_crop_id
        self.actual_crop_id = actual_crop_id
        super().__init__(
            f"Inventory item {inventory_id} holds crop {actual_crop_id}, "
            f"not {expected_crop_id}"
        )


class DuplicateHarvestError(ValidationError):
    """A harvest with this id is already recorded."""

    code: str = "DUPLICATE_HARVEST"

    def __init__(self, harvest_id: str):
        self.harvest_id = harvest_id
        super().__init__(f"Harvest {harvest_id} is already recorded")


# Ledger-related exceptions


class LedgerError(FarmstockError):
    """Base exception for Stock Ledger failures."""

    code: str = "LEDGER_ERROR"


class NegativeStockError(LedgerError):
    """Applying the delta would drive on-hand quantity below zero."""

    code: str = "NEGATIVE_STOCK"

    def __init__(self, inventory_id: str, current_quantity: int, delta: int):
        self.inventory_id = inventory_id
        self.current_quantity = current_quantity
        self.delta = delta
        super().__init__(
            f"Delta {delta:+d} on inventory item {inventory_id} would leave "
            f"{current_quantity + delta} on hand"
        )


class UnknownInventoryIdError(LedgerError):
    """The ledger was asked to mutate an inventory row that does not exist."""

    code: str = "UNKNOWN_INVENTORY_ID"

    def __init__(self, inventory_id: str):
        self.inventory_id = inventory_id
        super().__init__(f"Unknown inventory item: {inventory_id}")


# Audit-related exceptions


class AuditError(FarmstockError):
    """Base exception for audit-related errors."""

    code: str = "AUDIT_ERROR"


class AuditWriteError(AuditError):
    """The audit store could not append the record; the transaction aborts."""

    code: str = "AUDIT_WRITE_FAILED"

    def __init__(self, entity_name: str, entity_id: str, reason: str):
        self.entity_name = entity_name
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Audit write failed for {entity_name} {entity_id}: {reason}"
        )


class AuditRecordAlreadyExistsError(AuditWriteError):
    """The transition identified by (entity, revision) is already logged."""

    code: str = "AUDIT_RECORD_EXISTS"

    def __init__(self, entity_name: str, entity_id: str, revision: int):
        self.revision = revision
        super().__init__(
            entity_name,
            entity_id,
            f"revision {revision} is already recorded",
        )


class AuditChainBrokenError(AuditError):
    """Audit hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, audit_record_id: str, expected_hash: str, actual_hash: str):
        self.audit_record_id = audit_record_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken at {audit_record_id}: "
            f"expected {expected_hash}, found {actual_hash}"
        )


# Concurrency-related exceptions


class ConcurrencyError(FarmstockError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """
    The inventory row changed between read and write.

    Raised by the inventory store's compare-and-swap write.  The transaction
    runner catches it and retries the whole unit; callers only ever see it
    wrapped as ConcurrencyConflictError.
    """

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


class ConcurrencyConflictError(ConcurrencyError):
    """Conflicting writers kept winning until the retry bound was exhausted."""

    code: str = "CONCURRENCY_CONFLICT"

    def __init__(self, operation: str, attempts: int, entity_id: str | None = None):
        self.operation = operation
        self.attempts = attempts
        self.entity_id = entity_id
        super().__init__(
            f"{operation} gave up after {attempts} attempt(s) "
            f"because of concurrent modification"
            + (f" of {entity_id}" if entity_id else "")
        )


class LockTimeoutError(ConcurrencyError):
    """A row or database lock was not granted within the configured timeout."""

    code: str = "LOCK_TIMEOUT"

    def __init__(self, operation: str, timeout_seconds: float):
        self.operation = operation
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"{operation} could not acquire a lock within {timeout_seconds}s"
        )


# Immutability-related exceptions


class ImmutabilityError(FarmstockError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    AuditRecord rows are immutable from creation; HarvestEvent rows are
    immutable except for yield corrections.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Lifecycle-related exceptions


class LifecycleError(FarmstockError):
    """Base exception for state machine errors."""

    code: str = "LIFECYCLE_ERROR"


class InvalidPlacementTransitionError(LifecycleError):
    """An order placement tried to move between states the machine forbids."""

    code: str = "INVALID_PLACEMENT_TRANSITION"

    def __init__(self, from_state: str, to_state: str):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid placement transition: {from_state} -> {to_state}"
        )
