"""
Deterministic hashing utilities.

All hashing in the farmstock kernel must be deterministic and reproducible.
The audit hash chain is built exclusively from these functions.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


def _json_serializer(obj: Any) -> Any:
    """
    Custom JSON serializer for types not natively supported.

    Raises:
        TypeError: If object type is not supported.
    """
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, Decimal):
        return str(obj.normalize())
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)

    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: dict | list | Any) -> str:
    """
    Convert data to canonical JSON string.

    Keys are sorted, whitespace is stripped, and UUID/date/Decimal/Enum
    values are rendered the same way on every call.
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_serializer,
    )


def hash_payload(payload: dict) -> str:
    """Compute the hex SHA-256 of a payload's canonical JSON form."""
    canonical = canonicalize_json(payload)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def hash_audit_record(
    entity_name: str,
    entity_id: str,
    operation: str,
    payload_hash: str,
    prev_hash: str | None,
) -> str:
    """
    Compute hash for an audit record.

    The hash includes all key fields plus the previous record's hash,
    creating a tamper-evident chain.

    Args:
        entity_name: Audited entity (e.g. "OrderEvent").
        entity_id: ID of the entity.
        operation: INSERT, UPDATE or DELETE.
        payload_hash: Hash of the record payload (old/new state, actor).
        prev_hash: Hash of the previous audit record (None for genesis).

    Returns:
        Hex-encoded SHA-256 hash.
    """
    components = [
        entity_name,
        str(entity_id),
        operation,
        payload_hash,
        prev_hash or "GENESIS",
    ]
    data = "|".join(components)
    return hashlib.sha256(data.encode("utf-8")).hexdigest()
