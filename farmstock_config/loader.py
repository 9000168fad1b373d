"""
Configuration Loader (``farmstock_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and parses it into a frozen
``KernelSettings``.  Build/test tooling: runtime callers go through
``farmstock_config.get_active_config()``.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; unknown sections and keys are rejected rather than ignored.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing ``config_id``  -> ``KeyError``.
* Out-of-range or mistyped values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields, replace
from pathlib import Path
from typing import Any

import yaml

from farmstock_config.schema import LOG_LEVELS, KernelSettings
from farmstock_kernel.domain.dtos import LockingStrategy

# section -> {yaml key: KernelSettings field}
_SECTIONS: dict[str, dict[str, str]] = {
    "database": {
        "url": "database_url",
        "pool_size": "pool_size",
        "max_overflow": "max_overflow",
        "lock_timeout_seconds": "lock_timeout_seconds",
    },
    "concurrency": {
        "locking_strategy": "locking_strategy",
        "max_retries": "max_retries",
    },
    "inventory": {
        "low_stock_threshold": "low_stock_threshold",
    },
    "logging": {
        "level": "log_level",
    },
}

_TOP_LEVEL_KEYS = frozenset({"config_id", "version"}) | frozenset(_SECTIONS)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _parse_int(name: str, value: Any, minimum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


def _parse_positive_float(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} must be a number, got {value!r}")
    if value <= 0:
        raise ValueError(f"{name} must be > 0, got {value}")
    return float(value)


def parse_locking_strategy(value: Any) -> LockingStrategy:
    if isinstance(value, LockingStrategy):
        return value
    try:
        return LockingStrategy(str(value).lower())
    except ValueError:
        allowed = ", ".join(s.value for s in LockingStrategy)
        raise ValueError(
            f"locking_strategy must be one of {allowed}, got {value!r}"
        ) from None


def parse_log_level(value: Any) -> str:
    level = str(value).upper()
    if level not in LOG_LEVELS:
        raise ValueError(f"log level must be one of {sorted(LOG_LEVELS)}, got {value!r}")
    return level


def validate_settings(settings: KernelSettings) -> KernelSettings:
    """Re-check every field and return the normalized settings."""
    if not isinstance(settings.database_url, str) or not settings.database_url:
        raise ValueError("database_url must be a non-empty string")
    return replace(
        settings,
        low_stock_threshold=_parse_int("low_stock_threshold", settings.low_stock_threshold, 0),
        lock_timeout_seconds=_parse_positive_float(
            "lock_timeout_seconds", settings.lock_timeout_seconds,
        ),
        max_retries=_parse_int("max_retries", settings.max_retries, 0),
        locking_strategy=parse_locking_strategy(settings.locking_strategy),
        log_level=parse_log_level(settings.log_level),
        pool_size=_parse_int("pool_size", settings.pool_size, 1),
        max_overflow=_parse_int("max_overflow", settings.max_overflow, 0),
    )


def parse_settings(data: dict[str, Any]) -> KernelSettings:
    """
    Parse ``KernelSettings`` from a loaded configuration set.

    Missing sections fall back to the schema defaults; ``config_id`` is
    required.
    """
    unknown = set(data) - _TOP_LEVEL_KEYS
    if unknown:
        raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")

    values: dict[str, Any] = {
        "config_id": data["config_id"],
        "version": _parse_int("version", data.get("version", 1), 1),
    }
    for section, mapping in _SECTIONS.items():
        section_data = data.get(section) or {}
        if not isinstance(section_data, dict):
            raise ValueError(f"Section '{section}' must be a mapping")
        unknown = set(section_data) - set(mapping)
        if unknown:
            raise ValueError(f"Unknown keys in '{section}': {sorted(unknown)}")
        for key, field_name in mapping.items():
            if key in section_data:
                values[field_name] = section_data[key]

    return validate_settings(
        replace(KernelSettings(), checksum=compute_checksum(data), **values)
    )


def apply_overrides(settings: KernelSettings, overrides: dict[str, Any]) -> KernelSettings:
    """Replace individual settings fields (e.g. ``database_url`` in tests)."""
    known = {f.name for f in fields(KernelSettings)} - {"checksum"}
    unknown = set(overrides) - known
    if unknown:
        raise KeyError(f"Unknown settings fields: {sorted(unknown)}")
    return validate_settings(replace(settings, **overrides))


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
