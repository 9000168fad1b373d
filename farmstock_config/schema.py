"""
KernelSettings schema.

The typed, frozen form of a farmstock configuration set.  YAML files are
parsed into this by the loader; bridges turn it into engine and
coordinator arguments.
"""

from __future__ import annotations

from dataclasses import dataclass

from farmstock_kernel.domain.dtos import LockingStrategy

LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass(frozen=True)
class KernelSettings:
    """Runtime settings of the inventory kernel."""

    database_url: str = "sqlite:///farmstock.db"
    low_stock_threshold: int = 10
    lock_timeout_seconds: float = 5.0
    max_retries: int = 3
    locking_strategy: LockingStrategy = LockingStrategy.PESSIMISTIC
    log_level: str = "INFO"
    pool_size: int = 20
    max_overflow: int = 10

    # Identity of the configuration set these settings came from
    config_id: str = "default"
    version: int = 1
    checksum: str = ""

    @property
    def is_optimistic(self) -> bool:
        return self.locking_strategy == LockingStrategy.OPTIMISTIC
