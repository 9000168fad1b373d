"""
Config -> Kernel Bridges.

Functions that turn ``KernelSettings`` into kernel-compatible inputs.  They
live here because the kernel must NEVER import farmstock_config.

Usage:
    from farmstock_config import get_active_config
    from farmstock_config.bridges import build_coordinator, init_engine

    settings = get_active_config()
    init_engine(settings)
    with session_scope() as session:
        coordinator = build_coordinator(session, settings)
"""

from __future__ import annotations

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from farmstock_config.schema import KernelSettings
from farmstock_kernel.db.engine import init_engine_from_url
from farmstock_kernel.domain.clock import Clock
from farmstock_kernel.domain.dtos import LockingStrategy
from farmstock_kernel.logging_config import configure_logging
from farmstock_kernel.services.inventory_coordinator import InventoryCoordinator
from farmstock_kernel.services.stock_ledger import LowStockCallback


def sqlite_begin_mode(settings: KernelSettings) -> str:
    """``BEGIN IMMEDIATE`` serializes SQLite writers for the pessimistic strategy."""
    return "IMMEDIATE" if settings.locking_strategy == LockingStrategy.PESSIMISTIC else ""


def init_engine(settings: KernelSettings, echo: bool = False) -> Engine:
    """Initialize the kernel's module-level engine from settings."""
    return init_engine_from_url(
        settings.database_url,
        echo=echo,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
        lock_timeout_seconds=settings.lock_timeout_seconds,
        sqlite_begin_mode=sqlite_begin_mode(settings),
    )


def init_logging(settings: KernelSettings) -> None:
    configure_logging(level=settings.log_level)


def build_coordinator(
    session: Session,
    settings: KernelSettings,
    clock: Clock | None = None,
    on_low_stock: LowStockCallback | None = None,
    auto_commit: bool = True,
) -> InventoryCoordinator:
    """InventoryCoordinator wired with the thresholds and strategy from settings."""
    return InventoryCoordinator(
        session,
        clock=clock,
        low_stock_threshold=settings.low_stock_threshold,
        locking_strategy=settings.locking_strategy,
        max_retries=settings.max_retries,
        lock_timeout_seconds=settings.lock_timeout_seconds,
        on_low_stock=on_low_stock,
        auto_commit=auto_commit,
    )
