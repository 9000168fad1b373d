"""
Configuration loading tests.

Verifies that YAML configuration sets parse into frozen KernelSettings,
that bad values are rejected, and that the bridges wire settings into the
kernel (coordinator thresholds, locking strategy, SQLite BEGIN mode).
"""

from __future__ import annotations

import dataclasses
import logging
from pathlib import Path

import pytest
import yaml

from farmstock_config import get_active_config
from farmstock_config.bridges import build_coordinator, init_logging, sqlite_begin_mode
from farmstock_config.loader import (
    apply_overrides,
    compute_checksum,
    parse_locking_strategy,
    parse_settings,
)
from farmstock_config.schema import KernelSettings
from farmstock_kernel.domain.dtos import LockingStrategy
from farmstock_kernel.logging_config import configure_logging, reset_logging


def _write_config(tmp_path: Path, data: dict) -> Path:
    path = tmp_path / "farmstock.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


class TestDefaultConfig:
    """The bundled default configuration set."""

    def test_default_set_loads(self):
        settings = get_active_config()
        assert settings.config_id == "farmstock-default"
        assert settings.low_stock_threshold == 10
        assert settings.max_retries == 3
        assert settings.locking_strategy == LockingStrategy.PESSIMISTIC
        assert settings.checksum

    def test_settings_are_frozen(self):
        settings = get_active_config()
        with pytest.raises(dataclasses.FrozenInstanceError):
            settings.max_retries = 10

    def test_config_trace_logged(self, captured_logs):
        settings = get_active_config()
        traces = [r for r in captured_logs() if r["message"] == "FARMSTOCK_CONFIG_TRACE"]
        assert len(traces) == 1
        assert traces[0]["config_id"] == settings.config_id
        assert traces[0]["checksum"] == settings.checksum


class TestParseSettings:
    """Parsing and validation of configuration data."""

    def test_sections_map_to_fields(self, tmp_path):
        path = _write_config(tmp_path, {
            "config_id": "rooftop",
            "version": 2,
            "database": {"url": "sqlite:///rooftop.db", "lock_timeout_seconds": 2},
            "concurrency": {"locking_strategy": "OPTIMISTIC", "max_retries": 5},
            "inventory": {"low_stock_threshold": 25},
            "logging": {"level": "debug"},
        })
        settings = get_active_config(config_path=path)

        assert settings.config_id == "rooftop"
        assert settings.version == 2
        assert settings.database_url == "sqlite:///rooftop.db"
        assert settings.lock_timeout_seconds == 2.0
        assert settings.locking_strategy == LockingStrategy.OPTIMISTIC
        assert settings.is_optimistic
        assert settings.max_retries == 5
        assert settings.low_stock_threshold == 25
        assert settings.log_level == "DEBUG"

    def test_missing_sections_use_defaults(self):
        settings = parse_settings({"config_id": "bare"})
        defaults = KernelSettings()
        assert settings.low_stock_threshold == defaults.low_stock_threshold
        assert settings.database_url == defaults.database_url

    def test_config_id_required(self):
        with pytest.raises(KeyError):
            parse_settings({"version": 1})

    def test_unknown_top_level_key_rejected(self):
        with pytest.raises(ValueError, match="Unknown configuration keys"):
            parse_settings({"config_id": "x", "warehouse": {}})

    def test_unknown_section_key_rejected(self):
        with pytest.raises(ValueError, match="Unknown keys in 'inventory'"):
            parse_settings({"config_id": "x", "inventory": {"threshold": 5}})

    @pytest.mark.parametrize("section,key,value", [
        ("inventory", "low_stock_threshold", -1),
        ("inventory", "low_stock_threshold", "ten"),
        ("concurrency", "max_retries", -2),
        ("concurrency", "locking_strategy", "mvcc"),
        ("database", "lock_timeout_seconds", 0),
        ("database", "pool_size", 0),
        ("logging", "level", "LOUD"),
    ])
    def test_bad_values_rejected(self, section, key, value):
        with pytest.raises(ValueError):
            parse_settings({"config_id": "x", section: {key: value}})

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(config_path=tmp_path / "absent.yaml")

    def test_checksum_is_deterministic(self):
        a = compute_checksum({"config_id": "x", "inventory": {"low_stock_threshold": 5}})
        b = compute_checksum({"inventory": {"low_stock_threshold": 5}, "config_id": "x"})
        assert a == b
        assert a != compute_checksum({"config_id": "y"})

    def test_parse_locking_strategy_passthrough(self):
        assert parse_locking_strategy(LockingStrategy.OPTIMISTIC) is LockingStrategy.OPTIMISTIC


class TestOverrides:

    def test_override_replaces_field(self):
        settings = get_active_config(overrides={"low_stock_threshold": 3})
        assert settings.low_stock_threshold == 3

    def test_override_is_validated(self):
        with pytest.raises(ValueError):
            apply_overrides(KernelSettings(), {"max_retries": -1})

    def test_unknown_override_rejected(self):
        with pytest.raises(KeyError):
            apply_overrides(KernelSettings(), {"retry_forever": True})


class TestBridges:
    """Settings flow into kernel objects."""

    def test_sqlite_begin_mode_follows_strategy(self):
        assert sqlite_begin_mode(KernelSettings()) == "IMMEDIATE"
        optimistic = KernelSettings(locking_strategy=LockingStrategy.OPTIMISTIC)
        assert sqlite_begin_mode(optimistic) == ""

    def test_build_coordinator_uses_settings(self, session, deterministic_clock):
        settings = apply_overrides(
            KernelSettings(),
            {"low_stock_threshold": 4, "locking_strategy": "optimistic"},
        )
        coordinator = build_coordinator(session, settings, clock=deterministic_clock)

        assert coordinator.locking_strategy == LockingStrategy.OPTIMISTIC
        assert coordinator.ledger.low_stock_threshold == 4
        assert coordinator.session is session

    def test_init_logging_applies_level(self):
        reset_logging()
        try:
            init_logging(KernelSettings(log_level="ERROR"))
            assert logging.getLogger("farmstock_kernel").level == logging.ERROR
        finally:
            reset_logging()
            configure_logging(level=logging.DEBUG)
