"""
Structured logging tests.

Covers what the kernel relies on: kernel error fields on failure lines,
redaction of SQL from database errors, domain value serialization, the
per-call LogContext, and the coordinator's started/completed/failed lines.
"""

import json
import logging
import sys
from datetime import date
from io import StringIO

import pytest
from sqlalchemy.exc import OperationalError

from farmstock_kernel.domain.dtos import OrderPayload
from farmstock_kernel.exceptions import InsufficientStockError
from farmstock_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)
from farmstock_kernel.models.inventory_item import FreshnessStatus


def _format(message="event", exc=None, **extra) -> dict:
    """Render one record through the formatter and parse it back."""
    exc_info = None
    if exc is not None:
        try:
            raise exc
        except type(exc):
            exc_info = sys.exc_info()
    record = logging.LogRecord(
        "farmstock_kernel.test", logging.ERROR, __file__, 1, message, (), exc_info,
    )
    record.__dict__.update(extra)
    return json.loads(StructuredFormatter().format(record))


class TestExceptionFields:

    def test_kernel_error_attributes_logged(self):
        line = _format(exc=InsufficientStockError("item-1", available=5, requested=6))

        assert line["exc_type"] == "InsufficientStockError"
        assert line["exc_code"] == "INSUFFICIENT_STOCK"
        assert line["exc_inventory_id"] == "item-1"
        assert line["exc_available"] == 5
        assert line["exc_requested"] == 6
        assert "traceback" in line

    def test_database_error_keeps_driver_message_only(self):
        error = OperationalError(
            "UPDATE clients SET contact_email = ?", ("chef@bistro.example",),
            Exception("database is locked"),
        )

        line = _format(exc=error)

        assert line["exc_type"] == "OperationalError"
        assert line["exc_message"] == "database is locked"
        assert "exc_code" not in line
        assert not any(key in line for key in ("exc_statement", "exc_params", "exc_orig"))
        assert "chef@bistro.example" not in json.dumps({k: v for k, v in line.items() if k != "traceback"})

    def test_plain_exception_has_no_structured_fields(self):
        line = _format(exc=RuntimeError("pager offline"))

        assert line["exc_message"] == "pager offline"
        assert [k for k in line if k.startswith("exc_")] == ["exc_type", "exc_message"]


class TestSerialization:

    def test_domain_values_serialized(self):
        line = _format(
            "harvest_recorded",
            freshness=FreshnessStatus.AGING,
            harvest_date=date(2026, 5, 1),
            quantity=800,
        )

        assert line["freshness"] == "aging"
        assert line["harvest_date"] == "2026-05-01"
        assert line["quantity"] == 800

    def test_context_fields_merged(self):
        with LogContext.bind(operation="amend_harvest_yield", entity_id="h-1"):
            line = _format("stock_delta_applied", delta=5)

        assert line["operation"] == "amend_harvest_yield"
        assert line["entity_id"] == "h-1"
        assert "correlation_id" not in line


class TestLogContext:

    def test_bind_skips_none_and_restores(self):
        LogContext.set(correlation_id="outer")
        with LogContext.bind(correlation_id="inner", entity_id=None):
            assert LogContext.get_all() == {"correlation_id": "inner"}
        assert LogContext.get_all() == {"correlation_id": "outer"}

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError):
            LogContext.set(trace_id="t")


class TestConfigureLogging:

    @pytest.fixture(autouse=True)
    def _fresh_configuration(self):
        reset_logging()
        yield
        reset_logging()
        configure_logging(level=logging.DEBUG)

    def test_single_handler_and_level_name(self):
        stream = StringIO()
        configure_logging(stream=stream, level="WARNING")
        configure_logging(stream=StringIO(), level="DEBUG")

        log = get_logger("services.stock_ledger")
        log.info("stock_delta_applied")
        log.warning("low_stock_advisory")

        lines = [json.loads(x) for x in stream.getvalue().splitlines()]
        assert [x["message"] for x in lines] == ["low_stock_advisory"]
        assert lines[0]["logger"] == "farmstock_kernel.services.stock_ledger"
        assert len(logging.getLogger("farmstock_kernel").handlers) == 1


class TestCoordinatorLogging:
    """Each coordinator call logs under one correlation id."""

    def _order(self, stocked, quantity):
        return OrderPayload(
            client_id=stocked["client"].id,
            inventory_item_id=stocked["item"].id,
            quantity_ordered=quantity,
        )

    def test_place_order_lifecycle_logged(self, captured_logs, coordinator, stocked, test_actor_id):
        coordinator.place_order(self._order(stocked, 3), test_actor_id)

        logs = captured_logs()
        started = next(r for r in logs if r["message"] == "place_order_started")
        completed = next(r for r in logs if r["message"] == "place_order_completed")
        audit = next(r for r in logs if r["message"] == "audit_record_created")

        assert started["correlation_id"] == completed["correlation_id"] == audit["correlation_id"]
        assert completed["actor_id"] == str(test_actor_id)
        assert completed["operation"] == "place_order"
        assert "duration_ms" in completed

    def test_rejected_order_logs_kernel_code(self, captured_logs, coordinator, stocked, test_actor_id):
        with pytest.raises(InsufficientStockError):
            coordinator.place_order(self._order(stocked, 60), test_actor_id)

        failed = next(r for r in captured_logs() if r["message"] == "place_order_failed")
        assert failed["error_code"] == "INSUFFICIENT_STOCK"
        assert failed["exc_available"] == 50
        assert failed["exc_requested"] == 60
