"""
AuditRecorder tests.

Tests cover:
- Genesis record and hash linkage
- Monotonic seq allocation
- Payload hash over actor, states and revision
- One record per transition (duplicates refused)
- Fail-closed: database failures in the audit store surface as
  AuditWriteError and abort the whole order transition
- Lock timeouts inside the audit store are not masked as write errors
"""

from uuid import uuid4

import pytest
from sqlalchemy import event, func, select
from sqlalchemy.exc import OperationalError

from farmstock_kernel.domain.dtos import OrderPayload
from farmstock_kernel.exceptions import (
    AuditRecordAlreadyExistsError,
    AuditWriteError,
    LockTimeoutError,
)
from farmstock_kernel.models.audit_record import AuditOperation
from farmstock_kernel.models.order_event import OrderEvent
from farmstock_kernel.services.audit_recorder import ORDER_ENTITY, AuditRecorder, audit_payload
from farmstock_kernel.utils.hashing import hash_audit_record, hash_payload


@pytest.fixture
def recorder(session, deterministic_clock):
    return AuditRecorder(session, clock=deterministic_clock)


def _state(order_id, quantity):
    return {
        "id": str(order_id),
        "inventory_item_id": str(uuid4()),
        "quantity_ordered": quantity,
        "delivery_status": "pending",
    }


class TestRecord:

    def test_first_record_is_genesis(self, recorder, test_actor_id):
        order_id = uuid4()
        record = recorder.record(
            ORDER_ENTITY, order_id, AuditOperation.INSERT, test_actor_id,
            old_state=None, new_state=_state(order_id, 5), revision=1,
        )

        assert record.is_genesis
        assert record.prev_hash is None
        assert record.seq == 1
        assert record.operation_value == "INSERT"

    def test_records_are_chained(self, recorder, test_actor_id):
        first_id, second_id = uuid4(), uuid4()
        first = recorder.record(
            ORDER_ENTITY, first_id, AuditOperation.INSERT, test_actor_id,
            old_state=None, new_state=_state(first_id, 5), revision=1,
        )
        second = recorder.record(
            ORDER_ENTITY, second_id, AuditOperation.INSERT, test_actor_id,
            old_state=None, new_state=_state(second_id, 7), revision=1,
        )

        assert second.prev_hash == first.hash
        assert second.seq == first.seq + 1

    def test_hashes_are_reproducible(self, recorder, test_actor_id):
        order_id = uuid4()
        new_state = _state(order_id, 5)
        record = recorder.record(
            ORDER_ENTITY, order_id, AuditOperation.INSERT, test_actor_id,
            old_state=None, new_state=new_state, revision=1,
        )

        expected_payload = hash_payload(audit_payload(test_actor_id, None, new_state, 1))
        assert record.payload_hash == expected_payload
        assert record.hash == hash_audit_record(
            ORDER_ENTITY, str(order_id), "INSERT", expected_payload, None,
        )

    def test_occurred_at_from_clock(self, recorder, deterministic_clock, test_actor_id):
        order_id = uuid4()
        record = recorder.record(
            ORDER_ENTITY, order_id, AuditOperation.INSERT, test_actor_id,
            old_state=None, new_state=_state(order_id, 1), revision=1,
        )
        assert record.occurred_at == deterministic_clock.now()

    def test_duplicate_transition_refused(self, recorder, test_actor_id):
        order_id = uuid4()
        recorder.record(
            ORDER_ENTITY, order_id, AuditOperation.INSERT, test_actor_id,
            old_state=None, new_state=_state(order_id, 5), revision=1,
        )
        with pytest.raises(AuditRecordAlreadyExistsError) as exc_info:
            recorder.record(
                ORDER_ENTITY, order_id, AuditOperation.INSERT, test_actor_id,
                old_state=None, new_state=_state(order_id, 5), revision=1,
            )
        assert exc_info.value.revision == 1

    def test_chain_of_fresh_records_validates(self, recorder, test_actor_id, captured_logs):
        for _ in range(3):
            order_id = uuid4()
            recorder.record(
                ORDER_ENTITY, order_id, AuditOperation.INSERT, test_actor_id,
                old_state=None, new_state=_state(order_id, 2), revision=1,
            )

        assert recorder.validate_chain() is True
        valid = [r for r in captured_logs() if r["message"] == "audit_chain_valid"]
        assert valid[-1]["record_count"] == 3


class _DriverFailure(Exception):
    """DBAPI-style error; ``pgcode`` mirrors psycopg2."""

    def __init__(self, message, pgcode=None):
        super().__init__(message)
        self.pgcode = pgcode


@pytest.fixture
def failing_audit_table(db_engine):
    """Make statements against ``audit_records`` fail at the cursor.

    Call with the statement prefix to break and the driver error to raise.
    """
    installed = []

    def _install(prefix, failure):
        def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
            normalized = " ".join(statement.split())
            if "audit_records" in normalized and normalized.startswith(prefix):
                raise OperationalError(statement, parameters, failure)

        event.listen(db_engine, "before_cursor_execute", before_cursor_execute)
        installed.append(before_cursor_execute)

    yield _install

    for fn in installed:
        event.remove(db_engine, "before_cursor_execute", fn)


def _order_count(session) -> int:
    return session.execute(select(func.count()).select_from(OrderEvent)).scalar_one()


class TestFailClosed:
    """Stock never moves without its audit record."""

    @pytest.fixture
    def payload(self, stocked):
        return OrderPayload(
            client_id=stocked["client"].id,
            inventory_item_id=stocked["item"].id,
            quantity_ordered=10,
        )

    def test_unreadable_audit_store_is_write_error(
        self, session, coordinator, stocked, payload, failing_audit_table,
        inventory_selector, test_actor_id, captured_logs,
    ):
        failing_audit_table("SELECT", _DriverFailure("no such table: audit_records"))

        with pytest.raises(AuditWriteError) as exc_info:
            coordinator.place_order(payload, test_actor_id)

        assert "no such table" in exc_info.value.reason
        assert inventory_selector.get_quantity(stocked["item"].id) == 50
        assert _order_count(session) == 0
        failed = [r for r in captured_logs() if r["message"] == "place_order_failed"]
        assert failed[0]["error_code"] == "AUDIT_WRITE_FAILED"

    def test_failed_append_is_write_error(
        self, session, coordinator, stocked, payload, failing_audit_table,
        inventory_selector, audit_selector, test_actor_id,
    ):
        failing_audit_table("INSERT", _DriverFailure("disk I/O error"))

        with pytest.raises(AuditWriteError):
            coordinator.place_order(payload, test_actor_id)

        assert inventory_selector.get_quantity(stocked["item"].id) == 50
        assert _order_count(session) == 0
        assert audit_selector.count_for(ORDER_ENTITY) == 0

    def test_lock_timeout_on_audit_store_not_masked(
        self, coordinator, stocked, payload, failing_audit_table, inventory_selector,
        test_actor_id,
    ):
        failing_audit_table(
            "SELECT", _DriverFailure("canceling statement due to lock timeout", pgcode="55P03"),
        )

        with pytest.raises(LockTimeoutError):
            coordinator.place_order(payload, test_actor_id)

        assert inventory_selector.get_quantity(stocked["item"].id) == 50
