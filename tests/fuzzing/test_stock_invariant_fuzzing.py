"""
Hypothesis-based fuzzing of the stock invariants.

Random sequences of order placements, amendments, cancellations, harvests
and yield corrections are driven through the InventoryCoordinator against a
simple reference model.  After every step:

- on-hand quantity is never negative
- on-hand quantity equals initial stock + recorded yield - open orders
- every successful order transition left exactly one audit record
"""

from uuid import UUID

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from farmstock_kernel.domain.dtos import HarvestPayload, OrderPayload
from farmstock_kernel.exceptions import LedgerError, ValidationError
from farmstock_kernel.services.audit_recorder import ORDER_ENTITY

OPERATIONS = ["order", "amend", "cancel", "harvest", "correct"]

operation_sequences = st.lists(
    st.tuples(
        st.sampled_from(OPERATIONS),
        st.integers(min_value=-5, max_value=60),
        st.integers(min_value=0, max_value=1000),
    ),
    max_size=20,
)

_FUZZ_SETTINGS = settings(
    max_examples=40,
    deadline=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture, HealthCheck.too_slow],
)


class _StockModel:
    """Reference model of one inventory item."""

    def __init__(self, quantity: int):
        self.quantity = quantity
        self.orders: dict[UUID, int] = {}
        self.harvests: dict[UUID, int] = {}
        self.transitions = 0

    @staticmethod
    def pick(keys, selector):
        keys = sorted(keys, key=str)
        return keys[selector % len(keys)] if keys else None


def _step(coordinator, model, stocked, actor_id, kind, amount, selector):
    item_id = stocked["item"].id
    if kind == "order":
        result = coordinator.place_order(
            OrderPayload(
                client_id=stocked["client"].id,
                inventory_item_id=item_id,
                quantity_ordered=amount,
            ),
            actor_id,
        )
        model.orders[result.order_id] = amount
        model.quantity -= amount
        model.transitions += 1
    elif kind == "amend":
        order_id = model.pick(model.orders, selector)
        if order_id is None:
            return
        coordinator.amend_order(order_id, amount, actor_id)
        model.quantity -= amount - model.orders[order_id]
        model.orders[order_id] = amount
        model.transitions += 1
    elif kind == "cancel":
        order_id = model.pick(model.orders, selector)
        if order_id is None:
            return
        coordinator.cancel_order(order_id, actor_id)
        model.quantity += model.orders.pop(order_id)
        model.transitions += 1
    elif kind == "harvest":
        result = coordinator.record_harvest(
            HarvestPayload(
                crop_id=stocked["crop"].id,
                farm_id=stocked["farm"].id,
                yield_amount=amount,
            ),
            actor_id,
        )
        model.harvests[result.harvest_id] = amount
        model.quantity += amount
    else:
        harvest_id = model.pick(model.harvests, selector)
        if harvest_id is None:
            return
        coordinator.amend_harvest_yield(harvest_id, amount, actor_id)
        model.quantity += amount - model.harvests[harvest_id]
        model.harvests[harvest_id] = amount


class TestStockInvariantFuzzing:

    @_FUZZ_SETTINGS
    @given(initial=st.integers(min_value=0, max_value=100), operations=operation_sequences)
    def test_quantity_never_negative_and_matches_model(
        self, coordinator, make_stocked, inventory_selector, audit_selector, test_actor_id,
        initial, operations,
    ):
        stocked = make_stocked(initial)
        model = _StockModel(initial)
        audit_before = audit_selector.count_for(ORDER_ENTITY)

        for kind, amount, selector in operations:
            try:
                _step(coordinator, model, stocked, test_actor_id, kind, amount, selector)
            except (ValidationError, LedgerError):
                # Rejected transitions must leave no trace
                pass

            quantity = inventory_selector.get_quantity(stocked["item"].id)
            assert quantity >= 0
            assert quantity == model.quantity

        assert audit_selector.count_for(ORDER_ENTITY) - audit_before == model.transitions
